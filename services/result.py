"""
Result type for consistent error handling across services.

Every public service operation returns a Result[T] instead of raising, so the
API layer and the scheduler get a tagged success payload or a stable error
code, never a raw exception.

Usage:
    # Returning success
    return Result.ok(join_result)
    return Result.ok()      # Result without value (for void operations)

    # Returning failure
    return Result.fail("Insufficient balance", code=error_codes.INSUFFICIENT_FUNDS)
    return Result.from_error(exc)   # exc is a repositories.errors.LedgerError

    # Checking results
    if result.success:
        print(result.value)
    else:
        print(f"Error ({result.error_code}): {result.error}")
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from services.error_codes import NO_OP_CODES

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    A simple result type for service method return values.

    Attributes:
        success: Whether the operation succeeded
        value: The return value if successful (None if failed or void operation)
        error: Error message if failed (None if successful)
        error_code: Error code from services.error_codes for programmatic handling
    """

    success: bool
    value: T | None = None
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def ok(cls, value: T | None = None) -> "Result[T]":
        """Create a successful result with an optional value."""
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: str, code: str | None = None) -> "Result[T]":
        """Create a failed result with an error message and optional error code."""
        return cls(success=False, error=error, error_code=code)

    @classmethod
    def from_error(cls, exc: Exception) -> "Result[T]":
        """Create a failed result from an exception carrying a ``code`` attribute."""
        return cls.fail(str(exc), code=getattr(exc, "code", None))

    def __bool__(self) -> bool:
        """Allow using Result in boolean context: if result: ..."""
        return self.success

    @property
    def is_no_op(self) -> bool:
        """True when the failure only means the work was already done."""
        return not self.success and self.error_code in NO_OP_CODES

    def unwrap(self) -> T:
        """
        Get the value, raising ValueError if the result is a failure.

        Raises:
            ValueError: If the result is a failure
        """
        if not self.success:
            raise ValueError(f"Cannot unwrap failed result: {self.error}")
        return self.value  # type: ignore

    def unwrap_or(self, default: T) -> T:
        """Get the value or a default if the result is a failure."""
        return self.value if self.success else default  # type: ignore

    def map(self, fn: Callable[[T], "Result[U]"]) -> "Result[U]":
        """
        Chain operations on successful results.

        If this result is successful, applies fn to the value and returns its result.
        If this result is a failure, returns this failure unchanged.
        """
        if not self.success:
            return self  # type: ignore
        return fn(self.value)  # type: ignore
