"""
Amount and balance validation shared by the ledger, wager and quiz services.

These run before any mutation so that rejected requests leave no trace.
The atomic repository operations enforce the same rules again under the
write lock.
"""

from decimal import Decimal
from typing import TYPE_CHECKING

from services import error_codes
from services.result import Result
from utils.money import format_amount, to_minor

if TYPE_CHECKING:
    from repositories.interfaces import IAccountRepository


def parse_amount(
    amount: Decimal | int | str,
    label: str = "Amount",
    min_amount: Decimal | None = None,
    max_amount: Decimal | None = None,
    limit_code: str = error_codes.VALIDATION_ERROR,
) -> Result[int]:
    """
    Convert a major-unit amount to minor units, checking sign and limits.

    Args:
        amount: Amount in major units (Decimal, int or numeric string)
        label: Name used in error messages
        min_amount: Inclusive lower bound in major units
        max_amount: Inclusive upper bound in major units
        limit_code: Error code used when a bound is violated

    Returns:
        Result.ok(minor_units) if valid
        Result.fail(error, VALIDATION_ERROR or limit_code) otherwise

    Examples:
        >>> parse_amount("158.33")
        Result(success=True, value=15833)

        >>> parse_amount("1.005")
        Result(success=False, error="...", error_code="validation_error")
    """
    try:
        minor = to_minor(amount)
    except ValueError as e:
        return Result.fail(f"{label}: {e}", code=error_codes.VALIDATION_ERROR)

    if minor <= 0:
        return Result.fail(f"{label} must be positive.", code=error_codes.VALIDATION_ERROR)
    if min_amount is not None and minor < to_minor(min_amount):
        return Result.fail(f"{label} must be at least {min_amount}.", code=limit_code)
    if max_amount is not None and minor > to_minor(max_amount):
        return Result.fail(f"{label} cannot exceed {max_amount}.", code=limit_code)

    return Result.ok(minor)


def validate_has_amount(
    account_repo: "IAccountRepository",
    user_id: str,
    amount: int,
    currency: str = "NGN",
) -> Result[int]:
    """
    Check that an account exists and holds at least ``amount`` minor units.

    Returns:
        Result.ok(balance) if balance >= amount
        Result.fail(error, code) if the account is missing or short
    """
    account = account_repo.get_account(user_id)
    if account is None:
        return Result.fail(f"Account {user_id} not found.", code=error_codes.ACCOUNT_NOT_FOUND)

    balance = int(account["balance"])
    if balance < amount:
        return Result.fail(
            f"Insufficient balance. You have {format_amount(balance, currency)}, "
            f"but need {format_amount(amount, currency)}.",
            code=error_codes.INSUFFICIENT_FUNDS,
        )

    return Result.ok(balance)
