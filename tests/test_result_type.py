"""Tests for the Result type, error codes and repository error mapping."""

import inspect
import logging
import sqlite3

import pytest

from repositories import errors
from services import error_codes
from services.ledger_guard import guarded_call, is_lock_error
from services.result import Result


class TestResultOk:
    """Tests for successful Result creation."""

    def test_ok_without_value(self):
        """Result.ok() creates success without value."""
        result = Result.ok()
        assert result.success is True
        assert result.value is None
        assert result.error is None
        assert result.error_code is None

    def test_ok_with_dict_value(self):
        data = {"wager_id": 7, "status": "OPEN"}
        result = Result.ok(data)
        assert result.success is True
        assert result.value["status"] == "OPEN"


class TestResultFail:
    """Tests for failed Result creation."""

    def test_fail_with_code(self):
        result = Result.fail("Account not found", code=error_codes.ACCOUNT_NOT_FOUND)
        assert result.success is False
        assert result.value is None
        assert result.error == "Account not found"
        assert result.error_code == error_codes.ACCOUNT_NOT_FOUND

    def test_from_error_uses_exception_code(self):
        """Result.from_error copies the message and the exception's code."""
        result = Result.from_error(errors.QuizFullError("Quiz 3 is full."))
        assert result.success is False
        assert result.error == "Quiz 3 is full."
        assert result.error_code == error_codes.QUIZ_FULL

    def test_from_error_without_code(self):
        result = Result.from_error(RuntimeError("boom"))
        assert result.error_code is None

    def test_is_no_op(self):
        """Only ALREADY_SETTLED counts as a no-op failure."""
        assert Result.fail("done", code=error_codes.ALREADY_SETTLED).is_no_op
        assert not Result.fail("nope", code=error_codes.NOT_RESOLVED).is_no_op
        assert not Result.ok().is_no_op


class TestResultBooleanContext:
    def test_ok_is_truthy(self):
        assert bool(Result.ok(42)) is True

    def test_fail_is_falsy(self):
        assert bool(Result.fail("error")) is False


class TestResultUnwrap:
    """Tests for Result.unwrap() and unwrap_or()."""

    def test_unwrap_success(self):
        assert Result.ok(42).unwrap() == 42

    def test_unwrap_failure_raises(self):
        """unwrap() raises ValueError on failure."""
        result = Result.fail("Something went wrong")
        with pytest.raises(ValueError, match="Cannot unwrap failed result"):
            result.unwrap()

    def test_unwrap_or_failure(self):
        assert Result.fail("error").unwrap_or(0) == 0


class TestResultMap:
    """Tests for Result.map() chaining."""

    def test_map_chain(self):
        result = (
            Result.ok(5)
            .map(lambda x: Result.ok(x * 2))
            .map(lambda x: Result.ok(x + 1))
        )
        assert result.value == 11

    def test_map_on_failure(self):
        """map() returns original failure."""
        result = Result.fail("error", code="test_error")
        mapped = result.map(lambda x: Result.ok(x * 2))
        assert mapped.success is False
        assert mapped.error_code == "test_error"

    def test_result_is_frozen(self):
        result = Result.ok(42)
        with pytest.raises(Exception):  # FrozenInstanceError
            result.value = 100


class TestErrorCodes:
    """Tests for error code constants."""

    def test_error_codes_are_unique(self):
        codes = [
            value
            for name, value in inspect.getmembers(error_codes)
            if not name.startswith("_") and isinstance(value, str)
        ]
        assert len(codes) == len(set(codes)), "Duplicate error codes found"

    def test_repository_errors_use_known_codes(self):
        """Every repository exception maps onto a defined service error code."""
        known = {
            value
            for name, value in inspect.getmembers(error_codes)
            if not name.startswith("_") and isinstance(value, str)
        }
        for _, cls in inspect.getmembers(errors, inspect.isclass):
            if issubclass(cls, errors.LedgerError):
                assert cls.code in known, cls.__name__

    def test_retryable_and_no_op_sets(self):
        assert error_codes.CONCURRENT_MODIFICATION in error_codes.RETRYABLE_CODES
        assert error_codes.ALREADY_SETTLED in error_codes.NO_OP_CODES


class TestGuardedCall:
    """Repository exceptions become failed Results; unknown ones propagate."""

    logger = logging.getLogger("wagr.tests")

    def test_success_wraps_value(self):
        result = guarded_call(self.logger, "noop", lambda x: x + 1, 1)
        assert result.value == 2

    def test_ledger_error(self):
        def _raise():
            raise errors.InsufficientFundsError("short")

        result = guarded_call(self.logger, "join", _raise)
        assert result.error_code == error_codes.INSUFFICIENT_FUNDS

    def test_duplicate_stake_integrity_error(self):
        def _raise():
            raise sqlite3.IntegrityError("UNIQUE constraint failed: wager_entries.wager_id, wager_entries.user_id")

        result = guarded_call(self.logger, "join", _raise)
        assert result.error_code == error_codes.DUPLICATE_STAKE

    def test_other_integrity_error_propagates(self):
        def _raise():
            raise sqlite3.IntegrityError("CHECK constraint failed: balance >= 0")

        with pytest.raises(sqlite3.IntegrityError):
            guarded_call(self.logger, "join", _raise)

    def test_lock_error_is_concurrent_modification(self):
        def _raise():
            raise sqlite3.OperationalError("database is locked")

        result = guarded_call(self.logger, "settle", _raise)
        assert result.error_code == error_codes.CONCURRENT_MODIFICATION
        assert is_lock_error(sqlite3.OperationalError("database is locked"))
        assert not is_lock_error(sqlite3.OperationalError("no such table: wagers"))

    def test_unknown_exception_propagates(self):
        def _raise():
            raise RuntimeError("bug")

        with pytest.raises(RuntimeError):
            guarded_call(self.logger, "settle", _raise)
