"""
Turns repository exceptions into Results.

Repositories raise typed LedgerErrors; services hand callers a Result with a
stable error code instead. Lock timeouts from SQLite surface as
CONCURRENT_MODIFICATION so the caller can retry with backoff.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable
from typing import TypeVar

from repositories.errors import AlreadySettledError, LedgerError
from services import error_codes
from services.result import Result

T = TypeVar("T")

_LOCK_MESSAGES = ("database is locked", "database table is locked", "database is busy")


def is_lock_error(exc: Exception) -> bool:
    return isinstance(exc, sqlite3.OperationalError) and any(m in str(exc).lower() for m in _LOCK_MESSAGES)


def guarded_call(
    logger: logging.Logger,
    action: str,
    fn: Callable[..., T],
    *args,
    **kwargs,
) -> Result[T]:
    """
    Run a repository call and wrap its outcome.

    Unknown exceptions propagate; only rejected operations and lock
    contention become failed Results.
    """
    try:
        return Result.ok(fn(*args, **kwargs))
    except AlreadySettledError as e:
        logger.debug(f"{action}: no-op ({e})")
        return Result.from_error(e)
    except LedgerError as e:
        logger.info(f"{action} rejected: {e}")
        return Result.from_error(e)
    except sqlite3.IntegrityError as e:
        if "UNIQUE" in str(e) and ("wager_entries" in str(e) or "quiz_participants" in str(e)):
            logger.info(f"{action} rejected: duplicate stake ({e})")
            return Result.fail("You have already joined.", code=error_codes.DUPLICATE_STAKE)
        raise
    except sqlite3.OperationalError as e:
        if is_lock_error(e):
            logger.warning(f"{action} hit a locked database; caller should retry")
            return Result.fail(
                "The ledger is busy. Please retry.",
                code=error_codes.CONCURRENT_MODIFICATION,
            )
        raise
