"""
Balance mutation primitives.

These helpers operate on a cursor that is already inside an atomic
transaction. They are the only code that writes ``accounts.balance`` or
inserts ledger lines, so every balance change has exactly one paired
transaction row.
"""

from __future__ import annotations

import logging

from repositories.errors import AccountNotFoundError, InsufficientFundsError

logger = logging.getLogger("wagr.repositories.balance")

TRANSACTION_TYPES = (
    "deposit",
    "withdrawal",
    "withdrawal_reversal",
    "transfer_in",
    "transfer_out",
    "wager_join",
    "wager_refund",
    "wager_edit",
    "wager_win",
    "quiz_join",
    "quiz_refund",
    "quiz_win",
    "platform_fee",
    "adjustment",
)


def adjust_balance(cursor, user_id: str, delta: int, now: int) -> int:
    """
    Add ``delta`` minor units to an account and return the new balance.

    A single conditional UPDATE: the non-negativity check and the write are
    one statement, so there is no read-modify-write window. Writes no ledger
    line; callers pair it with record_transaction().

    Raises:
        AccountNotFoundError: No such account.
        InsufficientFundsError: The result would be negative.
    """
    cursor.execute(
        """
        UPDATE accounts
        SET balance = balance + ?, updated_at = ?
        WHERE user_id = ? AND balance + ? >= 0
        """,
        (delta, now, user_id, delta),
    )
    if cursor.rowcount == 0:
        cursor.execute("SELECT balance FROM accounts WHERE user_id = ?", (user_id,))
        row = cursor.fetchone()
        if row is None:
            raise AccountNotFoundError(f"Account {user_id} not found.")
        raise InsufficientFundsError(
            f"Insufficient balance for {user_id}: have {row['balance']}, need {-delta}."
        )

    cursor.execute("SELECT balance FROM accounts WHERE user_id = ?", (user_id,))
    return int(cursor.fetchone()["balance"])


def record_transaction(
    cursor,
    user_id: str,
    amount: int,
    tx_type: str,
    now: int,
    reference: str | None = None,
    description: str | None = None,
) -> int:
    """Append one ledger line and return its id."""
    if tx_type not in TRANSACTION_TYPES:
        raise ValueError(f"Unknown transaction type: {tx_type}")
    cursor.execute(
        """
        INSERT INTO transactions (user_id, amount, type, reference, description, created_at)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (user_id, amount, tx_type, reference, description, now),
    )
    return cursor.lastrowid


def apply(
    cursor,
    user_id: str,
    delta: int,
    tx_type: str,
    now: int,
    reference: str | None = None,
    description: str | None = None,
) -> int:
    """Mutate the balance and write the paired ledger line. Returns the new balance."""
    new_balance = adjust_balance(cursor, user_id, delta, now)
    record_transaction(cursor, user_id, delta, tx_type, now, reference, description)
    logger.debug(f"{tx_type} {delta:+d} for {user_id} (ref={reference}) -> {new_balance}")
    return new_balance


def ensure_account(cursor, user_id: str, currency: str, now: int, is_platform: bool = False) -> None:
    """Create an account with zero balance if it does not exist yet."""
    cursor.execute(
        """
        INSERT OR IGNORE INTO accounts (user_id, balance, currency, is_platform, created_at, updated_at)
        VALUES (?, 0, ?, ?, ?, ?)
        """,
        (user_id, currency, 1 if is_platform else 0, now, now),
    )
