"""
Repository for accounts and the transaction ledger.
"""

from __future__ import annotations

import logging
import time
import uuid

from repositories import balance_ops
from repositories.base_repository import BaseRepository
from repositories.errors import AccountNotFoundError, InvalidOperationError
from repositories.interfaces import IAccountRepository

logger = logging.getLogger("wagr.repositories.account")


class AccountRepository(BaseRepository, IAccountRepository):
    """
    Handles the accounts and transactions tables.

    Every mutation runs in one atomic transaction and writes exactly one
    ledger line per balance change.
    """

    def create_account(
        self,
        user_id: str,
        currency: str = "NGN",
        is_platform: bool = False,
        now: int | None = None,
    ) -> dict:
        """Create an account with a zero balance. Idempotent; returns the account."""
        now = now if now is not None else int(time.time())
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            balance_ops.ensure_account(cursor, user_id, currency, now, is_platform=is_platform)
            cursor.execute("SELECT * FROM accounts WHERE user_id = ?", (user_id,))
            return dict(cursor.fetchone())

    def get_account(self, user_id: str) -> dict | None:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM accounts WHERE user_id = ?", (user_id,))
            row = cursor.fetchone()
            return dict(row) if row else None

    def get_balance(self, user_id: str) -> int:
        """Get an account's balance in minor units."""
        account = self.get_account(user_id)
        if account is None:
            raise AccountNotFoundError(f"Account {user_id} not found.")
        return int(account["balance"])

    def adjust(
        self,
        user_id: str,
        delta: int,
        tx_type: str = "adjustment",
        reference: str | None = None,
        description: str | None = None,
        now: int | None = None,
    ) -> dict:
        """
        Apply a signed delta and its ledger line atomically.

        Raises:
            AccountNotFoundError, InsufficientFundsError
        """
        if delta == 0:
            raise InvalidOperationError("Adjustment amount must be non-zero.")
        now = now if now is not None else int(time.time())
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            new_balance = balance_ops.apply(cursor, user_id, delta, tx_type, now, reference, description)
            return {"user_id": user_id, "delta": delta, "new_balance": new_balance}

    # --- Payment gateway contract ---

    def _find_gateway_transaction(self, cursor, tx_type: str, reference: str) -> dict | None:
        cursor.execute(
            "SELECT * FROM transactions WHERE type = ? AND reference = ?",
            (tx_type, reference),
        )
        row = cursor.fetchone()
        return dict(row) if row else None

    def deposit(self, user_id: str, amount: int, reference: str, now: int | None = None) -> dict:
        """
        Credit a confirmed gateway deposit.

        Idempotent on ``reference``: a repeated confirmation returns the
        original transaction with ``duplicate`` set and changes nothing.
        """
        if amount <= 0:
            raise InvalidOperationError("Deposit amount must be positive.")
        now = now if now is not None else int(time.time())
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            existing = self._find_gateway_transaction(cursor, "deposit", reference)
            if existing:
                if existing["user_id"] != user_id or existing["amount"] != amount:
                    raise InvalidOperationError(
                        f"Reference {reference} was already used for a different deposit."
                    )
                cursor.execute("SELECT balance FROM accounts WHERE user_id = ?", (user_id,))
                return {
                    "transaction_id": existing["id"],
                    "new_balance": int(cursor.fetchone()["balance"]),
                    "duplicate": True,
                }

            new_balance = balance_ops.adjust_balance(cursor, user_id, amount, now)
            tx_id = balance_ops.record_transaction(
                cursor, user_id, amount, "deposit", now, reference, "Wallet funding"
            )
            return {"transaction_id": tx_id, "new_balance": new_balance, "duplicate": False}

    def withdraw(self, user_id: str, amount: int, reference: str, now: int | None = None) -> dict:
        """Debit a withdrawal request. The reference is the gateway transfer id."""
        if amount <= 0:
            raise InvalidOperationError("Withdrawal amount must be positive.")
        now = now if now is not None else int(time.time())
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            if self._find_gateway_transaction(cursor, "withdrawal", reference):
                raise InvalidOperationError(f"Withdrawal reference {reference} already used.")
            new_balance = balance_ops.adjust_balance(cursor, user_id, -amount, now)
            tx_id = balance_ops.record_transaction(
                cursor, user_id, -amount, "withdrawal", now, reference, "Withdrawal to bank account"
            )
            return {"transaction_id": tx_id, "new_balance": new_balance}

    def reverse_withdrawal(self, reference: str, now: int | None = None) -> dict:
        """
        Credit back a withdrawal the gateway reported as failed.

        Idempotent: a second reversal of the same reference is a no-op.
        """
        now = now if now is not None else int(time.time())
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            withdrawal = self._find_gateway_transaction(cursor, "withdrawal", reference)
            if withdrawal is None:
                raise InvalidOperationError(f"No withdrawal with reference {reference}.")

            user_id = withdrawal["user_id"]
            existing = self._find_gateway_transaction(cursor, "withdrawal_reversal", reference)
            if existing:
                cursor.execute("SELECT balance FROM accounts WHERE user_id = ?", (user_id,))
                return {
                    "transaction_id": existing["id"],
                    "user_id": user_id,
                    "amount": -withdrawal["amount"],
                    "new_balance": int(cursor.fetchone()["balance"]),
                    "duplicate": True,
                }

            amount = -withdrawal["amount"]
            new_balance = balance_ops.adjust_balance(cursor, user_id, amount, now)
            tx_id = balance_ops.record_transaction(
                cursor, user_id, amount, "withdrawal_reversal", now, reference, "Failed withdrawal reversed"
            )
            return {
                "transaction_id": tx_id,
                "user_id": user_id,
                "amount": amount,
                "new_balance": new_balance,
                "duplicate": False,
            }

    def transfer(self, sender_id: str, recipient_id: str, amount: int, now: int | None = None) -> dict:
        """
        Move funds between two accounts atomically.

        The sender is debited first; the recipient must already exist.
        """
        if sender_id == recipient_id:
            raise InvalidOperationError("Cannot transfer to yourself.")
        if amount <= 0:
            raise InvalidOperationError("Transfer amount must be positive.")
        now = now if now is not None else int(time.time())
        reference = f"transfer:{uuid.uuid4().hex}"

        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT 1 FROM accounts WHERE user_id = ?", (recipient_id,))
            if cursor.fetchone() is None:
                raise AccountNotFoundError(f"Recipient account {recipient_id} not found.")

            sender_balance = balance_ops.apply(
                cursor, sender_id, -amount, "transfer_out", now, reference, f"Transfer to {recipient_id}"
            )
            recipient_balance = balance_ops.apply(
                cursor, recipient_id, amount, "transfer_in", now, reference, f"Transfer from {sender_id}"
            )
            return {
                "amount": amount,
                "reference": reference,
                "sender_balance": sender_balance,
                "recipient_balance": recipient_balance,
            }

    # --- Ledger queries ---

    def get_transactions(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
        tx_type: str | None = None,
    ) -> list[dict]:
        """Get a user's ledger lines, newest first."""
        query = "SELECT * FROM transactions WHERE user_id = ?"
        params: list = [user_id]
        if tx_type is not None:
            query += " AND type = ?"
            params.append(tx_type)
        query += " ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [dict(row) for row in cursor.fetchall()]

    def get_transactions_by_reference(self, reference: str) -> list[dict]:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM transactions WHERE reference = ? ORDER BY id",
                (reference,),
            )
            return [dict(row) for row in cursor.fetchall()]

    def get_transaction_sum(self, user_id: str) -> int:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT COALESCE(SUM(amount), 0) AS total FROM transactions WHERE user_id = ?",
                (user_id,),
            )
            return int(cursor.fetchone()["total"])

    def find_ledger_discrepancies(self) -> list[dict]:
        """
        Accounts whose balance differs from the sum of their ledger lines.

        Empty in a healthy ledger.
        """
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT a.user_id, a.balance, COALESCE(t.total, 0) AS ledger_total
                FROM accounts a
                LEFT JOIN (
                    SELECT user_id, SUM(amount) AS total FROM transactions GROUP BY user_id
                ) t ON t.user_id = a.user_id
                WHERE a.balance != COALESCE(t.total, 0)
                """
            )
            return [dict(row) for row in cursor.fetchall()]

    def get_total_balance(self) -> int:
        """Sum of every account balance, platform included."""
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COALESCE(SUM(balance), 0) AS total FROM accounts")
            return int(cursor.fetchone()["total"])
