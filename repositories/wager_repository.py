"""
Repository for wagers and their stake entries.
"""

from __future__ import annotations

import logging
import time
from decimal import Decimal

from domain.models.instance import (
    OUTCOME_NO_WINNING_STAKES,
    OUTCOME_SINGLE_PARTICIPANT,
    TERMINAL_WAGER_STATUSES,
    WAGER_SIDES,
    WagerStatus,
)
from domain.models.stake import StakeEntry
from domain.services.payout_calculator import calculate_wager_payouts
from repositories import balance_ops
from repositories.base_repository import BaseRepository
from repositories.errors import (
    AlreadySettledError,
    DeadlineElapsedError,
    DeadlineNotElapsedError,
    DuplicateStakeError,
    InstanceNotFoundError,
    InstanceNotOpenError,
    InvalidOperationError,
    NotResolvedError,
    OutcomeAlreadySetError,
    PermissionDeniedError,
)
from repositories.interfaces import IWagerRepository

logger = logging.getLogger("wagr.repositories.wager")

EDITABLE_FIELDS = ("title", "description", "side_a", "side_b", "deadline")


class WagerRepository(BaseRepository, IWagerRepository):
    """
    Handles the wagers and wager_entries tables.

    Join, outcome, settlement and refund are each one atomic transaction that
    re-reads the wager's status under the write lock before acting on it.
    """

    def create_wager(
        self,
        creator_id: str,
        title: str,
        side_a: str,
        side_b: str,
        amount: int,
        deadline: int,
        fee_percentage: Decimal,
        currency: str = "NGN",
        description: str | None = None,
        creator_side: str | None = None,
        now: int | None = None,
    ) -> dict:
        """
        Create an OPEN wager. If ``creator_side`` is given the creator's
        stake is debited and entered in the same transaction.
        """
        if amount <= 0:
            raise InvalidOperationError("Wager amount must be positive.")
        if creator_side is not None and creator_side not in WAGER_SIDES:
            raise InvalidOperationError("Invalid side. Must be 'a' or 'b'.")
        now = now if now is not None else int(time.time())

        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO wagers (
                    creator_id, title, description, side_a, side_b, amount,
                    fee_percentage, currency, status, deadline, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, 'OPEN', ?, ?)
                """,
                (
                    creator_id,
                    title,
                    description,
                    side_a,
                    side_b,
                    amount,
                    str(fee_percentage),
                    currency,
                    deadline,
                    now,
                ),
            )
            wager_id = cursor.lastrowid

            if creator_side is not None:
                self._insert_entry(cursor, wager_id, creator_id, creator_side, amount, now)

            return self._get_wager_internal(cursor, wager_id)

    def get_wager(self, wager_id: int) -> dict | None:
        with self.connection() as conn:
            return self._get_wager_internal(conn.cursor(), wager_id)

    def _get_wager_internal(self, cursor, wager_id: int) -> dict | None:
        cursor.execute("SELECT * FROM wagers WHERE wager_id = ?", (wager_id,))
        row = cursor.fetchone()
        return dict(row) if row else None

    def _require_wager(self, cursor, wager_id: int) -> dict:
        wager = self._get_wager_internal(cursor, wager_id)
        if wager is None:
            raise InstanceNotFoundError(f"Wager {wager_id} not found.")
        return wager

    def get_wagers_by_status(self, status: str) -> list[dict]:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM wagers WHERE status = ? ORDER BY wager_id",
                (status,),
            )
            return [dict(row) for row in cursor.fetchall()]

    def get_expired_open_wagers(self, now: int) -> list[dict]:
        """OPEN wagers whose deadline has passed, with their participant counts."""
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT w.*, COUNT(DISTINCT e.user_id) AS participant_count
                FROM wagers w
                LEFT JOIN wager_entries e ON e.wager_id = w.wager_id
                WHERE w.status = 'OPEN' AND w.deadline <= ?
                GROUP BY w.wager_id
                ORDER BY w.deadline, w.wager_id
                """,
                (now,),
            )
            return [dict(row) for row in cursor.fetchall()]

    # --- Entries ---

    def get_entries(self, wager_id: int) -> list[dict]:
        with self.connection() as conn:
            cursor = conn.cursor()
            return self._get_entries_internal(cursor, wager_id)

    def _get_entries_internal(self, cursor, wager_id: int) -> list[dict]:
        cursor.execute(
            "SELECT * FROM wager_entries WHERE wager_id = ? ORDER BY entry_id",
            (wager_id,),
        )
        return [dict(row) for row in cursor.fetchall()]

    def get_user_entry(self, wager_id: int, user_id: str) -> dict | None:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM wager_entries WHERE wager_id = ? AND user_id = ?",
                (wager_id, user_id),
            )
            row = cursor.fetchone()
            return dict(row) if row else None

    def get_pool_totals(self, wager_id: int) -> dict:
        with self.connection() as conn:
            return self._get_totals_internal(conn.cursor(), wager_id)

    def _get_totals_internal(self, cursor, wager_id: int) -> dict:
        """Get side totals using an existing cursor (for use in transactions)."""
        cursor.execute(
            """
            SELECT side, SUM(amount) AS total, COUNT(DISTINCT user_id) AS participants
            FROM wager_entries
            WHERE wager_id = ?
            GROUP BY side
            """,
            (wager_id,),
        )
        totals = {"side_a_total": 0, "side_b_total": 0, "side_a_count": 0, "side_b_count": 0}
        for row in cursor.fetchall():
            totals[f"side_{row['side']}_total"] = row["total"]
            totals[f"side_{row['side']}_count"] = row["participants"]
        totals["total_pool"] = totals["side_a_total"] + totals["side_b_total"]
        totals["participant_count"] = totals["side_a_count"] + totals["side_b_count"]
        return totals

    def _insert_entry(self, cursor, wager_id: int, user_id: str, side: str, amount: int, now: int) -> int:
        new_balance = balance_ops.apply(
            cursor, user_id, -amount, "wager_join", now, f"wager:{wager_id}", f"Joined wager #{wager_id}"
        )
        cursor.execute(
            """
            INSERT INTO wager_entries (wager_id, user_id, side, amount, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (wager_id, user_id, side, amount, now),
        )
        logger.debug(f"Entry on wager {wager_id} for {user_id}; balance now {new_balance}")
        return cursor.lastrowid

    def join_wager_atomic(self, wager_id: int, user_id: str, side: str, now: int | None = None) -> dict:
        """
        Stake the wager's amount on a side.

        Debit, ledger line and entry insert are one transaction. Checks run
        in order: open, deadline, duplicate stake, balance.

        Raises:
            InstanceNotFoundError, InstanceNotOpenError, DeadlineElapsedError,
            DuplicateStakeError, InsufficientFundsError, AccountNotFoundError
        """
        if side not in WAGER_SIDES:
            raise InvalidOperationError("Invalid side. Must be 'a' or 'b'.")
        now = now if now is not None else int(time.time())

        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            wager = self._require_wager(cursor, wager_id)
            if wager["status"] != WagerStatus.OPEN.value:
                raise InstanceNotOpenError(f"Wager {wager_id} is not open.")
            if now >= wager["deadline"]:
                raise DeadlineElapsedError(f"Wager {wager_id} has closed.")

            cursor.execute(
                "SELECT 1 FROM wager_entries WHERE wager_id = ? AND user_id = ?",
                (wager_id, user_id),
            )
            if cursor.fetchone():
                raise DuplicateStakeError(f"{user_id} has already joined wager {wager_id}.")

            amount = wager["amount"]
            entry_id = self._insert_entry(cursor, wager_id, user_id, side, amount, now)
            cursor.execute("SELECT balance FROM accounts WHERE user_id = ?", (user_id,))
            new_balance = int(cursor.fetchone()["balance"])

            return {
                "entry_id": entry_id,
                "wager_id": wager_id,
                "side": side,
                "amount": amount,
                "new_balance": new_balance,
                **self._get_totals_internal(cursor, wager_id),
            }

    # --- Creator edits ---

    def _require_unshared_open_wager(self, cursor, wager_id: int, actor_id: str) -> dict:
        wager = self._require_wager(cursor, wager_id)
        if wager["creator_id"] != actor_id:
            raise PermissionDeniedError("Only the creator can change this wager.")
        if wager["status"] != WagerStatus.OPEN.value:
            raise InstanceNotOpenError(f"Wager {wager_id} is not open.")
        cursor.execute(
            "SELECT COUNT(*) AS n FROM wager_entries WHERE wager_id = ? AND user_id != ?",
            (wager_id, actor_id),
        )
        if cursor.fetchone()["n"] > 0:
            raise InvalidOperationError("Wager cannot be changed after others have joined.")
        return wager

    def update_wager(self, wager_id: int, editor_id: str, changes: dict) -> dict:
        """Apply creator edits while no one else has staked. Returns the updated wager."""
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise InvalidOperationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
        if not changes:
            raise InvalidOperationError("No changes supplied.")

        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            self._require_unshared_open_wager(cursor, wager_id, editor_id)
            assignments = ", ".join(f"{field} = ?" for field in changes)
            cursor.execute(
                f"UPDATE wagers SET {assignments} WHERE wager_id = ?",
                (*changes.values(), wager_id),
            )
            return self._get_wager_internal(cursor, wager_id)

    def delete_wager(self, wager_id: int, requester_id: str, now: int | None = None) -> dict:
        """
        Delete a wager nobody else has joined, refunding the creator's own stake.
        """
        now = now if now is not None else int(time.time())
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            self._require_unshared_open_wager(cursor, wager_id, requester_id)

            refunded = 0
            for entry in self._get_entries_internal(cursor, wager_id):
                balance_ops.apply(
                    cursor,
                    entry["user_id"],
                    entry["amount"],
                    "wager_refund",
                    now,
                    f"wager:{wager_id}",
                    f"Refund for deleted wager #{wager_id}",
                )
                refunded += entry["amount"]

            cursor.execute("DELETE FROM wager_entries WHERE wager_id = ?", (wager_id,))
            cursor.execute("DELETE FROM wagers WHERE wager_id = ?", (wager_id,))
            return {"wager_id": wager_id, "refunded": refunded}

    # --- Outcome ---

    def resolve_wager(self, wager_id: int, winning_side: str, resolved_by: str, now: int | None = None) -> dict:
        """
        OPEN -> RESOLVED in a single conditional update.

        Raises:
            InstanceNotFoundError, DeadlineNotElapsedError,
            OutcomeAlreadySetError, InstanceNotOpenError
        """
        if winning_side not in WAGER_SIDES:
            raise InvalidOperationError("Invalid side. Must be 'a' or 'b'.")
        now = now if now is not None else int(time.time())

        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                UPDATE wagers
                SET status = 'RESOLVED', winning_side = ?, resolved_by = ?, resolved_at = ?
                WHERE wager_id = ? AND status = 'OPEN' AND deadline <= ?
                """,
                (winning_side, resolved_by, now, wager_id, now),
            )
            if cursor.rowcount == 0:
                wager = self._require_wager(cursor, wager_id)
                if wager["status"] in (WagerStatus.RESOLVED.value, WagerStatus.SETTLED.value):
                    raise OutcomeAlreadySetError(f"Wager {wager_id} already has an outcome.")
                if wager["status"] != WagerStatus.OPEN.value:
                    raise InstanceNotOpenError(f"Wager {wager_id} is {wager['status']}.")
                raise DeadlineNotElapsedError(f"Wager {wager_id} deadline has not passed.")

            return self._get_wager_internal(cursor, wager_id)

    # --- Settlement and refunds ---

    def _refund_entries(self, cursor, wager_id: int, entries: list[dict], now: int, description: str) -> int:
        """Return every unpaid stake. Returns the total refunded."""
        refunded = 0
        for entry in entries:
            cursor.execute(
                """
                UPDATE wager_entries SET payout = ?, paid_at = ?
                WHERE entry_id = ? AND paid_at IS NULL
                """,
                (entry["amount"], now, entry["entry_id"]),
            )
            if cursor.rowcount == 0:
                continue
            balance_ops.apply(
                cursor, entry["user_id"], entry["amount"], "wager_refund", now, f"wager:{wager_id}", description
            )
            refunded += entry["amount"]
        return refunded

    def _finish(self, cursor, wager_id: int, from_status: str, to_status: str, now: int) -> None:
        cursor.execute(
            "UPDATE wagers SET status = ?, settled_at = ? WHERE wager_id = ? AND status = ?",
            (to_status, now, wager_id, from_status),
        )
        if cursor.rowcount == 0:
            raise AlreadySettledError(f"Wager {wager_id} was settled concurrently.")

    def settle_wager_atomic(self, wager_id: int, platform_account_id: str, now: int | None = None) -> dict:
        """
        RESOLVED -> SETTLED (or REFUNDED) in one transaction.

        Runs the payout calculator once, credits every unpaid winner, credits
        fee and rounding remainder to the platform account, records the
        settlement and flips the status. Any failure rolls everything back and
        leaves the wager RESOLVED.

        With at most one participant, or nobody on the winning side, every
        stake is refunded and no fee is taken.

        Raises:
            InstanceNotFoundError, AlreadySettledError, NotResolvedError
        """
        now = now if now is not None else int(time.time())

        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            wager = self._require_wager(cursor, wager_id)
            if wager["status"] in TERMINAL_WAGER_STATUSES:
                raise AlreadySettledError(f"Wager {wager_id} is already {wager['status']}.")
            if wager["status"] != WagerStatus.RESOLVED.value:
                raise NotResolvedError(f"Wager {wager_id} has no outcome yet.")

            entries = self._get_entries_internal(cursor, wager_id)
            pool = sum(e["amount"] for e in entries)
            participants = {e["user_id"] for e in entries}

            if len(participants) <= 1:
                refunded = self._refund_entries(
                    cursor, wager_id, entries, now, f"Refund for wager #{wager_id} (single participant)"
                )
                self._insert_settlement(
                    cursor, "wager", wager_id, OUTCOME_SINGLE_PARTICIPANT, pool, now, refunded=refunded
                )
                self._finish(cursor, wager_id, WagerStatus.RESOLVED.value, WagerStatus.REFUNDED.value, now)
                return self._summary(wager, WagerStatus.REFUNDED, OUTCOME_SINGLE_PARTICIPANT, pool, refunded=refunded)

            plan = calculate_wager_payouts(
                [
                    StakeEntry(e["entry_id"], e["user_id"], e["side"], e["amount"], e["created_at"])
                    for e in entries
                ],
                wager["winning_side"],
                Decimal(wager["fee_percentage"]),
            )

            if plan.no_winners:
                refunded = self._refund_entries(
                    cursor, wager_id, entries, now, f"Refund for wager #{wager_id} (no winning stakes)"
                )
                self._insert_settlement(
                    cursor, "wager", wager_id, OUTCOME_NO_WINNING_STAKES, pool, now, refunded=refunded
                )
                self._finish(cursor, wager_id, WagerStatus.RESOLVED.value, WagerStatus.REFUNDED.value, now)
                return self._summary(wager, WagerStatus.REFUNDED, OUTCOME_NO_WINNING_STAKES, pool, refunded=refunded)

            distributed = 0
            payouts = []
            for payout in plan.payouts:
                cursor.execute(
                    """
                    UPDATE wager_entries SET payout = ?, paid_at = ?
                    WHERE entry_id = ? AND paid_at IS NULL
                    """,
                    (payout.amount, now, payout.entry_id),
                )
                if cursor.rowcount == 0:
                    continue
                if payout.amount > 0:
                    balance_ops.apply(
                        cursor,
                        payout.user_id,
                        payout.amount,
                        "wager_win",
                        now,
                        f"wager:{wager_id}",
                        f"Winnings from wager #{wager_id}",
                    )
                distributed += payout.amount
                payouts.append(
                    {"entry_id": payout.entry_id, "user_id": payout.user_id, "stake": payout.stake, "payout": payout.amount}
                )

            # Losing entries are closed out with a zero payout
            cursor.execute(
                "UPDATE wager_entries SET payout = 0, paid_at = ? WHERE wager_id = ? AND paid_at IS NULL",
                (now, wager_id),
            )

            if plan.platform_credit > 0:
                balance_ops.ensure_account(cursor, platform_account_id, wager["currency"], now, is_platform=True)
                balance_ops.apply(
                    cursor,
                    platform_account_id,
                    plan.platform_credit,
                    "platform_fee",
                    now,
                    f"wager:{wager_id}",
                    f"Platform fee from wager #{wager_id}",
                )

            self._insert_settlement(
                cursor,
                "wager",
                wager_id,
                wager["winning_side"],
                plan.pool,
                now,
                platform_fee=plan.fee,
                rounding_remainder=plan.rounding_remainder,
                distributable=plan.distributable,
                distributed=distributed,
                winner_count=len(payouts),
            )
            self._finish(cursor, wager_id, WagerStatus.RESOLVED.value, WagerStatus.SETTLED.value, now)

            return self._summary(
                wager,
                WagerStatus.SETTLED,
                wager["winning_side"],
                plan.pool,
                platform_fee=plan.fee,
                rounding_remainder=plan.rounding_remainder,
                distributable=plan.distributable,
                distributed=distributed,
                payouts=payouts,
            )

    def refund_wager_atomic(self, wager_id: int, now: int | None = None) -> dict:
        """
        OPEN -> REFUNDED for a wager that closed with at most one participant.

        Raises:
            InstanceNotFoundError, AlreadySettledError, DeadlineNotElapsedError,
            InvalidOperationError
        """
        now = now if now is not None else int(time.time())

        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            wager = self._require_wager(cursor, wager_id)
            if wager["status"] in TERMINAL_WAGER_STATUSES:
                raise AlreadySettledError(f"Wager {wager_id} is already {wager['status']}.")
            if wager["status"] != WagerStatus.OPEN.value:
                raise InvalidOperationError(f"Wager {wager_id} has an outcome; settle it instead.")
            if now < wager["deadline"]:
                raise DeadlineNotElapsedError(f"Wager {wager_id} deadline has not passed.")

            entries = self._get_entries_internal(cursor, wager_id)
            if len({e["user_id"] for e in entries}) > 1:
                raise InvalidOperationError(f"Wager {wager_id} has more than one participant.")

            pool = sum(e["amount"] for e in entries)
            refunded = self._refund_entries(
                cursor, wager_id, entries, now, f"Refund for wager #{wager_id} (no opponent)"
            )
            self._insert_settlement(
                cursor, "wager", wager_id, OUTCOME_SINGLE_PARTICIPANT, pool, now, refunded=refunded
            )
            self._finish(cursor, wager_id, WagerStatus.OPEN.value, WagerStatus.REFUNDED.value, now)
            return self._summary(wager, WagerStatus.REFUNDED, OUTCOME_SINGLE_PARTICIPANT, pool, refunded=refunded)

    @staticmethod
    def _summary(
        wager: dict,
        status: WagerStatus,
        outcome: str,
        pool: int,
        platform_fee: int = 0,
        rounding_remainder: int = 0,
        distributable: int = 0,
        distributed: int = 0,
        refunded: int = 0,
        payouts: list[dict] | None = None,
    ) -> dict:
        return {
            "wager_id": wager["wager_id"],
            "status": status.value,
            "outcome": outcome,
            "total_pool": pool,
            "platform_fee": platform_fee,
            "rounding_remainder": rounding_remainder,
            "distributable": distributable,
            "distributed": distributed,
            "refunded": refunded,
            "payouts": payouts or [],
        }
