"""
Handles wager business logic: creation, joining, outcomes, settlement and refunds.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal

from config import (
    ADMIN_USER_IDS,
    DEFAULT_CURRENCY,
    MIN_WAGER_AMOUNT,
    PLATFORM_ACCOUNT_ID,
    WAGER_FEE_PERCENTAGE,
    WAGER_MAX_DEADLINE_DAYS,
    WAGER_MIN_WINDOW_SECONDS,
    WAGER_SIDE_MAX_LENGTH,
    WAGER_TITLE_MAX_LENGTH,
)
from domain.models.instance import WAGER_SIDES
from domain.services.payout_calculator import calculate_potential_returns
from repositories.interfaces import IAccountRepository, IWagerRepository
from services import error_codes
from services.balance_validation import parse_amount, validate_has_amount
from services.interfaces import IWagerService
from services.ledger_guard import guarded_call
from services.result import Result
from services.settlement_result import SettlementResult
from utils.money import fee_fraction, from_minor

logger = logging.getLogger("wagr.services.wager")


@dataclass
class JoinResult:
    instance_id: int
    user_id: str
    side: str | None
    amount: Decimal
    new_balance: Decimal


@dataclass
class PotentialReturnsView:
    """Projected payout for a new entry on each side (major units)."""

    entry_amount: Decimal
    total_pool: Decimal
    platform_fee: Decimal
    side_a_potential: Decimal
    side_b_potential: Decimal
    side_a_multiplier: Decimal
    side_b_multiplier: Decimal


class WagerService(IWagerService):
    """
    Encapsulates wager operations:
    - Creating, editing and deleting wagers
    - Joining (staking on a side)
    - Setting the outcome
    - Settlement and under-subscription refunds
    """

    def __init__(
        self,
        wager_repo: IWagerRepository,
        account_repo: IAccountRepository,
        admin_user_ids: list[str] | None = None,
        platform_account_id: str | None = None,
        fee_percentage: Decimal | None = None,
        min_amount: Decimal | None = None,
        min_window_seconds: int | None = None,
        max_deadline_days: int | None = None,
        currency: str | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.wager_repo = wager_repo
        self.account_repo = account_repo
        self.admin_user_ids = set(admin_user_ids if admin_user_ids is not None else ADMIN_USER_IDS)
        self.platform_account_id = platform_account_id or PLATFORM_ACCOUNT_ID
        self.fee_percentage = fee_percentage if fee_percentage is not None else WAGER_FEE_PERCENTAGE
        self.min_amount = min_amount if min_amount is not None else MIN_WAGER_AMOUNT
        self.min_window_seconds = (
            min_window_seconds if min_window_seconds is not None else WAGER_MIN_WINDOW_SECONDS
        )
        self.max_deadline_days = max_deadline_days if max_deadline_days is not None else WAGER_MAX_DEADLINE_DAYS
        self.currency = currency or DEFAULT_CURRENCY
        self.clock = clock

    def _now(self) -> int:
        return int(self.clock())

    def is_admin(self, user_id: str) -> bool:
        """Check if user is an admin."""
        return user_id in self.admin_user_ids

    # --- Creation and edits ---

    def _validate_text(self, value: str | None, label: str, max_length: int) -> Result[str]:
        text = (value or "").strip()
        if not text:
            return Result.fail(f"{label} is required.", code=error_codes.VALIDATION_ERROR)
        if len(text) > max_length:
            return Result.fail(f"{label} cannot exceed {max_length} characters.", code=error_codes.VALIDATION_ERROR)
        return Result.ok(text)

    def _validate_deadline(self, deadline: int) -> Result[int]:
        now = self._now()
        if deadline - now < self.min_window_seconds:
            return Result.fail(
                f"Deadline must be at least {self.min_window_seconds} seconds away.",
                code=error_codes.VALIDATION_ERROR,
            )
        if deadline - now > self.max_deadline_days * 86400:
            return Result.fail(
                f"Deadline cannot be more than {self.max_deadline_days} days away.",
                code=error_codes.VALIDATION_ERROR,
            )
        return Result.ok(int(deadline))

    def create_wager(
        self,
        creator_id: str,
        title: str,
        side_a: str,
        side_b: str,
        amount: Decimal | int | str,
        deadline: int,
        creator_side: str | None = None,
        description: str | None = None,
        fee_percentage: Decimal | str | None = None,
    ) -> Result[dict]:
        """
        Create an OPEN wager.

        Args:
            creator_id: Account id of the creator
            title: What the wager is about
            side_a: Label for side "a"
            side_b: Label for side "b"
            amount: Stake every participant pays (major units)
            deadline: Unix timestamp after which joining closes
            creator_side: If set, the creator joins that side immediately
            description: Optional longer text
            fee_percentage: Platform fee fraction; defaults to the configured wager fee

        Returns:
            Result.ok(wager dict) or Result.fail(error, code)
        """
        checks = [
            self._validate_text(title, "Title", WAGER_TITLE_MAX_LENGTH),
            self._validate_text(side_a, "Side A", WAGER_SIDE_MAX_LENGTH),
            self._validate_text(side_b, "Side B", WAGER_SIDE_MAX_LENGTH),
        ]
        for check in checks:
            if not check:
                return check
        title_text, side_a_text, side_b_text = (c.value for c in checks)
        if side_a_text.casefold() == side_b_text.casefold():
            return Result.fail("The two sides must be different.", code=error_codes.VALIDATION_ERROR)
        if creator_side is not None and creator_side not in WAGER_SIDES:
            return Result.fail("Side must be 'a' or 'b'.", code=error_codes.VALIDATION_ERROR)

        parsed = parse_amount(amount, "Wager amount", min_amount=self.min_amount)
        if not parsed:
            return parsed
        deadline_check = self._validate_deadline(deadline)
        if not deadline_check:
            return deadline_check
        try:
            fee = fee_fraction(fee_percentage if fee_percentage is not None else self.fee_percentage)
        except ValueError as e:
            return Result.fail(str(e), code=error_codes.VALIDATION_ERROR)

        if creator_side is not None:
            funds = validate_has_amount(self.account_repo, creator_id, parsed.value, self.currency)
            if not funds:
                return funds

        result = guarded_call(
            logger,
            "create_wager",
            self.wager_repo.create_wager,
            creator_id=creator_id,
            title=title_text,
            side_a=side_a_text,
            side_b=side_b_text,
            amount=parsed.value,
            deadline=deadline_check.value,
            fee_percentage=fee,
            currency=self.currency,
            description=(description or "").strip() or None,
            creator_side=creator_side,
            now=self._now(),
        )
        if result:
            logger.info(
                f"Wager {result.value['wager_id']} created by {creator_id}: "
                f"{title_text!r} stake={from_minor(parsed.value)} fee={fee}"
            )
        return result

    def update_wager(
        self,
        wager_id: int,
        editor_id: str,
        title: str | None = None,
        description: str | None = None,
        side_a: str | None = None,
        side_b: str | None = None,
        deadline: int | None = None,
    ) -> Result[dict]:
        """Edit a wager. Only the creator, only while nobody else has joined."""
        changes: dict = {}
        for value, field, label, max_length in (
            (title, "title", "Title", WAGER_TITLE_MAX_LENGTH),
            (side_a, "side_a", "Side A", WAGER_SIDE_MAX_LENGTH),
            (side_b, "side_b", "Side B", WAGER_SIDE_MAX_LENGTH),
        ):
            if value is None:
                continue
            check = self._validate_text(value, label, max_length)
            if not check:
                return check
            changes[field] = check.value
        if description is not None:
            changes["description"] = description.strip() or None
        if deadline is not None:
            deadline_check = self._validate_deadline(deadline)
            if not deadline_check:
                return deadline_check
            changes["deadline"] = deadline_check.value
        if not changes:
            return Result.fail("Nothing to update.", code=error_codes.VALIDATION_ERROR)

        result = guarded_call(logger, "update_wager", self.wager_repo.update_wager, wager_id, editor_id, changes)
        if result:
            logger.info(f"Wager {wager_id} edited by {editor_id}: {sorted(changes)}")
        return result

    def delete_wager(self, wager_id: int, requester_id: str) -> Result[dict]:
        """Delete a wager nobody else has joined; the creator's stake is refunded."""
        result = guarded_call(
            logger, "delete_wager", self.wager_repo.delete_wager, wager_id, requester_id, now=self._now()
        )
        if result:
            logger.info(f"Wager {wager_id} deleted by {requester_id}")
        return result

    # --- Queries ---

    def get_wager(self, wager_id: int) -> Result[dict]:
        """The wager with its pool totals."""
        wager = self.wager_repo.get_wager(wager_id)
        if wager is None:
            return Result.fail(f"Wager {wager_id} not found.", code=error_codes.NOT_FOUND)
        wager.update(self.wager_repo.get_pool_totals(wager_id))
        return Result.ok(wager)

    def get_entries(self, wager_id: int) -> Result[list[dict]]:
        if self.wager_repo.get_wager(wager_id) is None:
            return Result.fail(f"Wager {wager_id} not found.", code=error_codes.NOT_FOUND)
        return Result.ok(self.wager_repo.get_entries(wager_id))

    def get_potential_returns(self, wager_id: int) -> Result[PotentialReturnsView]:
        """What a new entry would receive if its side won, given the current pool."""
        wager = self.wager_repo.get_wager(wager_id)
        if wager is None:
            return Result.fail(f"Wager {wager_id} not found.", code=error_codes.NOT_FOUND)
        totals = self.wager_repo.get_pool_totals(wager_id)
        projection = calculate_potential_returns(
            wager["amount"],
            totals["side_a_total"],
            totals["side_b_total"],
            Decimal(wager["fee_percentage"]),
        )
        return Result.ok(
            PotentialReturnsView(
                entry_amount=from_minor(wager["amount"]),
                total_pool=from_minor(projection.total_pool),
                platform_fee=from_minor(projection.platform_fee),
                side_a_potential=from_minor(projection.side_a_potential),
                side_b_potential=from_minor(projection.side_b_potential),
                side_a_multiplier=projection.multiplier("a", wager["amount"]),
                side_b_multiplier=projection.multiplier("b", wager["amount"]),
            )
        )

    def get_settlement(self, wager_id: int) -> Result[dict]:
        record = self.wager_repo.get_settlement("wager", wager_id)
        if record is None:
            return Result.fail(f"Wager {wager_id} has not been settled.", code=error_codes.NOT_FOUND)
        return Result.ok(record)

    # --- Stake pool ---

    def join(self, wager_id: int, user_id: str, side: str) -> Result[JoinResult]:
        """
        Stake the wager's amount on a side.

        Fails with instance_not_open, deadline_elapsed, duplicate_stake or
        insufficient_funds, in that order of precedence, without side effects.
        """
        if side not in WAGER_SIDES:
            return Result.fail("Side must be 'a' or 'b'.", code=error_codes.VALIDATION_ERROR)

        result = guarded_call(
            logger, "join", self.wager_repo.join_wager_atomic, wager_id, user_id, side, now=self._now()
        )
        if not result:
            return result

        data = result.value
        logger.info(
            f"{user_id} joined wager {wager_id} on side {side} for {from_minor(data['amount'])} "
            f"(pool {from_minor(data['total_pool'])})"
        )
        return Result.ok(
            JoinResult(
                instance_id=wager_id,
                user_id=user_id,
                side=side,
                amount=from_minor(data["amount"]),
                new_balance=from_minor(data["new_balance"]),
            )
        )

    # --- Settlement orchestration ---

    def set_outcome(
        self,
        wager_id: int,
        winning_side: str,
        actor_id: str,
        is_admin: bool = False,
    ) -> Result[dict]:
        """
        Record the winning side (OPEN -> RESOLVED).

        Only admins may set outcomes. Rejected before the deadline and once
        an outcome exists.
        """
        if not (is_admin or self.is_admin(actor_id)):
            return Result.fail("Only admins can set wager outcomes.", code=error_codes.PERMISSION_DENIED)
        if winning_side not in WAGER_SIDES:
            return Result.fail("Winning side must be 'a' or 'b'.", code=error_codes.VALIDATION_ERROR)

        result = guarded_call(
            logger,
            "set_outcome",
            self.wager_repo.resolve_wager,
            wager_id,
            winning_side,
            actor_id,
            now=self._now(),
        )
        if result:
            logger.info(f"Wager {wager_id} resolved: side {winning_side} wins (by {actor_id})")
        return result

    def settle(self, wager_id: int) -> Result[SettlementResult]:
        """
        Disburse a RESOLVED wager exactly once.

        A repeated call returns ALREADY_SETTLED (see Result.is_no_op) and
        changes nothing. Any failure mid-disbursement rolls back completely
        and leaves the wager RESOLVED for a retry.
        """
        result = guarded_call(
            logger,
            "settle",
            self.wager_repo.settle_wager_atomic,
            wager_id,
            self.platform_account_id,
            now=self._now(),
        )
        if not result:
            return result

        settlement = SettlementResult.from_summary("wager", wager_id, result.value)
        logger.info(
            f"Wager {wager_id} {settlement.status.lower()} ({settlement.outcome}): pool={settlement.total_pool} "
            f"fee={settlement.platform_fee} remainder={settlement.rounding_remainder} "
            f"paid={settlement.distributed} refunded={settlement.refunded}"
        )
        return Result.ok(settlement)

    def refund_if_undersubscribed(self, wager_id: int) -> Result[SettlementResult]:
        """
        Refund an expired OPEN wager with at most one participant.

        A second call returns ALREADY_SETTLED.
        """
        result = guarded_call(
            logger, "refund", self.wager_repo.refund_wager_atomic, wager_id, now=self._now()
        )
        if not result:
            return result

        settlement = SettlementResult.from_summary("wager", wager_id, result.value)
        logger.info(f"Wager {wager_id} refunded: {settlement.refunded} returned")
        return Result.ok(settlement)
