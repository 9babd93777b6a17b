"""
Account and wallet operations: balances, gateway deposits and withdrawals,
peer transfers, admin adjustments and the ledger audit.
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
    PLATFORM_ACCOUNT_ID,
    TRANSFER_MIN_AMOUNT,
    WITHDRAWAL_MAX_AMOUNT,
    WITHDRAWAL_MIN_AMOUNT,
)
from repositories.interfaces import IAccountRepository
from services import error_codes
from services.balance_validation import parse_amount, validate_has_amount
from services.interfaces import ILedgerService
from services.ledger_guard import guarded_call
from services.result import Result
from utils.money import from_minor, to_minor

logger = logging.getLogger("wagr.services.ledger")


@dataclass
class BalanceChange:
    """Outcome of a single-account money movement (amounts in major units)."""

    user_id: str
    amount: Decimal
    new_balance: Decimal
    transaction_id: int | None = None
    duplicate: bool = False


@dataclass
class TransferResult:
    sender_id: str
    recipient_id: str
    amount: Decimal
    sender_balance: Decimal
    recipient_balance: Decimal


class LedgerService(ILedgerService):
    """
    Wallet operations over the account repository.

    The payment gateway integration calls deposit() once a payment is
    confirmed and reverse_withdrawal() when a payout transfer fails; the
    engine never initiates gateway calls itself.
    """

    def __init__(
        self,
        account_repo: IAccountRepository,
        admin_user_ids: list[str] | None = None,
        platform_account_id: str | None = None,
        currency: str | None = None,
        withdrawal_min: Decimal | None = None,
        withdrawal_max: Decimal | None = None,
        transfer_min: Decimal | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.account_repo = account_repo
        self.admin_user_ids = set(admin_user_ids if admin_user_ids is not None else ADMIN_USER_IDS)
        self.platform_account_id = platform_account_id or PLATFORM_ACCOUNT_ID
        self.currency = currency or DEFAULT_CURRENCY
        self.withdrawal_min = withdrawal_min if withdrawal_min is not None else WITHDRAWAL_MIN_AMOUNT
        self.withdrawal_max = withdrawal_max if withdrawal_max is not None else WITHDRAWAL_MAX_AMOUNT
        self.transfer_min = transfer_min if transfer_min is not None else TRANSFER_MIN_AMOUNT
        self.clock = clock

    def _now(self) -> int:
        return int(self.clock())

    def is_admin(self, user_id: str) -> bool:
        return user_id in self.admin_user_ids

    def open_account(self, user_id: str, currency: str | None = None) -> Result[dict]:
        """Create a zero-balance account (idempotent)."""
        if not user_id or not str(user_id).strip():
            return Result.fail("User id is required.", code=error_codes.VALIDATION_ERROR)
        account = self.account_repo.create_account(user_id, currency or self.currency, now=self._now())
        return Result.ok(account)

    def ensure_platform_account(self) -> dict:
        """Create the fee account if missing. Called once at startup."""
        return self.account_repo.create_account(
            self.platform_account_id, self.currency, is_platform=True, now=self._now()
        )

    def get_balance(self, user_id: str) -> Result[Decimal]:
        account = self.account_repo.get_account(user_id)
        if account is None:
            return Result.fail(f"Account {user_id} not found.", code=error_codes.ACCOUNT_NOT_FOUND)
        return Result.ok(from_minor(account["balance"]))

    def get_transactions(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
        tx_type: str | None = None,
    ) -> Result[list[dict]]:
        """Ledger lines for a user, newest first, with amounts in major units."""
        if limit <= 0 or offset < 0:
            return Result.fail("Invalid pagination.", code=error_codes.VALIDATION_ERROR)
        rows = self.account_repo.get_transactions(user_id, limit=limit, offset=offset, tx_type=tx_type)
        for row in rows:
            row["amount"] = from_minor(row["amount"])
        return Result.ok(rows)

    def deposit(self, user_id: str, amount: Decimal | int | str, reference: str) -> Result[BalanceChange]:
        """
        Credit a gateway-confirmed deposit. Repeating the same reference is
        a no-op that returns the original transaction.
        """
        if not reference:
            return Result.fail("A gateway reference is required.", code=error_codes.VALIDATION_ERROR)
        parsed = parse_amount(amount, "Deposit amount")
        if not parsed:
            return parsed

        result = guarded_call(
            logger, "deposit", self.account_repo.deposit, user_id, parsed.value, reference, now=self._now()
        )
        if not result:
            return result
        data = result.value
        if data["duplicate"]:
            logger.debug(f"Deposit {reference} for {user_id} already applied")
        else:
            logger.info(f"Deposit {reference}: {user_id} +{from_minor(parsed.value)}")
        return Result.ok(
            BalanceChange(
                user_id=user_id,
                amount=from_minor(parsed.value),
                new_balance=from_minor(data["new_balance"]),
                transaction_id=data["transaction_id"],
                duplicate=data["duplicate"],
            )
        )

    def withdraw(self, user_id: str, amount: Decimal | int | str, reference: str) -> Result[BalanceChange]:
        """Debit a withdrawal within the configured limits."""
        if not reference:
            return Result.fail("A gateway reference is required.", code=error_codes.VALIDATION_ERROR)
        parsed = parse_amount(
            amount,
            "Withdrawal amount",
            min_amount=self.withdrawal_min,
            max_amount=self.withdrawal_max,
            limit_code=error_codes.WITHDRAWAL_LIMIT_EXCEEDED,
        )
        if not parsed:
            return parsed

        check = validate_has_amount(self.account_repo, user_id, parsed.value, self.currency)
        if not check:
            return check

        result = guarded_call(
            logger, "withdraw", self.account_repo.withdraw, user_id, parsed.value, reference, now=self._now()
        )
        if not result:
            return result
        logger.info(f"Withdrawal {reference}: {user_id} -{from_minor(parsed.value)}")
        return Result.ok(
            BalanceChange(
                user_id=user_id,
                amount=from_minor(-parsed.value),
                new_balance=from_minor(result.value["new_balance"]),
                transaction_id=result.value["transaction_id"],
            )
        )

    def reverse_withdrawal(self, reference: str) -> Result[BalanceChange]:
        """Credit back a withdrawal the gateway reported as failed (once)."""
        result = guarded_call(
            logger, "reverse_withdrawal", self.account_repo.reverse_withdrawal, reference, now=self._now()
        )
        if not result:
            return result
        data = result.value
        if not data["duplicate"]:
            logger.info(f"Withdrawal {reference} reversed for {data['user_id']}")
        return Result.ok(
            BalanceChange(
                user_id=data["user_id"],
                amount=from_minor(data["amount"]),
                new_balance=from_minor(data["new_balance"]),
                transaction_id=data["transaction_id"],
                duplicate=data["duplicate"],
            )
        )

    def transfer(self, sender_id: str, recipient_id: str, amount: Decimal | int | str) -> Result[TransferResult]:
        """Move funds between two users in one atomic unit."""
        if sender_id == recipient_id:
            return Result.fail("You cannot transfer to yourself.", code=error_codes.VALIDATION_ERROR)
        parsed = parse_amount(amount, "Transfer amount", min_amount=self.transfer_min)
        if not parsed:
            return parsed

        check = validate_has_amount(self.account_repo, sender_id, parsed.value, self.currency)
        if not check:
            return check

        result = guarded_call(
            logger, "transfer", self.account_repo.transfer, sender_id, recipient_id, parsed.value, now=self._now()
        )
        if not result:
            return result
        logger.info(f"Transfer {sender_id} -> {recipient_id}: {from_minor(parsed.value)}")
        return Result.ok(
            TransferResult(
                sender_id=sender_id,
                recipient_id=recipient_id,
                amount=from_minor(parsed.value),
                sender_balance=from_minor(result.value["sender_balance"]),
                recipient_balance=from_minor(result.value["recipient_balance"]),
            )
        )

    def adjust(
        self,
        user_id: str,
        amount: Decimal | int | str,
        actor_id: str,
        reason: str,
        is_admin: bool = False,
    ) -> Result[BalanceChange]:
        """Admin correction: a signed amount with an ``adjustment`` ledger line."""
        if not (is_admin or self.is_admin(actor_id)):
            return Result.fail("Only admins can adjust balances.", code=error_codes.PERMISSION_DENIED)
        if not reason or not reason.strip():
            return Result.fail("A reason is required.", code=error_codes.VALIDATION_ERROR)
        try:
            delta = to_minor(amount)
        except ValueError as e:
            return Result.fail(str(e), code=error_codes.VALIDATION_ERROR)
        if delta == 0:
            return Result.fail("Adjustment must be non-zero.", code=error_codes.VALIDATION_ERROR)

        result = guarded_call(
            logger,
            "adjust",
            self.account_repo.adjust,
            user_id,
            delta,
            "adjustment",
            f"admin:{actor_id}",
            reason.strip(),
            now=self._now(),
        )
        if not result:
            return result
        logger.info(f"Adjustment by {actor_id}: {user_id} {from_minor(delta):+} ({reason.strip()})")
        return Result.ok(
            BalanceChange(
                user_id=user_id,
                amount=from_minor(delta),
                new_balance=from_minor(result.value["new_balance"]),
            )
        )

    def audit(self) -> Result[list[dict]]:
        """
        Conservation audit: accounts whose balance differs from the sum of
        their ledger lines. An empty list means the ledger is consistent.
        """
        discrepancies = self.account_repo.find_ledger_discrepancies()
        for row in discrepancies:
            logger.error(
                f"Ledger discrepancy for {row['user_id']}: balance={row['balance']} "
                f"ledger_total={row['ledger_total']}"
            )
        return Result.ok(discrepancies)
