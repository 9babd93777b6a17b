"""
Settlement outcome payloads returned by the wager and quiz services.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from utils.money import from_minor


@dataclass
class PayoutLine:
    user_id: str
    amount: Decimal


@dataclass
class SettlementResult:
    """
    What a settle or refund did to one instance. Amounts are major units.

    ``outcome`` is the winning side for wagers, ``"settled"`` for quizzes, or
    a refund reason (``no_winning_stakes``, ``single_participant``).
    """

    instance_type: str
    instance_id: int
    status: str
    outcome: str
    total_pool: Decimal
    platform_fee: Decimal = Decimal("0.00")
    rounding_remainder: Decimal = Decimal("0.00")
    distributable: Decimal = Decimal("0.00")
    distributed: Decimal = Decimal("0.00")
    refunded: Decimal = Decimal("0.00")
    payouts: list[PayoutLine] = field(default_factory=list)

    @property
    def platform_credit(self) -> Decimal:
        return self.platform_fee + self.rounding_remainder

    @classmethod
    def from_summary(cls, instance_type: str, instance_id: int, summary: dict) -> "SettlementResult":
        """Build from a repository settlement summary (minor units)."""
        return cls(
            instance_type=instance_type,
            instance_id=instance_id,
            status=summary["status"],
            outcome=summary["outcome"],
            total_pool=from_minor(summary["total_pool"]),
            platform_fee=from_minor(summary["platform_fee"]),
            rounding_remainder=from_minor(summary["rounding_remainder"]),
            distributable=from_minor(summary["distributable"]),
            distributed=from_minor(summary["distributed"]),
            refunded=from_minor(summary["refunded"]),
            payouts=[PayoutLine(p["user_id"], from_minor(p["payout"])) for p in summary["payouts"]],
        )
