"""
Payout plan produced by the payout calculator.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Payout:
    """Amount owed to one winning entry (minor units)."""

    entry_id: int
    user_id: str
    stake: int
    amount: int

    @property
    def profit(self) -> int:
        return self.amount - self.stake


@dataclass(frozen=True)
class PayoutPlan:
    """
    Distribution plan for one settlement.

    Invariant: ``sum(payouts) + fee + rounding_remainder == pool`` whenever
    ``no_winners`` is False. When ``no_winners`` is True nothing is paid and
    no fee is extracted; the caller refunds every stake.
    """

    pool: int
    fee: int
    distributable: int
    payouts: list[Payout] = field(default_factory=list)
    rounding_remainder: int = 0
    no_winners: bool = False

    @property
    def total_paid(self) -> int:
        return sum(p.amount for p in self.payouts)

    @property
    def platform_credit(self) -> int:
        """Fee plus rounding remainder, credited to the platform account."""
        return self.fee + self.rounding_remainder

    @property
    def winner_count(self) -> int:
        return len(self.payouts)

    @classmethod
    def empty(cls, pool: int) -> "PayoutPlan":
        """Plan for a pool with no eligible winners."""
        return cls(pool=pool, fee=0, distributable=0, payouts=[], no_winners=True)
