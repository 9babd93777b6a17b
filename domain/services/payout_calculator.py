"""
Payout calculation domain service.

Pure functions: no I/O, integer minor units in and out.

Rounding policy: the platform fee is ``pool * fee_fraction`` rounded half-up
to whole minor units; each payout is floored. The rounding remainder
(``distributable - sum(payouts)``, always fewer minor units than there are
winners) is credited to the platform account together with the fee, so the
plan always balances exactly against the pool.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal

from domain.models.instance import WAGER_SIDES, SettlementMethod
from domain.models.payout import Payout, PayoutPlan
from domain.models.stake import QuizScore, StakeEntry
from utils.money import apply_fraction_half_up, floor_share


def _split_pool(pool: int, fee_fraction: Decimal) -> tuple[int, int]:
    """Return (fee, distributable) for a gross pool."""
    fee = apply_fraction_half_up(pool, fee_fraction)
    return fee, pool - fee


def calculate_wager_payouts(
    entries: list[StakeEntry],
    winning_side: str,
    fee_fraction: Decimal,
) -> PayoutPlan:
    """
    Pari-mutuel payouts for a resolved wager.

    Each winning entry receives ``stake / winning_side_total * distributable``
    (floored). If nobody staked the winning side the plan is empty, no fee is
    extracted and ``no_winners`` is set.

    Args:
        entries: All stake entries on the wager
        winning_side: "a" or "b"
        fee_fraction: Platform fee as a fraction of the pool (e.g. 0.05)

    Returns:
        PayoutPlan with one Payout per winning entry, ordered by entry id
    """
    if winning_side not in WAGER_SIDES:
        raise ValueError(f"Invalid winning side: {winning_side}")

    pool = sum(e.amount for e in entries)
    winners = sorted((e for e in entries if e.side == winning_side), key=lambda e: e.entry_id)
    winning_total = sum(e.amount for e in winners)

    if winning_total == 0:
        return PayoutPlan.empty(pool)

    fee, distributable = _split_pool(pool, fee_fraction)
    payouts = [
        Payout(
            entry_id=e.entry_id,
            user_id=e.user_id,
            stake=e.amount,
            amount=floor_share(distributable, e.amount, winning_total),
        )
        for e in winners
    ]
    remainder = distributable - sum(p.amount for p in payouts)

    return PayoutPlan(
        pool=pool,
        fee=fee,
        distributable=distributable,
        payouts=payouts,
        rounding_remainder=remainder,
    )


class QuizPayoutStrategy(ABC):
    """Splits a quiz's distributable pool among completed participants."""

    method: SettlementMethod

    @abstractmethod
    def eligible(self, scores: list[QuizScore]) -> list[QuizScore]:
        """Participants who receive a share, in payout order."""
        ...

    @abstractmethod
    def allocate(self, eligible: list[QuizScore], distributable: int) -> list[int]:
        """Amounts for each eligible participant, aligned with ``eligible``."""
        ...


class ProportionalStrategy(QuizPayoutStrategy):
    """Share proportional to score; zero scores receive nothing."""

    method = SettlementMethod.PROPORTIONAL

    def eligible(self, scores: list[QuizScore]) -> list[QuizScore]:
        return sorted((s for s in scores if s.score > 0), key=ranking_key)

    def allocate(self, eligible: list[QuizScore], distributable: int) -> list[int]:
        total_score = sum(s.score for s in eligible)
        return [floor_share(distributable, s.score, total_score) for s in eligible]


class TopWinnersStrategy(QuizPayoutStrategy):
    """
    The top-N scorers split the pool equally.

    Ties at the Nth place go to the earliest completion time, then the lowest
    participant id. Only positive scores qualify.
    """

    method = SettlementMethod.TOP_WINNERS

    def __init__(self, top_count: int):
        if top_count < 1:
            raise ValueError("Top winners count must be at least 1.")
        self.top_count = top_count

    def eligible(self, scores: list[QuizScore]) -> list[QuizScore]:
        ranked = sorted((s for s in scores if s.score > 0), key=ranking_key)
        return ranked[: self.top_count]

    def allocate(self, eligible: list[QuizScore], distributable: int) -> list[int]:
        share = distributable // len(eligible)
        return [share] * len(eligible)


class EqualSplitStrategy(QuizPayoutStrategy):
    """Every completed participant gets the same share regardless of score."""

    method = SettlementMethod.EQUAL_SPLIT

    def eligible(self, scores: list[QuizScore]) -> list[QuizScore]:
        return sorted(scores, key=ranking_key)

    def allocate(self, eligible: list[QuizScore], distributable: int) -> list[int]:
        share = distributable // len(eligible)
        return [share] * len(eligible)


def ranking_key(score: QuizScore) -> tuple[int, int, int]:
    """Leaderboard order: highest score, then earliest completion, then lowest id."""
    return (-score.score, score.completed_at, score.participant_id)


def get_quiz_strategy(method: str | SettlementMethod, top_winners_count: int | None = None) -> QuizPayoutStrategy:
    """Look up the strategy for a settlement method."""
    method = SettlementMethod(method) if not isinstance(method, SettlementMethod) else method
    if method is SettlementMethod.PROPORTIONAL:
        return ProportionalStrategy()
    if method is SettlementMethod.TOP_WINNERS:
        if top_winners_count is None:
            raise ValueError("top_winners settlement requires a winners count.")
        return TopWinnersStrategy(top_winners_count)
    return EqualSplitStrategy()


def calculate_quiz_payouts(
    scores: list[QuizScore],
    entry_fee_per_question: int,
    total_questions: int,
    fee_fraction: Decimal,
    strategy: QuizPayoutStrategy,
) -> PayoutPlan:
    """
    Payouts for a completed quiz.

    The gross pool is ``entry_fee_per_question * total_questions * completed``.
    Returns an empty ``no_winners`` plan when nobody is eligible under the
    strategy (no completions, or every score is zero for score-based methods).
    """
    pool = entry_fee_per_question * total_questions * len(scores)
    eligible = strategy.eligible(scores)
    if not eligible:
        return PayoutPlan.empty(pool)

    fee, distributable = _split_pool(pool, fee_fraction)
    amounts = strategy.allocate(eligible, distributable)
    payouts = [
        Payout(
            entry_id=s.participant_id,
            user_id=s.user_id,
            stake=s.amount,
            amount=amount,
        )
        for s, amount in zip(eligible, amounts)
        if amount > 0
    ]
    remainder = distributable - sum(p.amount for p in payouts)

    return PayoutPlan(
        pool=pool,
        fee=fee,
        distributable=distributable,
        payouts=payouts,
        rounding_remainder=remainder,
    )


@dataclass(frozen=True)
class PotentialReturns:
    """Projected payout if a new entry of ``entry_amount`` joins each side."""

    total_pool: int
    platform_fee: int
    distributable: int
    side_a_potential: int
    side_b_potential: int

    def multiplier(self, side: str, entry_amount: int) -> Decimal:
        potential = self.side_a_potential if side == "a" else self.side_b_potential
        return (Decimal(potential) / Decimal(entry_amount)).quantize(Decimal("0.01"))


def calculate_potential_returns(
    entry_amount: int,
    side_a_total: int,
    side_b_total: int,
    fee_fraction: Decimal,
) -> PotentialReturns:
    """
    Project what a new entry would receive if its side won.

    The entry is counted in both the pool and its own side's total.
    """
    if entry_amount <= 0:
        raise ValueError("Entry amount must be positive.")

    pool = side_a_total + side_b_total + entry_amount
    fee, distributable = _split_pool(pool, fee_fraction)

    return PotentialReturns(
        total_pool=pool,
        platform_fee=fee,
        distributable=distributable,
        side_a_potential=floor_share(distributable, entry_amount, side_a_total + entry_amount),
        side_b_potential=floor_share(distributable, entry_amount, side_b_total + entry_amount),
    )
