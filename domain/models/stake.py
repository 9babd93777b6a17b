"""
Stake entry domain models.

Amounts are integer minor units.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class StakeEntry:
    """One participant's stake on a wager side."""

    entry_id: int
    user_id: str
    side: str
    amount: int
    created_at: int = 0


@dataclass(frozen=True)
class QuizScore:
    """A completed quiz participant and their score."""

    participant_id: int
    user_id: str
    score: int
    completed_at: int
    amount: int = 0  # Entry fee paid
