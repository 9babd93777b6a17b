"""
Domain services containing pure business logic.
"""

from domain.services.payout_calculator import (
    EqualSplitStrategy,
    ProportionalStrategy,
    TopWinnersStrategy,
    calculate_potential_returns,
    calculate_quiz_payouts,
    calculate_wager_payouts,
    get_quiz_strategy,
)

__all__ = [
    "EqualSplitStrategy",
    "ProportionalStrategy",
    "TopWinnersStrategy",
    "calculate_potential_returns",
    "calculate_quiz_payouts",
    "calculate_wager_payouts",
    "get_quiz_strategy",
]
