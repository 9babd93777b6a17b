"""
Domain models - pure data structures representing business entities.
"""

from domain.models.instance import QuizStatus, SettlementMethod, WagerStatus
from domain.models.payout import Payout, PayoutPlan
from domain.models.stake import QuizScore, StakeEntry

__all__ = [
    "Payout",
    "PayoutPlan",
    "QuizScore",
    "QuizStatus",
    "SettlementMethod",
    "StakeEntry",
    "WagerStatus",
]
