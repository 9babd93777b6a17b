"""
Application services layer.

Services orchestrate business operations using repositories and domain services.
"""

# Result type for consistent error handling
from services.result import Result

# Service interfaces (ABCs)
from services.interfaces import (
    ILedgerService,
    IQuizService,
    ISettlementSweepService,
    IWagerService,
)

from services.ledger_service import LedgerService
from services.quiz_service import QuizService
from services.settlement_sweep_service import SettlementSweepService, SweepReport
from services.wager_service import WagerService

__all__ = [
    # Concrete services
    "LedgerService",
    "WagerService",
    "QuizService",
    "SettlementSweepService",
    "SweepReport",
    # Result type
    "Result",
    # Interfaces
    "ILedgerService",
    "IWagerService",
    "IQuizService",
    "ISettlementSweepService",
]
