"""
Repository layer for data access abstraction.
"""

from repositories.account_repository import AccountRepository
from repositories.base_repository import BaseRepository
from repositories.interfaces import (
    IAccountRepository,
    IQuizRepository,
    IWagerRepository,
)
from repositories.quiz_repository import QuizRepository
from repositories.wager_repository import WagerRepository

__all__ = [
    "BaseRepository",
    "AccountRepository",
    "WagerRepository",
    "QuizRepository",
    "IAccountRepository",
    "IWagerRepository",
    "IQuizRepository",
]
