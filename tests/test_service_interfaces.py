"""Tests for service and repository interfaces."""

import inspect
from abc import ABC

import pytest

from repositories.account_repository import AccountRepository
from repositories.interfaces import IAccountRepository, IQuizRepository, IWagerRepository
from repositories.quiz_repository import QuizRepository
from repositories.wager_repository import WagerRepository
from services.interfaces import ILedgerService, IQuizService, ISettlementSweepService, IWagerService
from services.ledger_service import LedgerService
from services.quiz_service import QuizService
from services.settlement_sweep_service import SettlementSweepService
from services.wager_service import WagerService


class TestServiceInterfacesExist:
    """Test that all expected interfaces are defined."""

    def test_wager_service_interface(self):
        assert issubclass(IWagerService, ABC)
        for name in ("create_wager", "join", "set_outcome", "settle", "refund_if_undersubscribed"):
            assert hasattr(IWagerService, name)

    def test_quiz_service_interface(self):
        assert issubclass(IQuizService, ABC)
        for name in ("create_quiz", "join_quiz", "submit_answers", "resolve_quiz", "settle_quiz"):
            assert hasattr(IQuizService, name)

    def test_ledger_service_interface(self):
        assert issubclass(ILedgerService, ABC)
        for name in ("deposit", "withdraw", "reverse_withdrawal", "transfer", "adjust", "audit"):
            assert hasattr(ILedgerService, name)


@pytest.mark.parametrize(
    "interface, implementation",
    [
        (ILedgerService, LedgerService),
        (IWagerService, WagerService),
        (IQuizService, QuizService),
        (ISettlementSweepService, SettlementSweepService),
        (IAccountRepository, AccountRepository),
        (IWagerRepository, WagerRepository),
        (IQuizRepository, QuizRepository),
    ],
)
def test_implementation_covers_interface(interface, implementation):
    """Concrete classes implement every abstract method and are instantiable."""
    assert issubclass(implementation, interface)
    assert not inspect.isabstract(implementation)
