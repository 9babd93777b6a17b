"""
Pytest fixtures for tests.

Performance optimization: Uses a session-scoped schema template to avoid
running the migrations for every test. Instead, we run them once and copy
the resulting database file per test.

Amounts passed to repositories are minor units; amounts passed to services
are major units (Decimal, int or str).
"""

import shutil
from decimal import Decimal

import pytest

from database import Database
from repositories.account_repository import AccountRepository
from repositories.quiz_repository import QuizRepository
from repositories.wager_repository import WagerRepository
from services.ledger_service import LedgerService
from services.quiz_service import QuizService
from services.settlement_sweep_service import SettlementSweepService
from services.wager_service import WagerService


# =============================================================================
# CENTRALIZED CONSTANTS
# =============================================================================

START_TIME = 1_700_000_000
"""Unix time the fake clock starts at."""

PLATFORM = "platform"
"""Platform fee account id used by every test service."""

ADMIN = "admin"
"""User id on the admin allowlist of every test service."""

FEE = Decimal("0.05")


class FakeClock:
    """Controllable time source; call it like time.time."""

    def __init__(self, start: int = START_TIME):
        self.now = start

    def __call__(self) -> float:
        return float(self.now)

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture(scope="session")
def _schema_template_path(tmp_path_factory):
    """
    Create a schema template database once per test session.

    All migrations run ONCE here. Tests copy from this template
    instead of running schema initialization each time.
    """
    template_dir = tmp_path_factory.mktemp("schema_template")
    template_path = str(template_dir / "template.db")
    Database(template_path)
    yield template_path


@pytest.fixture
def temp_db_path(tmp_path):
    """Create a temporary database path (no schema)."""
    path = str(tmp_path / "temp.db")
    yield path


@pytest.fixture
def repo_db_path(_schema_template_path, tmp_path):
    """
    Fresh database per test, copied from the session schema template.
    """
    test_db_path = str(tmp_path / "test.db")
    shutil.copy2(_schema_template_path, test_db_path)
    return test_db_path


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def account_repository(repo_db_path):
    repo = AccountRepository(repo_db_path)
    repo.create_account(PLATFORM, is_platform=True, now=START_TIME)
    return repo


@pytest.fixture
def wager_repository(repo_db_path):
    return WagerRepository(repo_db_path)


@pytest.fixture
def quiz_repository(repo_db_path):
    return QuizRepository(repo_db_path)


@pytest.fixture
def fund(account_repository):
    """
    Create an account and deposit into it.

    Usage: fund("alice", 100000) -> balance in minor units
    """
    counter = {"n": 0}

    def _fund(user_id: str, amount: int = 100_000) -> int:
        account_repository.create_account(user_id, now=START_TIME)
        if amount <= 0:
            return account_repository.get_balance(user_id)
        counter["n"] += 1
        result = account_repository.deposit(user_id, amount, f"test-dep-{user_id}-{counter['n']}", now=START_TIME)
        return result["new_balance"]

    return _fund


@pytest.fixture
def ledger_service(account_repository, clock):
    return LedgerService(
        account_repo=account_repository,
        admin_user_ids=[ADMIN],
        platform_account_id=PLATFORM,
        currency="NGN",
        withdrawal_min=Decimal("100"),
        withdrawal_max=Decimal("1000000"),
        transfer_min=Decimal("1"),
        clock=clock,
    )


@pytest.fixture
def wager_service(wager_repository, account_repository, clock):
    return WagerService(
        wager_repo=wager_repository,
        account_repo=account_repository,
        admin_user_ids=[ADMIN],
        platform_account_id=PLATFORM,
        fee_percentage=FEE,
        min_amount=Decimal("1"),
        min_window_seconds=60,
        max_deadline_days=30,
        currency="NGN",
        clock=clock,
    )


@pytest.fixture
def quiz_service(quiz_repository, clock):
    return QuizService(
        quiz_repo=quiz_repository,
        admin_user_ids=[ADMIN],
        platform_account_id=PLATFORM,
        fee_percentage=Decimal("0.10"),
        default_top_winners=3,
        max_participants=50,
        max_questions=20,
        min_window_seconds=60,
        currency="NGN",
        clock=clock,
    )


@pytest.fixture
def sweep_service(wager_service, quiz_service, wager_repository, quiz_repository, clock):
    return SettlementSweepService(
        wager_service=wager_service,
        quiz_service=quiz_service,
        wager_repo=wager_repository,
        quiz_repo=quiz_repository,
        auto_resolve_quizzes=True,
        clock=clock,
    )


@pytest.fixture
def make_wager(wager_service, fund, clock):
    """
    Create an OPEN wager with a one-hour window.

    Usage: make_wager(amount="100", creator="creator", creator_side=None)
    """

    def _make(amount="100", creator="creator", creator_side=None, window=3600, **kwargs):
        fund(creator, 1_000_000)
        result = wager_service.create_wager(
            creator_id=creator,
            title=kwargs.pop("title", "Will it rain in Lagos tomorrow?"),
            side_a=kwargs.pop("side_a", "Yes"),
            side_b=kwargs.pop("side_b", "No"),
            amount=amount,
            deadline=clock.now + window,
            creator_side=creator_side,
            **kwargs,
        )
        assert result.success, result.error
        return result.value

    return _make


def assert_ledger_consistent(account_repository):
    """Every balance equals the sum of its ledger lines."""
    assert account_repository.find_ledger_discrepancies() == []
