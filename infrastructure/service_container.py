"""
Service container for dependency injection and initialization.

This module centralizes repository and service creation and wiring for one
ledger database, so the API layer and the sweep CLI build the engine the
same way.

Usage:
    container = ServiceContainer(ServiceConfig(db_path="wagr_ledger.db"))
    container.initialize()

    # Access services
    wager_service = container.wager_service
    sweep = container.sweep_service
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import config as app_config
from database import Database
from repositories.account_repository import AccountRepository
from repositories.quiz_repository import QuizRepository
from repositories.wager_repository import WagerRepository
from services.ledger_service import LedgerService
from services.quiz_service import QuizService
from services.settlement_sweep_service import SettlementSweepService
from services.wager_service import WagerService

logger = logging.getLogger("wagr.infrastructure.container")


@dataclass
class RepositoryContainer:
    """Container for all repositories."""

    account: AccountRepository | None = None
    wager: WagerRepository | None = None
    quiz: QuizRepository | None = None


@dataclass
class ServiceConfig:
    """Configuration for service initialization. Defaults come from config.py."""

    # Database
    db_path: str = app_config.DB_PATH
    busy_timeout_ms: int = app_config.DB_BUSY_TIMEOUT_MS

    # Accounts
    platform_account_id: str = app_config.PLATFORM_ACCOUNT_ID
    currency: str = app_config.DEFAULT_CURRENCY
    admin_user_ids: list[str] = field(default_factory=lambda: list(app_config.ADMIN_USER_IDS))

    # Fees
    wager_fee_percentage: Decimal = app_config.WAGER_FEE_PERCENTAGE
    quiz_fee_percentage: Decimal = app_config.QUIZ_FEE_PERCENTAGE

    # Sweep
    auto_resolve_quizzes: bool = app_config.SWEEP_AUTO_RESOLVE_QUIZZES

    # Time source, injectable for tests
    clock: Callable[[], float] = time.time


class ServiceContainer:
    """
    Central container for all application services.

    Handles proper initialization order and dependency injection.

    Example:
        container = ServiceContainer(config)
        container.initialize()
        container.wager_service.join(wager_id, user_id, "a")
    """

    def __init__(self, config: ServiceConfig | None = None):
        """
        Initialize the container with configuration.

        Args:
            config: Service configuration (uses defaults if None)
        """
        self.config = config or ServiceConfig()
        self._initialized = False
        self._repos = RepositoryContainer()

        self._database: Database | None = None
        self._services: dict[str, Any] = {}

    @property
    def is_initialized(self) -> bool:
        """Check if container has been initialized."""
        return self._initialized

    def initialize(self) -> None:
        """
        Initialize all services in correct order.

        This method is idempotent - calling it multiple times has no effect.
        """
        if self._initialized:
            logger.debug("ServiceContainer already initialized, skipping")
            return

        logger.info(f"Initializing ServiceContainer for {self.config.db_path}")

        self._init_database()
        self._init_repositories()
        self._init_services()
        self._ensure_platform_account()

        self._initialized = True
        logger.info("ServiceContainer initialization complete")

    def _init_database(self) -> None:
        """Initialize database and run migrations."""
        logger.debug(f"Initializing database at {self.config.db_path}")
        self._database = Database(self.config.db_path)

    def _init_repositories(self) -> None:
        logger.debug("Initializing repositories")

        db_path = self.config.db_path
        timeout = self.config.busy_timeout_ms
        self._repos.account = AccountRepository(db_path, busy_timeout_ms=timeout)
        self._repos.wager = WagerRepository(db_path, busy_timeout_ms=timeout)
        self._repos.quiz = QuizRepository(db_path, busy_timeout_ms=timeout)

    def _init_services(self) -> None:
        logger.debug("Initializing services")
        cfg = self.config

        self._services["ledger"] = LedgerService(
            account_repo=self._repos.account,
            admin_user_ids=cfg.admin_user_ids,
            platform_account_id=cfg.platform_account_id,
            currency=cfg.currency,
            clock=cfg.clock,
        )
        self._services["wager"] = WagerService(
            wager_repo=self._repos.wager,
            account_repo=self._repos.account,
            admin_user_ids=cfg.admin_user_ids,
            platform_account_id=cfg.platform_account_id,
            fee_percentage=cfg.wager_fee_percentage,
            currency=cfg.currency,
            clock=cfg.clock,
        )
        self._services["quiz"] = QuizService(
            quiz_repo=self._repos.quiz,
            admin_user_ids=cfg.admin_user_ids,
            platform_account_id=cfg.platform_account_id,
            fee_percentage=cfg.quiz_fee_percentage,
            currency=cfg.currency,
            clock=cfg.clock,
        )
        self._services["sweep"] = SettlementSweepService(
            wager_service=self._services["wager"],
            quiz_service=self._services["quiz"],
            wager_repo=self._repos.wager,
            quiz_repo=self._repos.quiz,
            auto_resolve_quizzes=cfg.auto_resolve_quizzes,
            clock=cfg.clock,
        )

    def _ensure_platform_account(self) -> None:
        account = self._services["ledger"].ensure_platform_account()
        logger.debug(f"Platform account {account['user_id']} ready")

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def database(self) -> Database | None:
        return self._database

    @property
    def account_repo(self) -> AccountRepository:
        """Get account repository."""
        return self._repos.account

    @property
    def wager_repo(self) -> WagerRepository:
        """Get wager repository."""
        return self._repos.wager

    @property
    def quiz_repo(self) -> QuizRepository:
        """Get quiz repository."""
        return self._repos.quiz

    @property
    def ledger_service(self) -> "LedgerService | None":
        return self._services.get("ledger")

    @property
    def wager_service(self) -> "WagerService | None":
        return self._services.get("wager")

    @property
    def quiz_service(self) -> "QuizService | None":
        return self._services.get("quiz")

    @property
    def sweep_service(self) -> "SettlementSweepService | None":
        return self._services.get("sweep")
