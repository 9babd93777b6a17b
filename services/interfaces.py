"""
Service layer interfaces (ABCs).

These abstract base classes define the contracts for the services the API
layer and the scheduler call. Every operation returns a Result carrying
either the payload or a stable error code from services.error_codes.

Usage:
    class MyService(IMyService):
        def my_method(self, param: str) -> Result[dict]:
            ...
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from services.ledger_service import BalanceChange, TransferResult
    from services.result import Result
    from services.settlement_result import SettlementResult
    from services.settlement_sweep_service import SweepReport
    from services.wager_service import JoinResult, PotentialReturnsView


class ILedgerService(ABC):
    """Interface for wallet operations and the ledger audit."""

    @abstractmethod
    def open_account(self, user_id: str, currency: str | None = None) -> "Result[dict]": ...

    @abstractmethod
    def get_balance(self, user_id: str) -> "Result[Decimal]": ...

    @abstractmethod
    def get_transactions(
        self, user_id: str, limit: int = 50, offset: int = 0, tx_type: str | None = None
    ) -> "Result[list[dict]]": ...

    @abstractmethod
    def deposit(self, user_id: str, amount: Decimal | int | str, reference: str) -> "Result[BalanceChange]":
        """Credit a gateway-confirmed deposit; idempotent on reference."""
        ...

    @abstractmethod
    def withdraw(self, user_id: str, amount: Decimal | int | str, reference: str) -> "Result[BalanceChange]": ...

    @abstractmethod
    def reverse_withdrawal(self, reference: str) -> "Result[BalanceChange]": ...

    @abstractmethod
    def transfer(
        self, sender_id: str, recipient_id: str, amount: Decimal | int | str
    ) -> "Result[TransferResult]": ...

    @abstractmethod
    def adjust(
        self, user_id: str, amount: Decimal | int | str, actor_id: str, reason: str, is_admin: bool = False
    ) -> "Result[BalanceChange]": ...

    @abstractmethod
    def audit(self) -> "Result[list[dict]]":
        """Accounts whose balance disagrees with their ledger lines."""
        ...


class IWagerService(ABC):
    """Interface for the wager lifecycle."""

    @abstractmethod
    def create_wager(
        self,
        creator_id: str,
        title: str,
        side_a: str,
        side_b: str,
        amount: Decimal | int | str,
        deadline: int,
        creator_side: str | None = None,
        description: str | None = None,
        fee_percentage: Decimal | str | None = None,
    ) -> "Result[dict]": ...

    @abstractmethod
    def update_wager(
        self,
        wager_id: int,
        editor_id: str,
        title: str | None = None,
        description: str | None = None,
        side_a: str | None = None,
        side_b: str | None = None,
        deadline: int | None = None,
    ) -> "Result[dict]": ...

    @abstractmethod
    def delete_wager(self, wager_id: int, requester_id: str) -> "Result[dict]": ...

    @abstractmethod
    def get_wager(self, wager_id: int) -> "Result[dict]": ...

    @abstractmethod
    def get_entries(self, wager_id: int) -> "Result[list[dict]]": ...

    @abstractmethod
    def get_potential_returns(self, wager_id: int) -> "Result[PotentialReturnsView]": ...

    @abstractmethod
    def join(self, wager_id: int, user_id: str, side: str) -> "Result[JoinResult]": ...

    @abstractmethod
    def set_outcome(
        self, wager_id: int, winning_side: str, actor_id: str, is_admin: bool = False
    ) -> "Result[dict]": ...

    @abstractmethod
    def settle(self, wager_id: int) -> "Result[SettlementResult]": ...

    @abstractmethod
    def refund_if_undersubscribed(self, wager_id: int) -> "Result[SettlementResult]": ...


class IQuizService(ABC):
    """Interface for the quiz lifecycle."""

    @abstractmethod
    def create_quiz(
        self,
        creator_id: str,
        title: str,
        questions: list[dict],
        entry_fee_per_question: Decimal | int | str,
        deadline: int,
        max_participants: int | None = None,
        settlement_method: str = "proportional",
        top_winners_count: int | None = None,
        fee_percentage: Decimal | str | None = None,
        description: str | None = None,
    ) -> "Result[dict]": ...

    @abstractmethod
    def publish_quiz(self, quiz_id: int, creator_id: str) -> "Result[dict]": ...

    @abstractmethod
    def get_quiz(self, quiz_id: int) -> "Result[dict]": ...

    @abstractmethod
    def get_participants(self, quiz_id: int) -> "Result[list[dict]]": ...

    @abstractmethod
    def get_leaderboard(self, quiz_id: int, limit: int = 10) -> "Result[list[dict]]": ...

    @abstractmethod
    def join_quiz(self, quiz_id: int, user_id: str) -> "Result[JoinResult]": ...

    @abstractmethod
    def submit_answers(self, quiz_id: int, user_id: str, answers: dict[int, str]) -> "Result[dict]": ...

    @abstractmethod
    def resolve_quiz(
        self,
        quiz_id: int,
        actor_id: str,
        correct_answers: dict[int, str] | None = None,
        is_admin: bool = False,
    ) -> "Result[dict]": ...

    @abstractmethod
    def settle_quiz(self, quiz_id: int) -> "Result[SettlementResult]": ...

    @abstractmethod
    def refund_quiz_if_undersubscribed(self, quiz_id: int) -> "Result[SettlementResult]": ...


class ISettlementSweepService(ABC):
    """Interface for the periodic deadline sweep."""

    @abstractmethod
    def run_once(self) -> "SweepReport": ...
