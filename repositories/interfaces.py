"""
Abstract repository interfaces for data access.

These interfaces define the contracts implemented by concrete repositories.
Amounts are integer minor units; ``now`` is a unix timestamp that defaults
to the current time when omitted.
"""

from abc import ABC, abstractmethod
from decimal import Decimal


class IAccountRepository(ABC):
    @abstractmethod
    def create_account(
        self, user_id: str, currency: str = "NGN", is_platform: bool = False, now: int | None = None
    ) -> dict: ...

    @abstractmethod
    def get_account(self, user_id: str) -> dict | None: ...

    @abstractmethod
    def get_balance(self, user_id: str) -> int: ...

    @abstractmethod
    def adjust(
        self,
        user_id: str,
        delta: int,
        tx_type: str = "adjustment",
        reference: str | None = None,
        description: str | None = None,
        now: int | None = None,
    ) -> dict: ...

    @abstractmethod
    def deposit(self, user_id: str, amount: int, reference: str, now: int | None = None) -> dict: ...

    @abstractmethod
    def withdraw(self, user_id: str, amount: int, reference: str, now: int | None = None) -> dict: ...

    @abstractmethod
    def reverse_withdrawal(self, reference: str, now: int | None = None) -> dict: ...

    @abstractmethod
    def transfer(self, sender_id: str, recipient_id: str, amount: int, now: int | None = None) -> dict: ...

    @abstractmethod
    def get_transactions(
        self, user_id: str, limit: int = 50, offset: int = 0, tx_type: str | None = None
    ) -> list[dict]: ...

    @abstractmethod
    def get_transactions_by_reference(self, reference: str) -> list[dict]: ...

    @abstractmethod
    def get_transaction_sum(self, user_id: str) -> int: ...

    @abstractmethod
    def find_ledger_discrepancies(self) -> list[dict]: ...

    @abstractmethod
    def get_total_balance(self) -> int: ...


class IWagerRepository(ABC):
    @abstractmethod
    def create_wager(
        self,
        creator_id: str,
        title: str,
        side_a: str,
        side_b: str,
        amount: int,
        deadline: int,
        fee_percentage: Decimal,
        currency: str = "NGN",
        description: str | None = None,
        creator_side: str | None = None,
        now: int | None = None,
    ) -> dict: ...

    @abstractmethod
    def get_wager(self, wager_id: int) -> dict | None: ...

    @abstractmethod
    def get_wagers_by_status(self, status: str) -> list[dict]: ...

    @abstractmethod
    def get_expired_open_wagers(self, now: int) -> list[dict]: ...

    @abstractmethod
    def get_entries(self, wager_id: int) -> list[dict]: ...

    @abstractmethod
    def get_user_entry(self, wager_id: int, user_id: str) -> dict | None: ...

    @abstractmethod
    def get_pool_totals(self, wager_id: int) -> dict: ...

    @abstractmethod
    def join_wager_atomic(self, wager_id: int, user_id: str, side: str, now: int | None = None) -> dict: ...

    @abstractmethod
    def update_wager(self, wager_id: int, editor_id: str, changes: dict) -> dict: ...

    @abstractmethod
    def delete_wager(self, wager_id: int, requester_id: str, now: int | None = None) -> dict: ...

    @abstractmethod
    def resolve_wager(
        self, wager_id: int, winning_side: str, resolved_by: str, now: int | None = None
    ) -> dict: ...

    @abstractmethod
    def settle_wager_atomic(self, wager_id: int, platform_account_id: str, now: int | None = None) -> dict: ...

    @abstractmethod
    def refund_wager_atomic(self, wager_id: int, now: int | None = None) -> dict: ...

    @abstractmethod
    def get_settlement(self, instance_type: str, instance_id: int) -> dict | None: ...


class IQuizRepository(ABC):
    @abstractmethod
    def create_quiz(
        self,
        creator_id: str,
        title: str,
        questions: list[dict],
        entry_fee_per_question: int,
        max_participants: int,
        deadline: int,
        fee_percentage: Decimal,
        settlement_method: str = "proportional",
        top_winners_count: int | None = None,
        currency: str = "NGN",
        description: str | None = None,
        now: int | None = None,
    ) -> dict: ...

    @abstractmethod
    def get_quiz(self, quiz_id: int) -> dict | None: ...

    @abstractmethod
    def get_questions(self, quiz_id: int, include_answers: bool = False) -> list[dict]: ...

    @abstractmethod
    def get_quizzes_by_status(self, status: str) -> list[dict]: ...

    @abstractmethod
    def get_expired_active_quizzes(self, now: int) -> list[dict]: ...

    @abstractmethod
    def publish_quiz(self, quiz_id: int, creator_id: str) -> dict: ...

    @abstractmethod
    def get_participants(self, quiz_id: int) -> list[dict]: ...

    @abstractmethod
    def get_participant(self, quiz_id: int, user_id: str) -> dict | None: ...

    @abstractmethod
    def get_leaderboard(self, quiz_id: int, limit: int = 10) -> list[dict]: ...

    @abstractmethod
    def join_quiz_atomic(self, quiz_id: int, user_id: str, now: int | None = None) -> dict: ...

    @abstractmethod
    def submit_answers_atomic(self, quiz_id: int, user_id: str, answers: dict, now: int | None = None) -> dict: ...

    @abstractmethod
    def resolve_quiz(self, quiz_id: int, correct_answers: dict | None = None, now: int | None = None) -> dict: ...

    @abstractmethod
    def settle_quiz_atomic(self, quiz_id: int, platform_account_id: str, now: int | None = None) -> dict: ...

    @abstractmethod
    def refund_quiz_atomic(self, quiz_id: int, now: int | None = None) -> dict: ...

    @abstractmethod
    def get_settlement(self, instance_type: str, instance_id: int) -> dict | None: ...
