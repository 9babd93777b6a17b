"""
Handles quiz business logic: authoring, entry, answering, resolution and settlement.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from decimal import Decimal

from config import (
    ADMIN_USER_IDS,
    DEFAULT_CURRENCY,
    PLATFORM_ACCOUNT_ID,
    QUIZ_DEFAULT_TOP_WINNERS,
    QUIZ_FEE_PERCENTAGE,
    QUIZ_MAX_PARTICIPANTS,
    QUIZ_MAX_QUESTIONS,
    WAGER_MIN_WINDOW_SECONDS,
    WAGER_TITLE_MAX_LENGTH,
)
from domain.models.instance import SettlementMethod
from repositories.interfaces import IQuizRepository
from services import error_codes
from services.balance_validation import parse_amount
from services.interfaces import IQuizService
from services.ledger_guard import guarded_call
from services.result import Result
from services.settlement_result import SettlementResult
from services.wager_service import JoinResult
from utils.money import fee_fraction, from_minor

logger = logging.getLogger("wagr.services.quiz")


def _keyed_by_question_id(answers: dict) -> dict[int, str] | None:
    try:
        return {int(question_id): answer for question_id, answer in answers.items()}
    except (TypeError, ValueError):
        return None


class QuizService(IQuizService):
    """
    Quizzes are participant-funded: everyone pays
    ``entry_fee_per_question * total_questions`` on joining, and the pool of
    completed entries is split by the quiz's settlement method.
    """

    def __init__(
        self,
        quiz_repo: IQuizRepository,
        admin_user_ids: list[str] | None = None,
        platform_account_id: str | None = None,
        fee_percentage: Decimal | None = None,
        default_top_winners: int | None = None,
        max_participants: int | None = None,
        max_questions: int | None = None,
        min_window_seconds: int | None = None,
        currency: str | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.quiz_repo = quiz_repo
        self.admin_user_ids = set(admin_user_ids if admin_user_ids is not None else ADMIN_USER_IDS)
        self.platform_account_id = platform_account_id or PLATFORM_ACCOUNT_ID
        self.fee_percentage = fee_percentage if fee_percentage is not None else QUIZ_FEE_PERCENTAGE
        self.default_top_winners = default_top_winners or QUIZ_DEFAULT_TOP_WINNERS
        self.max_participants = max_participants or QUIZ_MAX_PARTICIPANTS
        self.max_questions = max_questions or QUIZ_MAX_QUESTIONS
        self.min_window_seconds = (
            min_window_seconds if min_window_seconds is not None else WAGER_MIN_WINDOW_SECONDS
        )
        self.currency = currency or DEFAULT_CURRENCY
        self.clock = clock

    def _now(self) -> int:
        return int(self.clock())

    def is_admin(self, user_id: str) -> bool:
        return user_id in self.admin_user_ids

    def _validate_questions(self, questions: list[dict]) -> Result[list[dict]]:
        if not questions:
            return Result.fail("A quiz needs at least one question.", code=error_codes.VALIDATION_ERROR)
        if len(questions) > self.max_questions:
            return Result.fail(
                f"A quiz can have at most {self.max_questions} questions.", code=error_codes.VALIDATION_ERROR
            )
        cleaned = []
        for index, question in enumerate(questions, start=1):
            text = str(question.get("question_text") or "").strip()
            if not text:
                return Result.fail(f"Question {index} has no text.", code=error_codes.VALIDATION_ERROR)
            points = question.get("points", 1)
            if not isinstance(points, int) or isinstance(points, bool) or points <= 0:
                return Result.fail(
                    f"Question {index} points must be a positive integer.", code=error_codes.VALIDATION_ERROR
                )
            answer = question.get("correct_answer")
            if answer is not None and not str(answer).strip():
                answer = None
            cleaned.append({"question_text": text, "points": points, "correct_answer": answer})
        return Result.ok(cleaned)

    def create_quiz(
        self,
        creator_id: str,
        title: str,
        questions: list[dict],
        entry_fee_per_question: Decimal | int | str,
        deadline: int,
        max_participants: int | None = None,
        settlement_method: str = SettlementMethod.PROPORTIONAL.value,
        top_winners_count: int | None = None,
        fee_percentage: Decimal | str | None = None,
        description: str | None = None,
    ) -> Result[dict]:
        """
        Create a draft quiz.

        Questions are dicts with ``question_text`` and optional ``points`` and
        ``correct_answer``. Answers stored here can be reused at resolution.
        """
        title_text = (title or "").strip()
        if not title_text:
            return Result.fail("Title is required.", code=error_codes.VALIDATION_ERROR)
        if len(title_text) > WAGER_TITLE_MAX_LENGTH:
            return Result.fail(
                f"Title cannot exceed {WAGER_TITLE_MAX_LENGTH} characters.", code=error_codes.VALIDATION_ERROR
            )

        checked = self._validate_questions(questions)
        if not checked:
            return checked
        fee_per_question = parse_amount(entry_fee_per_question, "Entry fee per question")
        if not fee_per_question:
            return fee_per_question

        try:
            method = SettlementMethod(settlement_method)
        except ValueError:
            return Result.fail(
                f"Unknown settlement method: {settlement_method}", code=error_codes.VALIDATION_ERROR
            )
        if method is SettlementMethod.TOP_WINNERS:
            top_winners_count = top_winners_count if top_winners_count is not None else self.default_top_winners
            if top_winners_count < 1:
                return Result.fail("Top winners count must be at least 1.", code=error_codes.VALIDATION_ERROR)
        else:
            top_winners_count = None

        capacity = max_participants if max_participants is not None else self.max_participants
        if capacity < 2 or capacity > self.max_participants:
            return Result.fail(
                f"Max participants must be between 2 and {self.max_participants}.",
                code=error_codes.VALIDATION_ERROR,
            )
        if deadline - self._now() < self.min_window_seconds:
            return Result.fail(
                f"Deadline must be at least {self.min_window_seconds} seconds away.",
                code=error_codes.VALIDATION_ERROR,
            )
        try:
            fee = fee_fraction(fee_percentage if fee_percentage is not None else self.fee_percentage)
        except ValueError as e:
            return Result.fail(str(e), code=error_codes.VALIDATION_ERROR)

        result = guarded_call(
            logger,
            "create_quiz",
            self.quiz_repo.create_quiz,
            creator_id=creator_id,
            title=title_text,
            questions=checked.value,
            entry_fee_per_question=fee_per_question.value,
            max_participants=capacity,
            deadline=int(deadline),
            fee_percentage=fee,
            settlement_method=method.value,
            top_winners_count=top_winners_count,
            currency=self.currency,
            description=(description or "").strip() or None,
            now=self._now(),
        )
        if result:
            logger.info(
                f"Quiz {result.value['quiz_id']} drafted by {creator_id}: {len(checked.value)} questions, "
                f"{method.value}, fee/question={from_minor(fee_per_question.value)}"
            )
        return result

    def publish_quiz(self, quiz_id: int, creator_id: str) -> Result[dict]:
        result = guarded_call(logger, "publish_quiz", self.quiz_repo.publish_quiz, quiz_id, creator_id)
        if result:
            logger.info(f"Quiz {quiz_id} published")
        return result

    def get_quiz(self, quiz_id: int) -> Result[dict]:
        """The quiz with its questions (correct answers hidden)."""
        quiz = self.quiz_repo.get_quiz(quiz_id)
        if quiz is None:
            return Result.fail(f"Quiz {quiz_id} not found.", code=error_codes.NOT_FOUND)
        quiz["questions"] = self.quiz_repo.get_questions(quiz_id)
        quiz["entry_fee"] = from_minor(quiz["entry_fee_per_question"] * quiz["total_questions"])
        return Result.ok(quiz)

    def get_participants(self, quiz_id: int) -> Result[list[dict]]:
        if self.quiz_repo.get_quiz(quiz_id) is None:
            return Result.fail(f"Quiz {quiz_id} not found.", code=error_codes.NOT_FOUND)
        return Result.ok(self.quiz_repo.get_participants(quiz_id))

    def get_leaderboard(self, quiz_id: int, limit: int = 10) -> Result[list[dict]]:
        if self.quiz_repo.get_quiz(quiz_id) is None:
            return Result.fail(f"Quiz {quiz_id} not found.", code=error_codes.NOT_FOUND)
        return Result.ok(self.quiz_repo.get_leaderboard(quiz_id, limit=limit))

    def get_settlement(self, quiz_id: int) -> Result[dict]:
        record = self.quiz_repo.get_settlement("quiz", quiz_id)
        if record is None:
            return Result.fail(f"Quiz {quiz_id} has not been settled.", code=error_codes.NOT_FOUND)
        return Result.ok(record)

    def join_quiz(self, quiz_id: int, user_id: str) -> Result[JoinResult]:
        """Pay the entry fee and join an open quiz."""
        result = guarded_call(logger, "join_quiz", self.quiz_repo.join_quiz_atomic, quiz_id, user_id, now=self._now())
        if not result:
            return result
        data = result.value
        logger.info(f"{user_id} joined quiz {quiz_id} for {from_minor(data['amount'])}")
        return Result.ok(
            JoinResult(
                instance_id=quiz_id,
                user_id=user_id,
                side=None,
                amount=from_minor(data["amount"]),
                new_balance=from_minor(data["new_balance"]),
            )
        )

    def submit_answers(self, quiz_id: int, user_id: str, answers: dict[int, str]) -> Result[dict]:
        """Submit all answers at once, keyed by question id."""
        if not answers:
            return Result.fail("No answers submitted.", code=error_codes.VALIDATION_ERROR)
        answers = _keyed_by_question_id(answers)
        if answers is None:
            return Result.fail("Answers must be keyed by question id.", code=error_codes.VALIDATION_ERROR)
        result = guarded_call(
            logger, "submit_answers", self.quiz_repo.submit_answers_atomic, quiz_id, user_id, answers, now=self._now()
        )
        if result:
            logger.info(f"{user_id} completed quiz {quiz_id} ({len(answers)} answers)")
        return result

    def resolve_quiz(
        self,
        quiz_id: int,
        actor_id: str,
        correct_answers: dict[int, str] | None = None,
        is_admin: bool = False,
    ) -> Result[dict]:
        """
        Set the correct answers and score participants (-> completed).

        Omit ``correct_answers`` to use the answers stored at creation.
        """
        if not (is_admin or self.is_admin(actor_id)):
            return Result.fail("Only admins can resolve quizzes.", code=error_codes.PERMISSION_DENIED)
        if correct_answers is not None:
            correct_answers = _keyed_by_question_id(correct_answers)
            if correct_answers is None:
                return Result.fail("Answers must be keyed by question id.", code=error_codes.VALIDATION_ERROR)
            blank = sorted(
                qid for qid, answer in correct_answers.items() if answer is None or not str(answer).strip()
            )
            if blank:
                return Result.fail(
                    f"Correct answers cannot be blank (questions {', '.join(map(str, blank))}).",
                    code=error_codes.VALIDATION_ERROR,
                )
        return self._resolve(quiz_id, correct_answers, actor_id)

    def auto_resolve(self, quiz_id: int) -> Result[dict]:
        """Resolve with stored answers; used by the deadline sweep."""
        return self._resolve(quiz_id, None, "sweep")

    def _resolve(self, quiz_id: int, correct_answers: dict | None, actor_id: str) -> Result[dict]:
        result = guarded_call(
            logger, "resolve_quiz", self.quiz_repo.resolve_quiz, quiz_id, correct_answers, now=self._now()
        )
        if result:
            logger.info(f"Quiz {quiz_id} resolved by {actor_id}")
        return result

    def settle_quiz(self, quiz_id: int) -> Result[SettlementResult]:
        """
        Disburse a completed quiz exactly once; a repeated call is an
        ALREADY_SETTLED no-op.
        """
        result = guarded_call(
            logger, "settle_quiz", self.quiz_repo.settle_quiz_atomic, quiz_id, self.platform_account_id, now=self._now()
        )
        if not result:
            return result
        settlement = SettlementResult.from_summary("quiz", quiz_id, result.value)
        logger.info(
            f"Quiz {quiz_id} {settlement.status} ({settlement.outcome}): pool={settlement.total_pool} "
            f"fee={settlement.platform_fee} remainder={settlement.rounding_remainder} "
            f"paid={settlement.distributed} refunded={settlement.refunded}"
        )
        return Result.ok(settlement)

    def refund_quiz_if_undersubscribed(self, quiz_id: int) -> Result[SettlementResult]:
        result = guarded_call(logger, "refund_quiz", self.quiz_repo.refund_quiz_atomic, quiz_id, now=self._now())
        if not result:
            return result
        settlement = SettlementResult.from_summary("quiz", quiz_id, result.value)
        logger.info(f"Quiz {quiz_id} refunded: {settlement.refunded} returned")
        return Result.ok(settlement)
