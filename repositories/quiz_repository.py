"""
Repository for quizzes, their questions, participants and responses.
"""

from __future__ import annotations

import logging
import time
from decimal import Decimal

from domain.models.instance import (
    JOINABLE_QUIZ_STATUSES,
    OUTCOME_NO_WINNING_STAKES,
    OUTCOME_SINGLE_PARTICIPANT,
    TERMINAL_QUIZ_STATUSES,
    QuizStatus,
)
from domain.models.stake import QuizScore
from domain.services.payout_calculator import calculate_quiz_payouts, get_quiz_strategy
from repositories import balance_ops
from repositories.base_repository import BaseRepository
from repositories.errors import (
    AlreadySettledError,
    DeadlineElapsedError,
    DeadlineNotElapsedError,
    DuplicateStakeError,
    InstanceNotFoundError,
    InstanceNotOpenError,
    InvalidOperationError,
    NotResolvedError,
    OutcomeAlreadySetError,
    PermissionDeniedError,
    QuizFullError,
)
from repositories.interfaces import IQuizRepository

logger = logging.getLogger("wagr.repositories.quiz")


def normalize_answer(answer: str) -> str:
    """Answers compare case-insensitively, ignoring surrounding whitespace."""
    return str(answer).strip().casefold()


class QuizRepository(BaseRepository, IQuizRepository):
    """
    Handles the quizzes, quiz_questions, quiz_participants and
    quiz_responses tables.
    """

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
    ) -> dict:
        """
        Create a draft quiz with its questions.

        Each question dict carries ``question_text`` and optionally ``points``
        (default 1) and ``correct_answer``.
        """
        if not questions:
            raise InvalidOperationError("A quiz needs at least one question.")
        now = now if now is not None else int(time.time())

        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO quizzes (
                    creator_id, title, description, entry_fee_per_question, total_questions,
                    max_participants, fee_percentage, settlement_method, top_winners_count,
                    currency, status, deadline, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 'draft', ?, ?)
                """,
                (
                    creator_id,
                    title,
                    description,
                    entry_fee_per_question,
                    len(questions),
                    max_participants,
                    str(fee_percentage),
                    settlement_method,
                    top_winners_count,
                    currency,
                    deadline,
                    now,
                ),
            )
            quiz_id = cursor.lastrowid

            for index, question in enumerate(questions):
                answer = question.get("correct_answer")
                cursor.execute(
                    """
                    INSERT INTO quiz_questions (quiz_id, order_index, question_text, points, correct_answer)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        quiz_id,
                        index,
                        question["question_text"],
                        int(question.get("points", 1)),
                        normalize_answer(answer) if answer is not None else None,
                    ),
                )

            return self._get_quiz_internal(cursor, quiz_id)

    def get_quiz(self, quiz_id: int) -> dict | None:
        with self.connection() as conn:
            return self._get_quiz_internal(conn.cursor(), quiz_id)

    def _get_quiz_internal(self, cursor, quiz_id: int) -> dict | None:
        cursor.execute("SELECT * FROM quizzes WHERE quiz_id = ?", (quiz_id,))
        row = cursor.fetchone()
        return dict(row) if row else None

    def _require_quiz(self, cursor, quiz_id: int) -> dict:
        quiz = self._get_quiz_internal(cursor, quiz_id)
        if quiz is None:
            raise InstanceNotFoundError(f"Quiz {quiz_id} not found.")
        return quiz

    def get_questions(self, quiz_id: int, include_answers: bool = False) -> list[dict]:
        with self.connection() as conn:
            questions = self._get_questions_internal(conn.cursor(), quiz_id)
        if not include_answers:
            for question in questions:
                question.pop("correct_answer", None)
        return questions

    def _get_questions_internal(self, cursor, quiz_id: int) -> list[dict]:
        cursor.execute(
            "SELECT * FROM quiz_questions WHERE quiz_id = ? ORDER BY order_index",
            (quiz_id,),
        )
        return [dict(row) for row in cursor.fetchall()]

    def get_quizzes_by_status(self, status: str) -> list[dict]:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM quizzes WHERE status = ? ORDER BY quiz_id", (status,))
            return [dict(row) for row in cursor.fetchall()]

    def get_expired_active_quizzes(self, now: int) -> list[dict]:
        """
        Quizzes not yet resolved whose deadline has passed, with participant
        counts and whether every question has a stored answer.
        """
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT q.*,
                    (SELECT COUNT(DISTINCT p.user_id) FROM quiz_participants p
                     WHERE p.quiz_id = q.quiz_id) AS participant_count,
                    (SELECT COUNT(*) FROM quiz_questions qq
                     WHERE qq.quiz_id = q.quiz_id AND qq.correct_answer IS NULL) AS unanswered_questions
                FROM quizzes q
                WHERE q.status IN ('draft', 'open', 'in_progress') AND q.deadline <= ?
                ORDER BY q.deadline, q.quiz_id
                """,
                (now,),
            )
            return [dict(row) for row in cursor.fetchall()]

    def publish_quiz(self, quiz_id: int, creator_id: str) -> dict:
        """draft -> open."""
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            quiz = self._require_quiz(cursor, quiz_id)
            if quiz["creator_id"] != creator_id:
                raise PermissionDeniedError("Only the creator can publish this quiz.")
            cursor.execute(
                "UPDATE quizzes SET status = 'open' WHERE quiz_id = ? AND status = 'draft'",
                (quiz_id,),
            )
            if cursor.rowcount == 0:
                raise InvalidOperationError(f"Quiz {quiz_id} is {quiz['status']}, not draft.")
            return self._get_quiz_internal(cursor, quiz_id)

    # --- Participants ---

    def get_participants(self, quiz_id: int) -> list[dict]:
        with self.connection() as conn:
            return self._get_participants_internal(conn.cursor(), quiz_id)

    def _get_participants_internal(self, cursor, quiz_id: int) -> list[dict]:
        cursor.execute(
            "SELECT * FROM quiz_participants WHERE quiz_id = ? ORDER BY participant_id",
            (quiz_id,),
        )
        return [dict(row) for row in cursor.fetchall()]

    def get_participant(self, quiz_id: int, user_id: str) -> dict | None:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM quiz_participants WHERE quiz_id = ? AND user_id = ?",
                (quiz_id, user_id),
            )
            row = cursor.fetchone()
            return dict(row) if row else None

    def get_leaderboard(self, quiz_id: int, limit: int = 10) -> list[dict]:
        """Completed participants by score, earliest completion breaking ties."""
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT participant_id, user_id, score, completed_at, payout
                FROM quiz_participants
                WHERE quiz_id = ? AND status = 'completed'
                ORDER BY score DESC, completed_at ASC, participant_id ASC
                LIMIT ?
                """,
                (quiz_id, limit),
            )
            return [dict(row) for row in cursor.fetchall()]

    def join_quiz_atomic(self, quiz_id: int, user_id: str, now: int | None = None) -> dict:
        """
        Pay the entry fee (per-question fee times question count) and join.

        Raises:
            InstanceNotFoundError, InstanceNotOpenError, DeadlineElapsedError,
            DuplicateStakeError, QuizFullError, InsufficientFundsError
        """
        now = now if now is not None else int(time.time())

        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            quiz = self._require_quiz(cursor, quiz_id)
            if quiz["status"] not in JOINABLE_QUIZ_STATUSES:
                raise InstanceNotOpenError(f"Quiz {quiz_id} is not open.")
            if now >= quiz["deadline"]:
                raise DeadlineElapsedError(f"Quiz {quiz_id} has closed.")

            cursor.execute(
                "SELECT 1 FROM quiz_participants WHERE quiz_id = ? AND user_id = ?",
                (quiz_id, user_id),
            )
            if cursor.fetchone():
                raise DuplicateStakeError(f"{user_id} has already joined quiz {quiz_id}.")

            cursor.execute("SELECT COUNT(*) AS n FROM quiz_participants WHERE quiz_id = ?", (quiz_id,))
            if cursor.fetchone()["n"] >= quiz["max_participants"]:
                raise QuizFullError(f"Quiz {quiz_id} is full.")

            amount = quiz["entry_fee_per_question"] * quiz["total_questions"]
            new_balance = balance_ops.apply(
                cursor, user_id, -amount, "quiz_join", now, f"quiz:{quiz_id}", f"Joined quiz #{quiz_id}"
            )
            cursor.execute(
                """
                INSERT INTO quiz_participants (quiz_id, user_id, amount, status, joined_at)
                VALUES (?, ?, ?, 'joined', ?)
                """,
                (quiz_id, user_id, amount, now),
            )
            return {
                "participant_id": cursor.lastrowid,
                "quiz_id": quiz_id,
                "amount": amount,
                "new_balance": new_balance,
            }

    def submit_answers_atomic(self, quiz_id: int, user_id: str, answers: dict, now: int | None = None) -> dict:
        """
        Record a participant's answers, keyed by question id. Once per participant.

        The first submission moves the quiz from open to in_progress.
        """
        now = now if now is not None else int(time.time())

        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            quiz = self._require_quiz(cursor, quiz_id)
            if quiz["status"] not in JOINABLE_QUIZ_STATUSES:
                raise InstanceNotOpenError(f"Quiz {quiz_id} is not accepting answers.")
            if now >= quiz["deadline"]:
                raise DeadlineElapsedError(f"Quiz {quiz_id} has closed.")

            cursor.execute(
                "SELECT * FROM quiz_participants WHERE quiz_id = ? AND user_id = ?",
                (quiz_id, user_id),
            )
            participant = cursor.fetchone()
            if participant is None:
                raise InvalidOperationError(f"{user_id} has not joined quiz {quiz_id}.")
            if participant["status"] == "completed":
                raise InvalidOperationError(f"{user_id} has already submitted answers.")

            question_ids = {q["question_id"] for q in self._get_questions_internal(cursor, quiz_id)}
            unknown = set(answers) - question_ids
            if unknown:
                raise InvalidOperationError(f"Unknown question ids: {sorted(unknown)}")

            for question_id, answer in answers.items():
                cursor.execute(
                    """
                    INSERT INTO quiz_responses (participant_id, question_id, answer, answered_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (participant["participant_id"], question_id, normalize_answer(answer), now),
                )

            cursor.execute(
                """
                UPDATE quiz_participants SET status = 'completed', completed_at = ?
                WHERE participant_id = ?
                """,
                (now, participant["participant_id"]),
            )
            cursor.execute(
                "UPDATE quizzes SET status = 'in_progress' WHERE quiz_id = ? AND status = 'open'",
                (quiz_id,),
            )
            return {
                "participant_id": participant["participant_id"],
                "answered": len(answers),
                "completed_at": now,
            }

    # --- Outcome ---

    def resolve_quiz(self, quiz_id: int, correct_answers: dict | None = None, now: int | None = None) -> dict:
        """
        Set the correct answers and score every completed participant.

        ``correct_answers`` maps question id to answer; when omitted the
        answers stored at creation are used. Moves the quiz to completed.

        Raises:
            InstanceNotFoundError, InstanceNotOpenError, OutcomeAlreadySetError,
            DeadlineNotElapsedError, InvalidOperationError
        """
        now = now if now is not None else int(time.time())

        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            quiz = self._require_quiz(cursor, quiz_id)
            status = quiz["status"]
            if status in (QuizStatus.COMPLETED.value, QuizStatus.SETTLED.value):
                raise OutcomeAlreadySetError(f"Quiz {quiz_id} already has its answers.")
            if status not in JOINABLE_QUIZ_STATUSES:
                raise InstanceNotOpenError(f"Quiz {quiz_id} is {status}.")
            if now < quiz["deadline"]:
                raise DeadlineNotElapsedError(f"Quiz {quiz_id} deadline has not passed.")

            questions = self._get_questions_internal(cursor, quiz_id)
            if correct_answers is not None:
                unknown = set(correct_answers) - {q["question_id"] for q in questions}
                if unknown:
                    raise InvalidOperationError(f"Unknown question ids: {sorted(unknown)}")
                for question in questions:
                    if question["question_id"] in correct_answers:
                        question["correct_answer"] = normalize_answer(correct_answers[question["question_id"]])
                        cursor.execute(
                            "UPDATE quiz_questions SET correct_answer = ? WHERE question_id = ?",
                            (question["correct_answer"], question["question_id"]),
                        )
            missing = [q["question_id"] for q in questions if q["correct_answer"] is None]
            if missing:
                raise InvalidOperationError(f"Questions without a correct answer: {missing}")

            # Score = sum of points for each correctly answered question
            cursor.execute(
                """
                UPDATE quiz_participants
                SET score = COALESCE((
                    SELECT SUM(qq.points)
                    FROM quiz_responses r
                    JOIN quiz_questions qq ON qq.question_id = r.question_id
                    WHERE r.participant_id = quiz_participants.participant_id
                      AND r.answer = qq.correct_answer
                ), 0)
                WHERE quiz_id = ? AND status = 'completed'
                """,
                (quiz_id,),
            )
            cursor.execute(
                """
                UPDATE quizzes SET status = 'completed', resolved_at = ?
                WHERE quiz_id = ? AND status IN ('open', 'in_progress')
                """,
                (now, quiz_id),
            )
            return self._get_quiz_internal(cursor, quiz_id)

    # --- Settlement and refunds ---

    def _refund_participants(self, cursor, quiz_id: int, participants: list[dict], now: int, description: str) -> int:
        """Return every unpaid entry fee. Returns the total refunded."""
        refunded = 0
        for participant in participants:
            cursor.execute(
                """
                UPDATE quiz_participants SET payout = ?, paid_at = ?
                WHERE participant_id = ? AND paid_at IS NULL
                """,
                (participant["amount"], now, participant["participant_id"]),
            )
            if cursor.rowcount == 0:
                continue
            balance_ops.apply(
                cursor, participant["user_id"], participant["amount"], "quiz_refund", now, f"quiz:{quiz_id}", description
            )
            refunded += participant["amount"]
        return refunded

    def _finish(self, cursor, quiz_id: int, from_statuses: tuple, to_status: str, now: int) -> None:
        placeholders = ", ".join("?" for _ in from_statuses)
        cursor.execute(
            f"UPDATE quizzes SET status = ?, settled_at = ? WHERE quiz_id = ? AND status IN ({placeholders})",
            (to_status, now, quiz_id, *from_statuses),
        )
        if cursor.rowcount == 0:
            raise AlreadySettledError(f"Quiz {quiz_id} was settled concurrently.")

    def settle_quiz_atomic(self, quiz_id: int, platform_account_id: str, now: int | None = None) -> dict:
        """
        completed -> settled (or refunded) in one transaction.

        Participants who joined but never submitted are refunded. The pool of
        completed entries is split by the quiz's settlement method; fee and
        rounding remainder go to the platform account. With at most one
        completed participant, or no eligible winner, every completed entry
        is refunded instead and no fee is taken.

        Raises:
            InstanceNotFoundError, AlreadySettledError, NotResolvedError
        """
        now = now if now is not None else int(time.time())

        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            quiz = self._require_quiz(cursor, quiz_id)
            if quiz["status"] in TERMINAL_QUIZ_STATUSES:
                raise AlreadySettledError(f"Quiz {quiz_id} is already {quiz['status']}.")
            if quiz["status"] != QuizStatus.COMPLETED.value:
                raise NotResolvedError(f"Quiz {quiz_id} has not been resolved.")

            participants = self._get_participants_internal(cursor, quiz_id)
            completed = [p for p in participants if p["status"] == "completed"]
            unfinished = [p for p in participants if p["status"] != "completed"]

            unused_refund = self._refund_participants(
                cursor, quiz_id, unfinished, now, f"Unused entry fee for quiz #{quiz_id}"
            )
            pool = sum(p["amount"] for p in completed)
            method = quiz["settlement_method"]

            def refund_all(outcome: str) -> dict:
                refunded = unused_refund + self._refund_participants(
                    cursor, quiz_id, completed, now, f"Refund for quiz #{quiz_id}"
                )
                self._insert_settlement(
                    cursor, "quiz", quiz_id, outcome, pool, now, method=method, refunded=refunded
                )
                self._finish(cursor, quiz_id, (QuizStatus.COMPLETED.value,), QuizStatus.REFUNDED.value, now)
                return self._summary(quiz, QuizStatus.REFUNDED, outcome, pool, refunded=refunded)

            if len({p["user_id"] for p in completed}) <= 1:
                return refund_all(OUTCOME_SINGLE_PARTICIPANT)

            strategy = get_quiz_strategy(method, quiz["top_winners_count"])
            plan = calculate_quiz_payouts(
                [
                    QuizScore(p["participant_id"], p["user_id"], p["score"], p["completed_at"], p["amount"])
                    for p in completed
                ],
                quiz["entry_fee_per_question"],
                quiz["total_questions"],
                Decimal(quiz["fee_percentage"]),
                strategy,
            )
            if plan.no_winners:
                return refund_all(OUTCOME_NO_WINNING_STAKES)

            distributed = 0
            payouts = []
            for payout in plan.payouts:
                cursor.execute(
                    """
                    UPDATE quiz_participants SET payout = ?, paid_at = ?
                    WHERE participant_id = ? AND paid_at IS NULL
                    """,
                    (payout.amount, now, payout.entry_id),
                )
                if cursor.rowcount == 0:
                    continue
                balance_ops.apply(
                    cursor,
                    payout.user_id,
                    payout.amount,
                    "quiz_win",
                    now,
                    f"quiz:{quiz_id}",
                    f"Winnings from quiz #{quiz_id}",
                )
                distributed += payout.amount
                payouts.append(
                    {"participant_id": payout.entry_id, "user_id": payout.user_id, "payout": payout.amount}
                )

            cursor.execute(
                "UPDATE quiz_participants SET payout = 0, paid_at = ? WHERE quiz_id = ? AND paid_at IS NULL",
                (now, quiz_id),
            )

            if plan.platform_credit > 0:
                balance_ops.ensure_account(cursor, platform_account_id, quiz["currency"], now, is_platform=True)
                balance_ops.apply(
                    cursor,
                    platform_account_id,
                    plan.platform_credit,
                    "platform_fee",
                    now,
                    f"quiz:{quiz_id}",
                    f"Platform fee from quiz #{quiz_id}",
                )

            self._insert_settlement(
                cursor,
                "quiz",
                quiz_id,
                "settled",
                plan.pool,
                now,
                method=method,
                platform_fee=plan.fee,
                rounding_remainder=plan.rounding_remainder,
                distributable=plan.distributable,
                distributed=distributed,
                refunded=unused_refund,
                winner_count=len(payouts),
            )
            self._finish(cursor, quiz_id, (QuizStatus.COMPLETED.value,), QuizStatus.SETTLED.value, now)

            return self._summary(
                quiz,
                QuizStatus.SETTLED,
                "settled",
                plan.pool,
                platform_fee=plan.fee,
                rounding_remainder=plan.rounding_remainder,
                distributable=plan.distributable,
                distributed=distributed,
                refunded=unused_refund,
                payouts=payouts,
            )

    def refund_quiz_atomic(self, quiz_id: int, now: int | None = None) -> dict:
        """
        Refund a quiz that closed with at most one participant.

        Raises:
            InstanceNotFoundError, AlreadySettledError, DeadlineNotElapsedError,
            InvalidOperationError
        """
        now = now if now is not None else int(time.time())
        active = (QuizStatus.DRAFT.value, QuizStatus.OPEN.value, QuizStatus.IN_PROGRESS.value)

        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            quiz = self._require_quiz(cursor, quiz_id)
            if quiz["status"] in TERMINAL_QUIZ_STATUSES:
                raise AlreadySettledError(f"Quiz {quiz_id} is already {quiz['status']}.")
            if quiz["status"] not in active:
                raise InvalidOperationError(f"Quiz {quiz_id} has been resolved; settle it instead.")
            if now < quiz["deadline"]:
                raise DeadlineNotElapsedError(f"Quiz {quiz_id} deadline has not passed.")

            participants = self._get_participants_internal(cursor, quiz_id)
            if len({p["user_id"] for p in participants}) > 1:
                raise InvalidOperationError(f"Quiz {quiz_id} has more than one participant.")

            pool = sum(p["amount"] for p in participants)
            refunded = self._refund_participants(
                cursor, quiz_id, participants, now, f"Refund for quiz #{quiz_id} (not enough participants)"
            )
            self._insert_settlement(
                cursor,
                "quiz",
                quiz_id,
                OUTCOME_SINGLE_PARTICIPANT,
                pool,
                now,
                method=quiz["settlement_method"],
                refunded=refunded,
            )
            self._finish(cursor, quiz_id, active, QuizStatus.REFUNDED.value, now)
            return self._summary(quiz, QuizStatus.REFUNDED, OUTCOME_SINGLE_PARTICIPANT, pool, refunded=refunded)

    @staticmethod
    def _summary(
        quiz: dict,
        status: QuizStatus,
        outcome: str,
        pool: int,
        platform_fee: int = 0,
        rounding_remainder: int = 0,
        distributable: int = 0,
        distributed: int = 0,
        refunded: int = 0,
        payouts: list[dict] | None = None,
    ) -> dict:
        return {
            "quiz_id": quiz["quiz_id"],
            "status": status.value,
            "outcome": outcome,
            "method": quiz["settlement_method"],
            "total_pool": pool,
            "platform_fee": platform_fee,
            "rounding_remainder": rounding_remainder,
            "distributable": distributable,
            "distributed": distributed,
            "refunded": refunded,
            "payouts": payouts or [],
        }
