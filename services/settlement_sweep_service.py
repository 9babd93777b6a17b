"""
Periodic deadline sweep: refunds, auto-resolution and settlement of expired instances.

Every transition the sweep triggers is idempotent, so overlapping or
repeated runs are safe. Each instance is handled on its own; one failure is
logged and reported without stopping the rest.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from config import SWEEP_AUTO_RESOLVE_QUIZZES
from domain.models.instance import QuizStatus, WagerStatus
from repositories.interfaces import IQuizRepository, IWagerRepository
from services.interfaces import ISettlementSweepService
from services.quiz_service import QuizService
from services.result import Result
from services.wager_service import WagerService

logger = logging.getLogger("wagr.services.sweep")


@dataclass
class SweepReport:
    """Instance ids touched by one sweep, as ``(instance_type, instance_id)`` pairs."""

    refunded: list[tuple[str, int]] = field(default_factory=list)
    resolved: list[tuple[str, int]] = field(default_factory=list)
    settled: list[tuple[str, int]] = field(default_factory=list)
    skipped: list[tuple[str, int, str]] = field(default_factory=list)
    failed: list[tuple[str, int, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def summary(self) -> str:
        return (
            f"refunded={len(self.refunded)} resolved={len(self.resolved)} settled={len(self.settled)} "
            f"skipped={len(self.skipped)} failed={len(self.failed)}"
        )


class SettlementSweepService(ISettlementSweepService):
    """Entry point for the external scheduler."""

    def __init__(
        self,
        wager_service: WagerService,
        quiz_service: QuizService,
        wager_repo: IWagerRepository,
        quiz_repo: IQuizRepository,
        auto_resolve_quizzes: bool | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.wager_service = wager_service
        self.quiz_service = quiz_service
        self.wager_repo = wager_repo
        self.quiz_repo = quiz_repo
        self.auto_resolve_quizzes = (
            auto_resolve_quizzes if auto_resolve_quizzes is not None else SWEEP_AUTO_RESOLVE_QUIZZES
        )
        self.clock = clock

    def run_once(self) -> SweepReport:
        """
        One sweep pass:
        1. refund expired OPEN wagers with at most one participant
        2. settle every RESOLVED wager
        3. auto-resolve or refund expired quizzes
        4. settle every completed quiz
        """
        now = int(self.clock())
        report = SweepReport()

        for wager in self.wager_repo.get_expired_open_wagers(now):
            wager_id = wager["wager_id"]
            if wager["participant_count"] <= 1:
                self._apply(report, report.refunded, "wager", wager_id, self.wager_service.refund_if_undersubscribed)
            else:
                report.skipped.append(("wager", wager_id, "awaiting_outcome"))

        for wager in self.wager_repo.get_wagers_by_status(WagerStatus.RESOLVED.value):
            self._apply(report, report.settled, "wager", wager["wager_id"], self.wager_service.settle)

        for quiz in self.quiz_repo.get_expired_active_quizzes(now):
            quiz_id = quiz["quiz_id"]
            if quiz["participant_count"] <= 1:
                self._apply(
                    report, report.refunded, "quiz", quiz_id, self.quiz_service.refund_quiz_if_undersubscribed
                )
            elif self.auto_resolve_quizzes and quiz["unanswered_questions"] == 0:
                self._apply(report, report.resolved, "quiz", quiz_id, self.quiz_service.auto_resolve)
            else:
                report.skipped.append(("quiz", quiz_id, "awaiting_answers"))

        for quiz in self.quiz_repo.get_quizzes_by_status(QuizStatus.COMPLETED.value):
            self._apply(report, report.settled, "quiz", quiz["quiz_id"], self.quiz_service.settle_quiz)

        if report.failed:
            logger.warning(f"Sweep finished with failures: {report.summary()}")
        else:
            logger.info(f"Sweep finished: {report.summary()}")
        return report

    def _apply(
        self,
        report: SweepReport,
        bucket: list,
        instance_type: str,
        instance_id: int,
        action: Callable[[int], Result],
    ) -> None:
        try:
            result = action(instance_id)
        except Exception as e:
            logger.exception(f"Sweep failed on {instance_type} {instance_id}")
            report.failed.append((instance_type, instance_id, str(e)))
            return

        if result.success:
            bucket.append((instance_type, instance_id))
        elif result.is_no_op:
            # Another sweeper got there first
            report.skipped.append((instance_type, instance_id, result.error_code))
        else:
            logger.error(f"Sweep could not process {instance_type} {instance_id}: {result.error}")
            report.failed.append((instance_type, instance_id, result.error_code or "unknown"))
