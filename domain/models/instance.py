"""
Lifecycle states for wagers and quizzes.
"""

from enum import Enum


class WagerStatus(Enum):
    """Wager lifecycle: OPEN -> RESOLVED -> SETTLED, or OPEN/RESOLVED -> REFUNDED."""

    OPEN = "OPEN"
    RESOLVED = "RESOLVED"  # Winning side set, payouts not yet disbursed
    SETTLED = "SETTLED"
    REFUNDED = "REFUNDED"


class QuizStatus(Enum):
    """Quiz lifecycle: draft -> open -> in_progress -> completed -> settled, or -> refunded."""

    DRAFT = "draft"
    OPEN = "open"
    IN_PROGRESS = "in_progress"  # At least one participant has submitted answers
    COMPLETED = "completed"  # Correct answers set and participants scored
    SETTLED = "settled"
    REFUNDED = "refunded"


class SettlementMethod(Enum):
    """How a quiz's distributable pool is split."""

    PROPORTIONAL = "proportional"
    TOP_WINNERS = "top_winners"
    EQUAL_SPLIT = "equal_split"


WAGER_SIDES = ("a", "b")

# Statuses a wager/quiz can be joined in
JOINABLE_QUIZ_STATUSES = (QuizStatus.OPEN.value, QuizStatus.IN_PROGRESS.value)

# Terminal statuses: settle/refund on these is a no-op
TERMINAL_WAGER_STATUSES = (WagerStatus.SETTLED.value, WagerStatus.REFUNDED.value)
TERMINAL_QUIZ_STATUSES = (QuizStatus.SETTLED.value, QuizStatus.REFUNDED.value)

# Settlement record outcomes other than a winning side
OUTCOME_NO_WINNING_STAKES = "no_winning_stakes"
OUTCOME_SINGLE_PARTICIPANT = "single_participant"
