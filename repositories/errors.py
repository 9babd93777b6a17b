"""
Exceptions raised by the repository layer.

Each carries a stable ``code`` matching ``services.error_codes`` so services
can turn them into failed Results without parsing messages. All subclass
ValueError, so callers that only care about "the operation was rejected" can
keep catching ValueError.
"""


class LedgerError(ValueError):
    """Base class for rejected ledger/settlement operations."""

    code = "state_error"


class AccountNotFoundError(LedgerError):
    code = "account_not_found"


class InsufficientFundsError(LedgerError):
    code = "insufficient_funds"


class InstanceNotFoundError(LedgerError):
    code = "not_found"


class InstanceNotOpenError(LedgerError):
    code = "instance_not_open"


class DeadlineElapsedError(LedgerError):
    code = "deadline_elapsed"


class DeadlineNotElapsedError(LedgerError):
    code = "deadline_not_elapsed"


class DuplicateStakeError(LedgerError):
    code = "duplicate_stake"


class QuizFullError(LedgerError):
    code = "quiz_full"


class OutcomeAlreadySetError(LedgerError):
    code = "outcome_already_set"


class NotResolvedError(LedgerError):
    code = "not_resolved"


class AlreadySettledError(LedgerError):
    """The instance is already in a terminal state; the call was a no-op."""

    code = "already_settled"


class InvalidOperationError(LedgerError):
    """The operation is not allowed in the instance's current state."""

    code = "state_error"


class PermissionDeniedError(LedgerError):
    code = "permission_denied"
