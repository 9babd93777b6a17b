"""
Standard error codes for service layer.

These error codes allow callers (API handlers, the scheduler) to handle
specific error conditions without parsing error message text.

Usage:
    from services.error_codes import NOT_FOUND, INSUFFICIENT_FUNDS
    from services.result import Result

    if wager is None:
        return Result.fail("Wager not found", code=NOT_FOUND)

    if balance < amount:
        return Result.fail("Insufficient funds", code=INSUFFICIENT_FUNDS)
"""

# General errors
NOT_FOUND = "not_found"
VALIDATION_ERROR = "validation_error"
STATE_ERROR = "state_error"
PERMISSION_DENIED = "permission_denied"

# Ledger errors
ACCOUNT_NOT_FOUND = "account_not_found"
INSUFFICIENT_FUNDS = "insufficient_funds"
WITHDRAWAL_LIMIT_EXCEEDED = "withdrawal_limit_exceeded"

# Transient: the store was locked by a concurrent writer; retry with backoff
CONCURRENT_MODIFICATION = "concurrent_modification"

# Stake pool errors
INSTANCE_NOT_OPEN = "instance_not_open"
DEADLINE_ELAPSED = "deadline_elapsed"
DUPLICATE_STAKE = "duplicate_stake"
QUIZ_FULL = "quiz_full"

# Settlement errors
DEADLINE_NOT_ELAPSED = "deadline_not_elapsed"
OUTCOME_ALREADY_SET = "outcome_already_set"
NOT_RESOLVED = "not_resolved"
ALREADY_SETTLED = "already_settled"  # Idempotent no-op, not a failure of the system
NO_WINNING_STAKES = "no_winning_stakes"

# Error codes that mean "nothing to do": safe for schedulers to ignore
NO_OP_CODES = frozenset({ALREADY_SETTLED})

# Error codes worth retrying
RETRYABLE_CODES = frozenset({CONCURRENT_MODIFICATION})
