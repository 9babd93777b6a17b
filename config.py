"""
Centralized configuration for the Wagr settlement and ledger engine.
"""

from __future__ import annotations

import os
from decimal import Decimal, InvalidOperation

from dotenv import load_dotenv

load_dotenv()


def _parse_int(env_var: str, default: int) -> int:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _parse_decimal(env_var: str, default: str) -> Decimal:
    raw = os.getenv(env_var)
    if raw is None:
        return Decimal(default)
    try:
        return Decimal(raw.strip())
    except InvalidOperation:
        return Decimal(default)


def _parse_bool(env_var: str, default: bool) -> bool:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


def _parse_str_list(env_var: str, default: list[str]) -> list[str]:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    return [x.strip() for x in raw.split(",") if x.strip()]


DB_PATH = os.getenv("DB_PATH", "wagr_ledger.db")
ADMIN_USER_IDS: list[str] = _parse_str_list("ADMIN_USER_IDS", [])

# Account that receives platform fees and rounding remainders
PLATFORM_ACCOUNT_ID = os.getenv("PLATFORM_ACCOUNT_ID", "platform")
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "NGN")

# Wagers
WAGER_FEE_PERCENTAGE = _parse_decimal("WAGER_FEE_PERCENTAGE", "0.05")  # 5%
MIN_WAGER_AMOUNT = _parse_decimal("MIN_WAGER_AMOUNT", "1")
WAGER_MIN_WINDOW_SECONDS = _parse_int("WAGER_MIN_WINDOW_SECONDS", 60)  # 1 minute
WAGER_MAX_DEADLINE_DAYS = _parse_int("WAGER_MAX_DEADLINE_DAYS", 30)
WAGER_TITLE_MAX_LENGTH = _parse_int("WAGER_TITLE_MAX_LENGTH", 200)
WAGER_SIDE_MAX_LENGTH = _parse_int("WAGER_SIDE_MAX_LENGTH", 100)

# Quizzes
QUIZ_FEE_PERCENTAGE = _parse_decimal("QUIZ_FEE_PERCENTAGE", "0.10")  # 10% for corporate quizzes
QUIZ_DEFAULT_TOP_WINNERS = _parse_int("QUIZ_DEFAULT_TOP_WINNERS", 3)
QUIZ_MAX_PARTICIPANTS = _parse_int("QUIZ_MAX_PARTICIPANTS", 500)
QUIZ_MAX_QUESTIONS = _parse_int("QUIZ_MAX_QUESTIONS", 100)

# Payment gateway limits (major units)
WITHDRAWAL_MIN_AMOUNT = _parse_decimal("WITHDRAWAL_MIN_AMOUNT", "100")
WITHDRAWAL_MAX_AMOUNT = _parse_decimal("WITHDRAWAL_MAX_AMOUNT", "1000000")
TRANSFER_MIN_AMOUNT = _parse_decimal("TRANSFER_MIN_AMOUNT", "1")

# Background deadline sweep
SWEEP_INTERVAL_SECONDS = _parse_int("SWEEP_INTERVAL_SECONDS", 60)
SWEEP_AUTO_RESOLVE_QUIZZES = _parse_bool("SWEEP_AUTO_RESOLVE_QUIZZES", True)

# SQLite lock wait before an atomic operation gives up (milliseconds)
DB_BUSY_TIMEOUT_MS = _parse_int("DB_BUSY_TIMEOUT_MS", 5000)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
