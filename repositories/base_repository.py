"""
Base repository with common database operations.
"""

import logging
import sqlite3
from abc import ABC
from contextlib import contextmanager

from config import DB_BUSY_TIMEOUT_MS
from database import Database

logger = logging.getLogger("wagr.repositories")


class BaseRepository(ABC):
    """
    Base class for all repositories.

    Provides common database connection management and utilities.
    """

    # Track DB paths that have already had schema initialization performed
    _schema_initialized_paths = set()

    def __init__(self, db_path: str, busy_timeout_ms: int | None = None):
        """
        Initialize repository with database path.

        Args:
            db_path: Path to SQLite database file
            busy_timeout_ms: How long a writer waits for the lock before giving up
        """
        self.db_path = db_path
        self.busy_timeout_ms = busy_timeout_ms if busy_timeout_ms is not None else DB_BUSY_TIMEOUT_MS
        # Ensure schema is initialized for this database path (idempotent)
        if db_path not in type(self)._schema_initialized_paths:
            Database(db_path)
            type(self)._schema_initialized_paths.add(db_path)

    def get_connection(self) -> sqlite3.Connection:
        """Get database connection with row factory enabled."""
        conn = sqlite3.connect(self.db_path, timeout=self.busy_timeout_ms / 1000)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute(f"PRAGMA busy_timeout={int(self.busy_timeout_ms)}")
        return conn

    @contextmanager
    def connection(self):
        """
        Context manager for database connections.

        Automatically commits on success, rolls back on exception,
        and always closes the connection.
        """
        conn = self.get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def atomic_transaction(self):
        """
        Context manager for atomic transactions with immediate write lock.

        Uses BEGIN IMMEDIATE to acquire the write lock before the first read,
        so check-then-write sequences (join, settle, refund, transfer) from
        independent processes serialize instead of interleaving.

        Usage:
            with self.atomic_transaction() as conn:
                cursor = conn.cursor()
                cursor.execute(...)

        The transaction commits on success and rolls back on exception.
        """
        conn = self.get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # --- Settlement records (shared by wager and quiz repositories) ---

    @staticmethod
    def _insert_settlement(
        cursor,
        instance_type: str,
        instance_id: int,
        outcome: str,
        total_pool: int,
        settled_at: int,
        method: str | None = None,
        platform_fee: int = 0,
        rounding_remainder: int = 0,
        distributable: int = 0,
        distributed: int = 0,
        refunded: int = 0,
        winner_count: int = 0,
    ) -> int:
        cursor.execute(
            """
            INSERT INTO settlements (
                instance_type, instance_id, outcome, method, total_pool, platform_fee,
                rounding_remainder, distributable, distributed, refunded, winner_count, settled_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                instance_type,
                instance_id,
                outcome,
                method,
                total_pool,
                platform_fee,
                rounding_remainder,
                distributable,
                distributed,
                refunded,
                winner_count,
                settled_at,
            ),
        )
        return cursor.lastrowid

    def get_settlement(self, instance_type: str, instance_id: int) -> dict | None:
        """Get the settlement record for an instance, if it has been settled or refunded."""
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM settlements WHERE instance_type = ? AND instance_id = ?",
                (instance_type, instance_id),
            )
            row = cursor.fetchone()
            return dict(row) if row else None
