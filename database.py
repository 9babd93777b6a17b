"""
Database entry point: opening a path ensures the schema is current.
"""

import logging
import sqlite3

from infrastructure.schema_manager import SchemaManager

logger = logging.getLogger("wagr.database")


class Database:
    """Owns one SQLite database file and keeps its schema migrated."""

    def __init__(self, db_path: str = "wagr_ledger.db"):
        self.db_path = db_path
        self.schema_manager = SchemaManager(db_path)
        self.schema_manager.initialize()

    def get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def get_applied_migrations(self) -> list[str]:
        conn = self.get_connection()
        try:
            rows = conn.execute("SELECT name FROM schema_migrations ORDER BY name").fetchall()
            return [row["name"] for row in rows]
        finally:
            conn.close()
