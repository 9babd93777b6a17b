"""
Schema and migration management for SQLite database.
"""

import logging
import sqlite3

logger = logging.getLogger("wagr.schema")


class SchemaManager:
    """
    Owns schema creation and migrations.

    Call initialize() to ensure schema is present and migrations are applied.

    All money columns hold integer minor units.
    """

    def __init__(self, db_path: str, use_uri: bool = False):
        self.db_path = db_path
        self.use_uri = use_uri

    def initialize(self) -> None:
        """Create base schema and apply migrations."""
        logger.info(f"Initializing database schema: {self.db_path}")
        with self._connect() as conn:
            cursor = conn.cursor()
            self._create_base_schema(cursor)
            self._create_schema_migrations_table(cursor)
            self._run_migrations(cursor)
            conn.commit()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, uri=self.use_uri)
        conn.row_factory = sqlite3.Row
        if not self.use_uri and self.db_path != ":memory:":  # Skip WAL for in-memory databases
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA busy_timeout=5000")
        return conn

    def _create_base_schema(self, cursor) -> None:
        # Accounts: one balance per user, never negative
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS accounts (
                user_id TEXT PRIMARY KEY,
                balance INTEGER NOT NULL DEFAULT 0 CHECK (balance >= 0),
                currency TEXT NOT NULL DEFAULT 'NGN',
                is_platform INTEGER NOT NULL DEFAULT 0,
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL
            )
            """
        )

        # Append-only ledger: SUM(amount) per user equals accounts.balance
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS transactions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                amount INTEGER NOT NULL,
                type TEXT NOT NULL,
                reference TEXT,
                description TEXT,
                created_at INTEGER NOT NULL,
                FOREIGN KEY (user_id) REFERENCES accounts(user_id)
            )
            """
        )

    # --- Migration helpers ---

    def _add_column_if_not_exists(self, cursor, table: str, column: str, column_type: str) -> None:
        try:
            cursor.execute(f"ALTER TABLE {table} ADD COLUMN {column} {column_type}")
        except sqlite3.OperationalError:
            pass

    def _create_schema_migrations_table(self, cursor) -> None:
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                name TEXT PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """
        )

    def _run_migrations(self, cursor) -> None:
        applied = {row["name"] for row in cursor.execute("SELECT name FROM schema_migrations")}
        for name, action in self._get_migrations():
            if name in applied:
                continue
            logger.info(f"Applying migration: {name}")
            action(cursor)
            cursor.execute(
                "INSERT INTO schema_migrations (name) VALUES (?)",
                (name,),
            )

    def _get_migrations(self):
        return [
            ("create_wagers_system", self._migration_create_wagers_system),
            ("create_quiz_system", self._migration_create_quiz_system),
            ("create_settlements_table", self._migration_create_settlements_table),
            ("add_indexes_v1", self._migration_add_indexes_v1),
            ("add_unique_gateway_references", self._migration_add_unique_gateway_references),
        ]

    # --- Migrations ---

    def _migration_create_wagers_system(self, cursor) -> None:
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS wagers (
                wager_id INTEGER PRIMARY KEY AUTOINCREMENT,
                creator_id TEXT NOT NULL,
                title TEXT NOT NULL,
                description TEXT,
                side_a TEXT NOT NULL,
                side_b TEXT NOT NULL,
                amount INTEGER NOT NULL CHECK (amount > 0),
                fee_percentage TEXT NOT NULL,
                currency TEXT NOT NULL DEFAULT 'NGN',
                status TEXT NOT NULL DEFAULT 'OPEN'
                    CHECK (status IN ('OPEN', 'RESOLVED', 'SETTLED', 'REFUNDED')),
                deadline INTEGER NOT NULL,
                winning_side TEXT CHECK (winning_side IN ('a', 'b')),
                resolved_by TEXT,
                resolved_at INTEGER,
                settled_at INTEGER,
                created_at INTEGER NOT NULL
            )
            """
        )
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS wager_entries (
                entry_id INTEGER PRIMARY KEY AUTOINCREMENT,
                wager_id INTEGER NOT NULL,
                user_id TEXT NOT NULL,
                side TEXT NOT NULL CHECK (side IN ('a', 'b')),
                amount INTEGER NOT NULL CHECK (amount > 0),
                created_at INTEGER NOT NULL,
                payout INTEGER,
                paid_at INTEGER,
                FOREIGN KEY (wager_id) REFERENCES wagers(wager_id),
                UNIQUE (wager_id, user_id)
            )
            """
        )

    def _migration_create_quiz_system(self, cursor) -> None:
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS quizzes (
                quiz_id INTEGER PRIMARY KEY AUTOINCREMENT,
                creator_id TEXT NOT NULL,
                title TEXT NOT NULL,
                description TEXT,
                entry_fee_per_question INTEGER NOT NULL CHECK (entry_fee_per_question > 0),
                total_questions INTEGER NOT NULL CHECK (total_questions > 0),
                max_participants INTEGER NOT NULL CHECK (max_participants > 0),
                fee_percentage TEXT NOT NULL,
                settlement_method TEXT NOT NULL DEFAULT 'proportional'
                    CHECK (settlement_method IN ('proportional', 'top_winners', 'equal_split')),
                top_winners_count INTEGER,
                currency TEXT NOT NULL DEFAULT 'NGN',
                status TEXT NOT NULL DEFAULT 'draft'
                    CHECK (status IN ('draft', 'open', 'in_progress', 'completed', 'settled', 'refunded')),
                deadline INTEGER NOT NULL,
                created_at INTEGER NOT NULL,
                resolved_at INTEGER,
                settled_at INTEGER
            )
            """
        )
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS quiz_questions (
                question_id INTEGER PRIMARY KEY AUTOINCREMENT,
                quiz_id INTEGER NOT NULL,
                order_index INTEGER NOT NULL,
                question_text TEXT NOT NULL,
                points INTEGER NOT NULL DEFAULT 1 CHECK (points > 0),
                correct_answer TEXT,
                FOREIGN KEY (quiz_id) REFERENCES quizzes(quiz_id),
                UNIQUE (quiz_id, order_index)
            )
            """
        )
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS quiz_participants (
                participant_id INTEGER PRIMARY KEY AUTOINCREMENT,
                quiz_id INTEGER NOT NULL,
                user_id TEXT NOT NULL,
                amount INTEGER NOT NULL CHECK (amount > 0),
                status TEXT NOT NULL DEFAULT 'joined' CHECK (status IN ('joined', 'completed')),
                joined_at INTEGER NOT NULL,
                completed_at INTEGER,
                score INTEGER NOT NULL DEFAULT 0,
                payout INTEGER,
                paid_at INTEGER,
                FOREIGN KEY (quiz_id) REFERENCES quizzes(quiz_id),
                UNIQUE (quiz_id, user_id)
            )
            """
        )
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS quiz_responses (
                participant_id INTEGER NOT NULL,
                question_id INTEGER NOT NULL,
                answer TEXT NOT NULL,
                answered_at INTEGER NOT NULL,
                PRIMARY KEY (participant_id, question_id),
                FOREIGN KEY (participant_id) REFERENCES quiz_participants(participant_id),
                FOREIGN KEY (question_id) REFERENCES quiz_questions(question_id)
            )
            """
        )

    def _migration_create_settlements_table(self, cursor) -> None:
        # One row per settled or refunded instance
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS settlements (
                settlement_id INTEGER PRIMARY KEY AUTOINCREMENT,
                instance_type TEXT NOT NULL CHECK (instance_type IN ('wager', 'quiz')),
                instance_id INTEGER NOT NULL,
                outcome TEXT NOT NULL,
                method TEXT,
                total_pool INTEGER NOT NULL,
                platform_fee INTEGER NOT NULL DEFAULT 0,
                rounding_remainder INTEGER NOT NULL DEFAULT 0,
                distributable INTEGER NOT NULL DEFAULT 0,
                distributed INTEGER NOT NULL DEFAULT 0,
                refunded INTEGER NOT NULL DEFAULT 0,
                winner_count INTEGER NOT NULL DEFAULT 0,
                settled_at INTEGER NOT NULL,
                UNIQUE (instance_type, instance_id)
            )
            """
        )

    def _migration_add_indexes_v1(self, cursor) -> None:
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_transactions_user_created ON transactions(user_id, created_at)"
        )
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_transactions_reference ON transactions(reference)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_wagers_status_deadline ON wagers(status, deadline)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_wager_entries_wager ON wager_entries(wager_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_quizzes_status_deadline ON quizzes(status, deadline)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_quiz_participants_quiz ON quiz_participants(quiz_id)")

    def _migration_add_unique_gateway_references(self, cursor) -> None:
        # A gateway reference can be confirmed (or reversed) at most once
        cursor.execute(
            """
            CREATE UNIQUE INDEX IF NOT EXISTS idx_transactions_gateway_reference
            ON transactions(type, reference)
            WHERE type IN ('deposit', 'withdrawal', 'withdrawal_reversal') AND reference IS NOT NULL
            """
        )
