"""SQLite database management for the PulseNet off-chain data bank.

Handles connection lifecycle, schema creation, and migrations.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

# Current schema version
SCHEMA_VERSION = 3

# ---------------------------------------------------------------------------
# Schema DDL
# ---------------------------------------------------------------------------

_SCHEMA_V1 = """
-- Append-only submission log. Rows are never updated or deleted.
CREATE TABLE IF NOT EXISTS submissions (
    seq              INTEGER PRIMARY KEY AUTOINCREMENT,
    id               TEXT NOT NULL UNIQUE,
    user_address     TEXT NOT NULL,
    user_address_key TEXT NOT NULL,
    timestamp        INTEGER NOT NULL,
    data_hash        TEXT NOT NULL,
    proof            TEXT NOT NULL,

    -- Encrypted JSON blob: heartRate, sleepHours, steps
    metrics_enc      TEXT NOT NULL,

    created_at       TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Materialized PlatformStats snapshot (single row, re-derivable from the log)
CREATE TABLE IF NOT EXISTS platform_stats (
    id                  INTEGER PRIMARY KEY CHECK (id = 1),
    total_submissions   INTEGER NOT NULL DEFAULT 0,
    unique_contributors INTEGER NOT NULL DEFAULT 0,
    last_updated        TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_submissions_user ON submissions(user_address_key);
CREATE INDEX IF NOT EXISTS idx_submissions_ts   ON submissions(timestamp);
"""

# ---------------------------------------------------------------------------
# V2: Registrations (wallet <-> device fingerprint binding)
# ---------------------------------------------------------------------------

# One row holds both lookup indices, so they can never disagree.
_SCHEMA_V2 = """
CREATE TABLE IF NOT EXISTS registrations (
    registration_id    TEXT PRIMARY KEY,
    wallet_address     TEXT NOT NULL,
    wallet_key         TEXT NOT NULL UNIQUE,
    device_fingerprint TEXT NOT NULL UNIQUE,
    registered_at      TEXT NOT NULL,
    verified           INTEGER NOT NULL DEFAULT 1,
    last_activity      TEXT NOT NULL
);
"""

# ---------------------------------------------------------------------------
# V3: Audit log (submissions, registrations, relay failures)
# ---------------------------------------------------------------------------

_SCHEMA_V3 = """
CREATE TABLE IF NOT EXISTS audit_log (
    id            TEXT PRIMARY KEY,
    timestamp     TEXT NOT NULL DEFAULT (datetime('now')),
    action        TEXT NOT NULL,
    tool_name     TEXT,
    input_hash    TEXT,
    wallet_hash   TEXT,
    duration_ms   REAL,
    status        TEXT NOT NULL DEFAULT 'success',
    error_type    TEXT,
    metadata_json TEXT
);

CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log(timestamp);
CREATE INDEX IF NOT EXISTS idx_audit_action    ON audit_log(action);
"""

_MIGRATIONS: list[tuple[int, str, str]] = [
    (2, _SCHEMA_V2, "registrations table"),
    (3, _SCHEMA_V3, "audit_log table"),
]


class DatabaseError(Exception):
    """Raised when database operations fail."""


class PulseDatabase:
    """SQLite database manager for the PulseNet data bank.

    Supports both file-based and in-memory (`:memory:`) databases.
    In-memory mode is used for testing and for runs without an
    encryption key.

    Usage::

        db = PulseDatabase(":memory:")
        db.initialize()
        conn = db.connection
        # ... use connection ...
        db.close()
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        """Initialize database manager.

        Args:
            db_path: Path to SQLite file, or ":memory:" for in-memory DB.
        """
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        """Get the active database connection.

        Raises:
            DatabaseError: If the database has not been initialized.
        """
        if self._conn is None:
            raise DatabaseError("Database not initialized. Call initialize() first.")
        return self._conn

    @property
    def is_persistent(self) -> bool:
        return self._db_path != ":memory:"

    def initialize(self) -> None:
        """Create the database connection and ensure schema exists.

        For file-based databases, creates parent directories if needed.
        Idempotent: safe to call multiple times.
        """
        if self._conn is not None:
            return  # Already initialized

        # check_same_thread=False: Starlette's TestClient serves requests from a
        # portal thread, and the store and registry accept writers on any
        # thread. Both serialize writes on their own locks.
        if self.is_persistent:
            db_file = Path(self._db_path).expanduser()
            db_file.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(db_file), check_same_thread=False)
        else:
            self._conn = sqlite3.connect(":memory:", check_same_thread=False)

        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

        self._ensure_schema()
        logger.info("PulseNet database initialized: %s", self._db_path)

    def _ensure_schema(self) -> None:
        """Create tables if they don't exist and apply migrations."""
        conn = self.connection

        # V1: Core tables (always applied; CREATE IF NOT EXISTS)
        conn.executescript(_SCHEMA_V1)
        conn.execute(
            "INSERT OR IGNORE INTO platform_stats (id, last_updated) VALUES (1, ?)",
            (datetime.now(timezone.utc).isoformat(),),
        )
        conn.commit()

        current_version = self.get_schema_version()

        for version, ddl, label in _MIGRATIONS:
            if current_version < version:
                conn.executescript(ddl)
                logger.info("Applied schema migration V%d: %s", version, label)

        if current_version < SCHEMA_VERSION:
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            conn.commit()
            logger.info(
                "Schema updated from version %d to %d", current_version, SCHEMA_VERSION
            )

    def get_schema_version(self) -> int:
        """Return the current schema version."""
        cursor = self.connection.execute("SELECT MAX(version) FROM schema_version")
        row = cursor.fetchone()
        return row[0] if row[0] is not None else 0

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("PulseNet database closed")

    def __enter__(self) -> PulseDatabase:
        self.initialize()
        return self

    def __exit__(self, *args) -> None:
        self.close()
