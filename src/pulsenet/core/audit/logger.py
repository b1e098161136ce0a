"""Audit logger — PHI-free record of submissions, registrations, and relay failures.

Every pipeline step that changes state or degrades leaves a row in
``audit_log``. Raw metrics and raw wallet addresses never land here:

* ``input_hash``  — SHA-256 of the canonical JSON of the tool input.
* ``wallet_hash`` — SHA-256 of the lowercased wallet address, so events for
  one wallet can be correlated without storing the address itself.
"""

from __future__ import annotations

import hashlib
import json
import logging
import sqlite3
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pulsenet.core.storage.database import PulseDatabase

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Hashing
# ---------------------------------------------------------------------------

def _hash_input(data: Any) -> str:
    """SHA-256 hash of canonical JSON, or empty string if not serializable."""
    try:
        canonical = json.dumps(data, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode()).hexdigest()
    except (TypeError, ValueError):
        return ""


def _hash_wallet(address: str | None) -> str | None:
    if not address:
        return None
    return hashlib.sha256(address.lower().encode()).hexdigest()


# ---------------------------------------------------------------------------
# AuditEvent dataclass
# ---------------------------------------------------------------------------

@dataclass
class AuditEvent:
    """A single audit log entry."""

    action: str                     # 'submission' | 'registration' | 'verification' | 'relay_failure'
    tool_name: str = ""
    input_hash: str = ""
    wallet_hash: str | None = None
    duration_ms: float | None = None
    status: str = "success"         # 'success' | 'failure' | 'degraded'
    error_type: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# AuditLogger
# ---------------------------------------------------------------------------

class AuditLogger:
    """Records audit events to the ``audit_log`` SQLite table.

    A failed audit write is logged and swallowed here; it never aborts the
    submission or registration that produced it.

    Usage::

        audit = AuditLogger(db)
        audit.log_action(
            "submission",
            tool_name="submit_health_data",
            tool_input=payload,
            wallet_address=payload["userAddress"],
        )
    """

    def __init__(self, database: PulseDatabase) -> None:
        self._db = database

    # ---------------------------------------------------------------
    # Write
    # ---------------------------------------------------------------

    def log_event(self, event: AuditEvent) -> str:
        """Insert an audit event and return its UUID ("" if the write failed)."""
        event_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc).isoformat()

        try:
            metadata_json = (
                json.dumps(event.metadata, separators=(",", ":"))
                if event.metadata
                else None
            )
            conn = self._db.connection
            conn.execute(
                """INSERT INTO audit_log
                   (id, timestamp, action, tool_name, input_hash, wallet_hash,
                    duration_ms, status, error_type, metadata_json)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    event_id,
                    now,
                    event.action,
                    event.tool_name or None,
                    event.input_hash or None,
                    event.wallet_hash,
                    event.duration_ms,
                    event.status,
                    event.error_type,
                    metadata_json,
                ),
            )
            conn.commit()
        except (sqlite3.Error, TypeError, ValueError):
            logger.exception("Failed to write audit event %s; event lost", event.action)
            return ""

        return event_id

    def log_action(
        self,
        action: str,
        *,
        tool_name: str = "",
        tool_input: Any = None,
        wallet_address: str | None = None,
        duration_ms: float | None = None,
        status: str = "success",
        error_type: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Convenience wrapper: hash the input and wallet, then log.

        Returns:
            The generated event ID.
        """
        return self.log_event(AuditEvent(
            action=action,
            tool_name=tool_name,
            input_hash=_hash_input(tool_input) if tool_input else "",
            wallet_hash=_hash_wallet(wallet_address),
            duration_ms=duration_ms,
            status=status,
            error_type=error_type,
            metadata=metadata or {},
        ))

    def log_relay_failure(
        self,
        *,
        data_hash: str,
        error: str,
        wallet_address: str | None = None,
    ) -> str:
        """Record a ledger relay failure for a stored submission."""
        return self.log_event(AuditEvent(
            action="relay_failure",
            tool_name="submit_data_hash",
            input_hash=_hash_input(data_hash),
            wallet_hash=_hash_wallet(wallet_address),
            status="degraded",
            error_type="RelayError",
            metadata={"error": error},
        ))

    # ---------------------------------------------------------------
    # Read
    # ---------------------------------------------------------------

    @staticmethod
    def _where(
        action: str | None, since: str | None, wallet_address: str | None
    ) -> tuple[str, list[Any]]:
        clauses: list[tuple[str, Any]] = []
        if action:
            clauses.append(("action = ?", action))
        if since:
            clauses.append(("timestamp >= ?", since))
        if wallet_address:
            clauses.append(("wallet_hash = ?", _hash_wallet(wallet_address)))
        if not clauses:
            return "", []
        return " WHERE " + " AND ".join(c for c, _ in clauses), [p for _, p in clauses]

    def get_events(
        self,
        *,
        action: str | None = None,
        since: str | None = None,
        wallet_address: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Query audit events, newest first.

        ``wallet_address`` is hashed before matching; the raw address is
        never compared against stored data.
        """
        where, params = self._where(action, since, wallet_address)
        rows = self._db.connection.execute(
            f"SELECT * FROM audit_log{where} ORDER BY timestamp DESC LIMIT ?",
            [*params, limit],
        ).fetchall()
        return [dict(row) for row in rows]

    def count_events(
        self,
        *,
        action: str | None = None,
        since: str | None = None,
        wallet_address: str | None = None,
    ) -> int:
        where, params = self._where(action, since, wallet_address)
        row = self._db.connection.execute(
            f"SELECT COUNT(*) FROM audit_log{where}", params
        ).fetchone()
        return row[0]

    def count_by_status(
        self, *, since: str | None = None, wallet_address: str | None = None
    ) -> dict[str, int]:
        """Event counts keyed by status ('success', 'failure', 'degraded')."""
        where, params = self._where(None, since, wallet_address)
        rows = self._db.connection.execute(
            f"SELECT status, COUNT(*) FROM audit_log{where} GROUP BY status", params
        ).fetchall()
        return {row[0]: row[1] for row in rows}
