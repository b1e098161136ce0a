"""MCP tools for viewing the audit trail.

The trail holds hashed inputs and hashed wallets only; no metrics and no
raw addresses.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from pulsenet.domains.health.domain_logic.validator import is_valid_address

if TYPE_CHECKING:
    from pulsenet.core.audit.logger import AuditLogger

logger = logging.getLogger(__name__)

_ACTIONS = ("submission", "registration", "verification", "relay_failure")


def register_audit_tools(
    mcp: FastMCP,
    audit_logger: AuditLogger,
) -> None:
    """Register audit trail tools on the MCP server."""

    @mcp.tool
    async def audit_summary(
        ctx: Context,
        days: int = 30,
        wallet_address: str | None = None,
    ) -> str:
        """Counts of submissions, registrations, verifications, and ledger relay failures.

        Args:
            days: Number of days to look back (default: 30).
            wallet_address: Only count events for this wallet. Matched by hash.
        """
        if wallet_address is not None and not is_valid_address(wallet_address):
            return json.dumps({"status": 400, "error": "Invalid Ethereum address"})

        since = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()
        by_action = {
            action: audit_logger.count_events(
                action=action, since=since, wallet_address=wallet_address
            )
            for action in _ACTIONS
        }
        recent = [
            {
                "timestamp": event["timestamp"],
                "action": event["action"],
                "status": event["status"],
                "error_type": event["error_type"],
            }
            for event in audit_logger.get_events(
                since=since, wallet_address=wallet_address, limit=20
            )
        ]

        return json.dumps({
            "status": "ok",
            "period_days": days,
            "total_events": audit_logger.count_events(since=since, wallet_address=wallet_address),
            "submissions": by_action["submission"],
            "registrations": by_action["registration"],
            "verifications": by_action["verification"],
            "relay_failures": by_action["relay_failure"],
            "by_status": audit_logger.count_by_status(since=since, wallet_address=wallet_address),
            "recent_events": recent,
        }, indent=2)
