"""MCP tools for health data submission, platform statistics, and proof checks.

Each tool returns the same JSON body as the matching HTTP route, plus a
``status`` field with the HTTP-equivalent code.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from pulsenet.core.errors import PulseNetError
from pulsenet.domains.health.domain_logic.service import error_body, tool_json

if TYPE_CHECKING:
    from pulsenet.domains.health.domain_logic.service import PulseNetService

logger = logging.getLogger(__name__)


def register_submission_tools(mcp: FastMCP, service: PulseNetService) -> None:
    """Register submission and statistics tools on the MCP server."""

    @mcp.tool
    async def submit_health_data(
        ctx: Context,
        user_address: str,
        heart_rate: float,
        sleep_hours: float,
        steps: int,
        timestamp: int | None = None,
    ) -> str:
        """Submit a health metric snapshot.

        The snapshot is committed to a data hash and proof, stored off-chain,
        and its hash is forwarded to the ledger. A ledger outage does not fail
        the submission; the result carries a warning instead.

        Args:
            user_address: Wallet address (0x followed by 40 hex digits).
            heart_rate: Heart rate in bpm (30-220).
            sleep_hours: Hours slept (0-24).
            steps: Step count (0-100000).
            timestamp: Milliseconds since epoch. Defaults to now.
        """
        payload = {
            "userAddress": user_address,
            "heartRate": heart_rate,
            "sleepHours": sleep_hours,
            "steps": steps,
        }
        if timestamp is not None:
            payload["timestamp"] = timestamp
        try:
            return tool_json(await service.submit(payload))
        except PulseNetError as exc:
            status, body = error_body(exc)
            return tool_json(body, status)

    @mcp.tool
    async def get_platform_stats(ctx: Context) -> str:
        """Anonymized population statistics: averages, data quality, and timing.

        No individual submission or address is returned.
        """
        try:
            return tool_json(await service.platform_stats())
        except PulseNetError as exc:
            status, body = error_body(exc)
            return tool_json(body, status)

    @mcp.tool
    async def get_user_submission_stats(ctx: Context, address: str) -> str:
        """Off-chain and on-chain submission counts and rewards for one wallet.

        Args:
            address: Wallet address (0x followed by 40 hex digits).
        """
        try:
            return tool_json(await service.user_stats(address))
        except PulseNetError as exc:
            status, body = error_body(exc)
            return tool_json(body, status)

    @mcp.tool
    async def verify_health_proof(ctx: Context, proof: str = "", data_hash: str = "") -> str:
        """Check a proof token against a data hash.

        Args:
            proof: Proof token returned at submission time.
            data_hash: The 0x-prefixed data hash it should match.
        """
        try:
            return tool_json(service.verify_proof(proof, data_hash))
        except PulseNetError as exc:
            status, body = error_body(exc)
            return tool_json(body, status)

    @mcp.tool
    async def get_reward_balance(ctx: Context, address: str) -> str:
        """Reward token balance and estimated lifetime earnings for a wallet.

        Args:
            address: Wallet address (0x followed by 40 hex digits).
        """
        try:
            return tool_json(await service.reward_balance(address))
        except PulseNetError as exc:
            status, body = error_body(exc)
            return tool_json(body, status)
