"""MCP tools for wallet / device registration (anti-Sybil binding)."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from pulsenet.core.errors import PulseNetError
from pulsenet.domains.health.domain_logic.service import error_body, tool_json

if TYPE_CHECKING:
    from pulsenet.domains.health.domain_logic.service import PulseNetService

logger = logging.getLogger(__name__)


def register_registration_tools(mcp: FastMCP, service: PulseNetService) -> None:
    """Register user registration tools on the MCP server."""

    @mcp.tool
    async def register_user(
        ctx: Context,
        wallet_address: str,
        device_fingerprint: str,
        timestamp: int | None = None,
    ) -> str:
        """Bind a wallet to a device fingerprint.

        Re-registering the same pair returns the original registration. A
        device already bound to another wallet, or a wallet already bound to
        another device, is rejected with status 409.

        Args:
            wallet_address: Wallet address (0x followed by 40 hex digits).
            device_fingerprint: Device fingerprint (at least 32 characters).
            timestamp: Registration time in ms since epoch. Defaults to now.
        """
        payload = {"walletAddress": wallet_address, "deviceFingerprint": device_fingerprint}
        if timestamp is not None:
            payload["timestamp"] = timestamp
        try:
            return tool_json(service.register(payload))
        except PulseNetError as exc:
            status, body = error_body(exc)
            return tool_json(body, status)

    @mcp.tool
    async def verify_user(ctx: Context, wallet_address: str, device_fingerprint: str) -> str:
        """Confirm a wallet is still used from its registered device.

        Args:
            wallet_address: Wallet address (0x followed by 40 hex digits).
            device_fingerprint: Device fingerprint to check.
        """
        payload = {"walletAddress": wallet_address, "deviceFingerprint": device_fingerprint}
        try:
            return tool_json(service.verify_user(payload))
        except PulseNetError as exc:
            status, body = error_body(exc)
            return tool_json(body, status)

    @mcp.tool
    async def get_user_registration(ctx: Context, address: str) -> str:
        """Registration status for a wallet.

        Args:
            address: Wallet address (0x followed by 40 hex digits).
        """
        try:
            return tool_json(service.get_registration(address))
        except PulseNetError as exc:
            status, body = error_body(exc)
            return tool_json(body, status)

    @mcp.tool
    async def get_registration_summary(ctx: Context) -> str:
        """Total registered wallets, distinct devices, and verified users."""
        try:
            return tool_json(service.registration_summary())
        except PulseNetError as exc:
            status, body = error_body(exc)
            return tool_json(body, status)
