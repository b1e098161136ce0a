"""MCP client for the ledger relay service.

The relay is a separate MCP server that owns the chain connection, signer,
and contract bindings. This client reaches it MCP-to-MCP via
``fastmcp.Client`` and exposes the handful of calls the submission pipeline
needs.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pulsenet.core.errors import RelayError
from pulsenet.core.ledger.models import RelayReceipt

logger = logging.getLogger(__name__)


class LedgerMCPClient:
    """Client for the ledger relay MCP server.

    Usage::

        from fastmcp import Client
        relay = LedgerMCPClient(Client("http://127.0.0.1:8003/mcp"))

        receipt = await relay.submit_hash("0xabc...")
        balance = await relay.get_token_balance("0x1234...")
    """

    def __init__(self, mcp_client: Any) -> None:
        """Initialise with a fastmcp.Client (or compatible)."""
        self._client = mcp_client

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def submit_hash(self, data_hash: str) -> RelayReceipt:
        """Record a commitment hash on the ledger and return the receipt."""
        payload = await self._call_tool("submit_data_hash", {"data_hash": data_hash})
        try:
            receipt = RelayReceipt.from_dict(payload)
        except (TypeError, ValueError, OverflowError) as exc:
            raise LedgerResponseError(f"Invalid receipt from relay: {exc}") from exc
        if not receipt.success:
            raise LedgerResponseError(
                f"Relay returned no transaction for {data_hash[:10]}..."
            )
        return receipt

    async def get_submission_count(self, address: str) -> int:
        payload = await self._call_tool("get_submission_count", {"address": address})
        try:
            return int(payload.get("count", 0))
        except (TypeError, ValueError) as exc:
            raise LedgerResponseError(f"Invalid submission count: {exc}") from exc

    async def get_token_balance(self, address: str) -> str:
        payload = await self._call_tool("get_token_balance", {"address": address})
        return str(payload.get("balance", "0"))

    async def get_platform_stats(self) -> dict[str, Any]:
        payload = await self._call_tool("get_platform_stats", {})
        try:
            return {
                "totalSubmissions": int(payload.get("totalSubmissions", 0)),
                "uniqueContributors": int(payload.get("uniqueContributors", 0)),
            }
        except (TypeError, ValueError) as exc:
            raise LedgerResponseError(f"Invalid platform stats: {exc}") from exc

    async def health_check(self) -> dict[str, Any]:
        return await self._call_tool("health_check", {})

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _call_tool(
        self, tool_name: str, arguments: dict[str, Any]
    ) -> dict[str, Any]:
        """Call a relay tool and return its JSON object payload."""
        logger.debug("Calling ledger relay tool %s", tool_name)

        try:
            async with self._client:
                result = await self._client.call_tool(tool_name, arguments)
        except Exception:
            logger.exception("Failed to call ledger relay tool %s", tool_name)
            raise LedgerConnectionError(
                f"Failed to call ledger relay tool '{tool_name}'. "
                "Is the relay server running?"
            ) from None

        payload = _extract_payload(result)
        if payload is None:
            raise LedgerResponseError(f"No usable content in response from {tool_name}")

        if isinstance(payload, str):
            try:
                parsed: Any = json.loads(payload)
            except (json.JSONDecodeError, TypeError) as exc:
                raise LedgerResponseError(f"Invalid JSON from {tool_name}: {exc}") from exc
        else:
            parsed = payload

        if not isinstance(parsed, dict):
            raise LedgerResponseError(
                f"Expected JSON object from {tool_name}, got {type(parsed).__name__}"
            )

        if parsed.get("status") == "error":
            raise LedgerRejectedError(
                f"Ledger relay returned error: {_format_error(parsed.get('error'))}"
            )

        return parsed


# ------------------------------------------------------------------
# Exceptions
# ------------------------------------------------------------------

class LedgerClientError(RelayError):
    """Base exception for LedgerMCPClient errors."""


class LedgerConnectionError(LedgerClientError):
    """Could not reach the relay."""


class LedgerResponseError(LedgerClientError):
    """Response from the relay was unexpected."""


class LedgerRejectedError(LedgerClientError):
    """The relay reached the chain but the transaction failed."""


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _extract_payload(result: Any) -> Any | None:
    """Pull a dict or JSON string out of a fastmcp tool result.

    Accepts a CallToolResult (``structured_content`` / ``data`` / ``content``),
    a list of content blocks, a single block, a dict, or a raw string.
    """
    if result is None:
        return None
    if isinstance(result, (dict, str)):
        return result

    structured = getattr(result, "structured_content", None)
    if isinstance(structured, dict):
        # Tools returning str are wrapped as {"result": "..."}
        if set(structured) == {"result"}:
            return structured["result"]
        return structured

    data = getattr(result, "data", None)
    if isinstance(data, (dict, str)):
        return data

    content = getattr(result, "content", None)
    blocks = content if isinstance(content, list) else result
    if isinstance(blocks, list):
        for block in blocks:
            text = block.get("text") if isinstance(block, dict) else getattr(block, "text", None)
            if text is not None:
                return text
            if isinstance(block, str):
                return block
        return None

    return getattr(result, "text", None)


def _format_error(error: Any) -> str:
    if error is None:
        return "Unknown error"
    if isinstance(error, dict):
        msg = error.get("message") or error.get("code")
        return msg if isinstance(msg, str) and msg else str(error)
    return str(error)
