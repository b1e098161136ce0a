"""Offline ledger relay — used when no relay URL is configured.

Reads return neutral values; submissions raise :class:`RelayError` so the
pipeline reports a degraded (stored off-chain only) result.
"""

from __future__ import annotations

from typing import Any

from pulsenet.core.errors import RelayError
from pulsenet.core.ledger.models import RelayReceipt


class OfflineLedgerRelay:
    """LedgerRelay with no chain behind it."""

    async def submit_hash(self, data_hash: str) -> RelayReceipt:
        raise RelayError("Ledger relay not configured")

    async def get_submission_count(self, address: str) -> int:
        return 0

    async def get_token_balance(self, address: str) -> str:
        return "0"

    async def get_platform_stats(self) -> dict[str, Any]:
        return {"totalSubmissions": 0, "uniqueContributors": 0}

    async def health_check(self) -> dict[str, Any]:
        return {"status": "offline", "connected": False}
