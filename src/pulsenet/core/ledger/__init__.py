"""Ledger relay — boundary to the external chain that records commitment hashes."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from pulsenet.core.ledger.models import RelayReceipt


@runtime_checkable
class LedgerRelay(Protocol):
    """Abstract interface for the external ledger.

    The submission pipeline calls these without knowing whether the relay is
    a remote MCP service or the offline stand-in. Any method may raise
    :class:`pulsenet.core.errors.RelayError`; callers treat that as non-fatal.
    """

    async def submit_hash(self, data_hash: str) -> RelayReceipt:
        """Record a commitment hash on the ledger."""
        ...

    async def get_submission_count(self, address: str) -> int:
        """On-chain submission count for a wallet."""
        ...

    async def get_token_balance(self, address: str) -> str:
        """Reward token balance for a wallet, as a decimal string."""
        ...

    async def get_platform_stats(self) -> dict[str, Any]:
        """On-chain totals: ``totalSubmissions`` and ``uniqueContributors``."""
        ...

    async def health_check(self) -> dict[str, Any]:
        """Report whether the relay is reachable."""
        ...
