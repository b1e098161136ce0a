"""Response models for the ledger relay."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class RelayReceipt:
    """Outcome of one ``submit_hash`` call."""

    success: bool
    transaction_hash: str | None = None
    block_number: int | None = None
    gas_used: str | None = None
    error: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RelayReceipt:
        """Parse the relay's ``submit_data_hash`` response."""
        block = data.get("blockNumber")
        gas = data.get("gasUsed")
        return cls(
            success=data.get("status", "ok") == "ok" and bool(data.get("transactionHash")),
            transaction_hash=data.get("transactionHash"),
            block_number=_to_block_number(block),
            gas_used=str(gas) if gas is not None else None,
            error=data.get("error"),
        )

    @classmethod
    def failed(cls, error: str) -> RelayReceipt:
        return cls(success=False, error=error)

    def to_dict(self) -> dict[str, Any]:
        if not self.success:
            return {"success": False, "error": self.error or "Ledger relay unavailable"}
        return {
            "success": True,
            "transactionHash": self.transaction_hash,
            "blockNumber": self.block_number,
            "gasUsed": self.gas_used,
        }


def _to_block_number(value: Any) -> int | None:
    """Block numbers arrive as ints, decimal strings, or JSON-RPC hex quantities."""
    if value is None:
        return None
    if isinstance(value, str) and value.lower().startswith("0x"):
        return int(value, 16)
    return int(value)
