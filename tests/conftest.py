"""Shared test fixtures for PulseNet tests."""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENCRYPTION_KEY", "")
    monkeypatch.setenv("LEDGER_RELAY_URL", "")
    monkeypatch.setenv("LEDGER_RELAY_TIMEOUT_S", "2")

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from pulsenet.core.ledger.client import LedgerMCPClient  # noqa: E402

# ---------------------------------------------------------------------------
# Mock ledger relay MCP client
# ---------------------------------------------------------------------------

@dataclass
class _TextBlock:
    """Mimics fastmcp content block structure."""

    type: str
    text: str


class MockRelayMCPClient:
    """Mock fastmcp.Client that answers like the ledger relay server.

    Suitable for injecting into LedgerMCPClient for unit and integration
    tests without a running relay.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.counts: dict[str, int] = {}
        self.block_number = 100
        self._raise_on_call: Exception | None = None

    def raise_on_call(self, exc: Exception) -> None:
        self._raise_on_call = exc

    async def call_tool(self, tool_name: str, arguments: dict[str, Any]) -> list[Any]:
        self.calls.append((tool_name, arguments))
        if self._raise_on_call is not None:
            raise self._raise_on_call

        if tool_name == "submit_data_hash":
            self.block_number += 1
            payload: dict[str, Any] = {
                "status": "ok",
                "transactionHash": "0x" + arguments["data_hash"][2:66],
                "blockNumber": self.block_number,
                "gasUsed": "21000",
            }
        elif tool_name == "get_submission_count":
            payload = {"status": "ok", "count": self.counts.get(arguments["address"].lower(), 0)}
        elif tool_name == "get_token_balance":
            count = self.counts.get(arguments["address"].lower(), 0)
            payload = {"status": "ok", "balance": str(count * 10)}
        elif tool_name == "get_platform_stats":
            payload = {
                "status": "ok",
                "totalSubmissions": sum(self.counts.values()),
                "uniqueContributors": len(self.counts),
            }
        elif tool_name == "health_check":
            payload = {"status": "ok", "connected": True}
        else:
            payload = {"status": "error", "error": f"Unknown tool: {tool_name}"}
        return [_TextBlock(type="text", text=json.dumps(payload))]

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        pass


@pytest.fixture
def mock_relay_mcp_client() -> MockRelayMCPClient:
    return MockRelayMCPClient()


@pytest.fixture
def ledger_client(mock_relay_mcp_client: MockRelayMCPClient) -> LedgerMCPClient:
    """A LedgerMCPClient backed by MockRelayMCPClient."""
    return LedgerMCPClient(mock_relay_mcp_client)


# ---------------------------------------------------------------------------
# In-memory storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def pulse_db():
    """Create an in-memory PulseDatabase for testing."""
    from pulsenet.core.storage.database import PulseDatabase

    db = PulseDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def metrics_cipher():
    """Create a MetricsCipher with a test key."""
    from cryptography.fernet import Fernet

    from pulsenet.core.storage.encryption import MetricsCipher

    return MetricsCipher(Fernet.generate_key().decode())


@pytest.fixture
def submission_repository(pulse_db, metrics_cipher):
    from pulsenet.core.storage.submission_repository import SubmissionRepository

    return SubmissionRepository(pulse_db, metrics_cipher)


@pytest.fixture
def registration_repository(pulse_db):
    from pulsenet.core.storage.registration_repository import RegistrationRepository

    return RegistrationRepository(pulse_db)


@pytest.fixture
def audit_logger(pulse_db):
    """Create an AuditLogger backed by in-memory SQLite."""
    from pulsenet.core.audit.logger import AuditLogger

    return AuditLogger(pulse_db)
