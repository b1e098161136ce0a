"""PulseNet MCP server — application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastmcp import FastMCP

from pulsenet.core.audit.logger import AuditLogger
from pulsenet.core.config.settings import Settings, get_settings
from pulsenet.core.ledger import LedgerRelay
from pulsenet.core.ledger.client import LedgerMCPClient
from pulsenet.core.ledger.offline import OfflineLedgerRelay
from pulsenet.core.storage.database import PulseDatabase
from pulsenet.core.storage.encryption import MetricsCipher
from pulsenet.core.storage.registration_repository import RegistrationRepository
from pulsenet.core.storage.submission_repository import SubmissionRepository
from pulsenet.domains.health.domain_logic.commitment import SimulatedCommitmentScheme
from pulsenet.domains.health.domain_logic.offchain_store import OffChainStore
from pulsenet.domains.health.domain_logic.registration import RegistrationRegistry
from pulsenet.domains.health.domain_logic.service import PulseNetService
from pulsenet.domains.health.domain_logic.submission_pipeline import SubmissionPipeline
from pulsenet.domains.health.routes.http_routes import register_http_routes
from pulsenet.domains.health.tools.audit_tools import register_audit_tools
from pulsenet.domains.health.tools.registration_tools import register_registration_tools
from pulsenet.domains.health.tools.submission_tools import register_submission_tools

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def _open_database(settings: Settings) -> tuple[PulseDatabase, MetricsCipher]:
    """Open the configured database, or an in-memory one without a key."""
    if settings.encryption_key:
        cipher = MetricsCipher(settings.encryption_key)
        database = PulseDatabase(settings.db_path)
    else:
        logger.warning(
            "No ENCRYPTION_KEY configured; using an in-memory database with an "
            "ephemeral key. Submissions and registrations will not survive a restart."
        )
        cipher = MetricsCipher(MetricsCipher.generate_key())
        database = PulseDatabase(":memory:")
    database.initialize()
    logger.info(
        "PulseNet data bank ready: %s (schema v%d)",
        settings.db_path if database.is_persistent else ":memory:",
        database.get_schema_version(),
    )
    return database, cipher


def _build_relay(settings: Settings) -> LedgerRelay:
    if not settings.ledger_relay_url:
        logger.warning("No LEDGER_RELAY_URL configured; hashes will be stored off-chain only")
        return OfflineLedgerRelay()

    from fastmcp import Client as MCPClient

    logger.info("Ledger relay configured for %s", settings.ledger_relay_url)
    return LedgerMCPClient(MCPClient(settings.ledger_relay_url))


def create_app(
    *,
    database_override: PulseDatabase | None = None,
    cipher_override: MetricsCipher | None = None,
    relay_override: LedgerRelay | None = None,
) -> FastMCP:
    """Create and configure the PulseNet MCP server.

    This is the main application factory. It:
    1. Creates the FastMCP server instance
    2. Opens the database (file-backed with a key, in-memory otherwise)
    3. Builds the off-chain store, registration registry, and audit logger
    4. Connects the ledger relay (or the offline stand-in)
    5. Registers MCP tools and HTTP routes
    """
    settings = get_settings()

    # --- Server instance ---
    server = FastMCP(
        "PulseNet Health Data",
        instructions=(
            "PulseNet: privacy-preserving health data contributions. "
            "Submit heart rate, sleep, and step snapshots bound to a commitment "
            "hash, register a wallet to a device, and read anonymized "
            "population statistics."
        ),
    )

    # --- Storage ---
    if database_override is not None:
        database = database_override
        database.initialize()
        cipher = cipher_override or MetricsCipher(MetricsCipher.generate_key())
    else:
        database, cipher = _open_database(settings)

    store = OffChainStore(SubmissionRepository(database, cipher))
    registry = RegistrationRegistry(RegistrationRepository(database))
    audit_logger = AuditLogger(database)

    # --- Ledger relay ---
    relay = relay_override if relay_override is not None else _build_relay(settings)

    pipeline = SubmissionPipeline(
        store,
        SimulatedCommitmentScheme(),
        relay,
        audit_logger,
        relay_timeout_s=settings.ledger_relay_timeout_s,
    )
    service = PulseNetService(
        pipeline,
        registry,
        audit_logger,
        reward_per_submission=settings.reward_per_submission,
        min_fingerprint_length=settings.min_fingerprint_length,
    )

    async def health_status() -> dict[str, Any]:
        relay_status = await pipeline.best_effort(
            relay.health_check(), {"status": "unreachable"}, "health check"
        )
        return {
            "status": "healthy",
            "service": "PulseNet Health Data",
            "version": VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "checks": {
                "storage": {
                    "status": "healthy",
                    "persistent": database.is_persistent,
                    "submissions": store.stats().total_submissions,
                },
                "ledger": relay_status,
                "commitment": {"status": "healthy", "simulation": True},
            },
        }

    # --- Register tools ---
    @server.tool
    async def health_check() -> dict:
        """Check server health and return basic status information."""
        return await health_status()

    register_submission_tools(server, service)
    register_registration_tools(server, service)
    register_audit_tools(server, audit_logger)
    logger.info("Submission, registration, and audit tools registered")

    # --- Register HTTP routes ---
    register_http_routes(server, service, health_status)

    return server


# Module-level instance for FastMCP discovery.
# Lazy: only created when this module is loaded directly (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
