"""Application settings loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """PulseNet server configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Loopback by default; the submission endpoints have no auth layer.
    pulsenet_host: str = "127.0.0.1"
    pulsenet_port: int = 8001
    pulsenet_log_level: str = "info"
    pulsenet_allow_insecure_bind: bool = False

    # Storage (off-chain submission log + registrations)
    db_path: str = "~/.pulsenet/pulsenet.db"

    # Fernet key for raw metrics at rest. Empty -> in-memory DB, ephemeral key.
    encryption_key: str = ""

    # Ledger relay (MCP server fronting the chain). Empty -> offline relay.
    ledger_relay_url: str = ""
    ledger_relay_timeout_s: float = 10.0

    # Rewards
    reward_per_submission: int = 10

    # Registration
    min_fingerprint_length: int = 32


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
