"""PulseNet server entry point — ``pulsenet-server`` or ``python -m pulsenet.core.server.main``."""

from __future__ import annotations

import logging
from ipaddress import ip_address

from pulsenet.core.config.settings import Settings, get_settings
from pulsenet.core.server.app import create_app

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class InsecureBindError(RuntimeError):
    """The configured host is reachable off-box and no override was given."""


def is_loopback_host(host: str) -> bool:
    """True for ``localhost`` and loopback IPv4/IPv6 literals (``[::1]`` included)."""
    host = host.strip().strip("[]").lower()
    if host == "localhost":
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def check_bind_address(settings: Settings) -> None:
    """Refuse a non-loopback bind unless ``PULSENET_ALLOW_INSECURE_BIND`` is set.

    The submission and registration endpoints carry no auth layer, so an
    off-box bind exposes them to anyone who can reach the port.
    """
    if is_loopback_host(settings.pulsenet_host):
        return
    if not settings.pulsenet_allow_insecure_bind:
        raise InsecureBindError(
            f"Refusing to bind PulseNet to {settings.pulsenet_host!r} without an auth layer. "
            "Set PULSENET_ALLOW_INSECURE_BIND=true to override (unsafe)."
        )
    logger.warning(
        "Binding PulseNet to non-loopback host %s; endpoints are unauthenticated",
        settings.pulsenet_host,
    )


def configure_logging(level_name: str) -> int:
    """Install the root handler and return the level actually applied."""
    level = logging.getLevelName(level_name.upper())
    unknown = not isinstance(level, int)
    if unknown:
        level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
    if unknown:
        logger.warning("Unknown PULSENET_LOG_LEVEL %r; using INFO", level_name)
    return level


def run() -> None:
    """Validate the bind address, build the app, and serve Streamable HTTP."""
    settings = get_settings()
    configure_logging(settings.pulsenet_log_level)
    check_bind_address(settings)

    mcp = create_app()
    logger.info(
        "Serving PulseNet on http://%s:%d/mcp (relay: %s)",
        settings.pulsenet_host,
        settings.pulsenet_port,
        settings.ledger_relay_url or "offline",
    )
    mcp.run(
        transport="streamable-http",
        host=settings.pulsenet_host,
        port=settings.pulsenet_port,
    )


if __name__ == "__main__":
    run()
