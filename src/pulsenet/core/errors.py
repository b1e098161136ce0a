"""Error taxonomy shared by the validator, stores, registry, and relay.

Every error carries an HTTP-equivalent ``status_code`` and a machine-readable
``code`` so the MCP tools and the HTTP routes can render the same body.
"""

from __future__ import annotations

from typing import Any


class PulseNetError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    error: str = "Internal server error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.error)
        self.message = message or self.error

    def to_dict(self) -> dict[str, Any]:
        """Render as a ``{success: false, ...}`` response body."""
        return {
            "success": False,
            "error": self.error,
            "code": self.code,
            "details": self.message,
        }


class ValidationError(PulseNetError):
    """Malformed or out-of-range input. Always a client error."""

    status_code = 400
    code = "VALIDATION_ERROR"
    error = "Validation error"

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["field"] = self.field
        return body


# reason -> (status_code, code, error)
_CONFLICT_REASONS: dict[str, tuple[int, str, str]] = {
    "device-already-registered": (
        409,
        "DEVICE_ALREADY_REGISTERED",
        "Device already registered with different wallet",
    ),
    "wallet-already-registered": (
        409,
        "WALLET_ALREADY_REGISTERED",
        "Wallet already registered with different device",
    ),
    "fingerprint-mismatch": (
        403,
        "DEVICE_MISMATCH",
        "Device fingerprint mismatch",
    ),
}


class ConflictError(PulseNetError):
    """Registry uniqueness violation, identified by ``reason``."""

    status_code = 409
    code = "CONFLICT"
    error = "Conflict"

    def __init__(self, reason: str, message: str = "") -> None:
        if reason not in _CONFLICT_REASONS:
            raise ValueError(f"Unknown conflict reason: {reason!r}")
        self.reason = reason
        self.status_code, self.code, self.error = _CONFLICT_REASONS[reason]
        super().__init__(message or self.error)


class NotFoundError(PulseNetError):
    """Unknown wallet or address."""

    status_code = 404
    code = "USER_NOT_FOUND"
    error = "User not registered"


class StorageError(PulseNetError):
    """Persisting or loading records failed. Committed data is untouched."""

    status_code = 500
    code = "STORAGE_ERROR"
    error = "Failed to store health data"


class RelayError(PulseNetError):
    """The ledger relay could not record a hash. Never fatal to a submission."""

    status_code = 502
    code = "RELAY_ERROR"
    error = "Ledger relay unavailable"
