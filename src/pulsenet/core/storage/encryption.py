"""Fernet encryption for raw health metrics at rest.

Heart rate, sleep hours, and step counts are sealed into a single token per
submission. Address, timestamp, hash, and proof stay in clear columns so the
log can be counted and filtered without decrypting.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class EncryptionError(Exception):
    """Raised when sealing or opening a metrics token fails."""


class MetricsCipher:
    """Seals metric dicts into Fernet tokens and opens them again.

    Usage::

        cipher = MetricsCipher(key="...")
        token = cipher.seal({"heartRate": 72, "sleepHours": 7.5, "steps": 8000})
        cipher.open(token)  # {"heartRate": 72, ...}
    """

    def __init__(self, key: str) -> None:
        """Initialize with a Fernet key.

        Raises:
            EncryptionError: If the key is empty or invalid.
        """
        if not key or not key.strip():
            raise EncryptionError("Encryption key must not be empty")
        try:
            self._fernet = Fernet(key.encode())
        except ValueError as exc:
            raise EncryptionError(f"Invalid encryption key: {exc}") from exc

    def seal(self, metrics: dict[str, Any]) -> str:
        """Encrypt a metrics dict to a Fernet token string."""
        try:
            plaintext = json.dumps(metrics, separators=(",", ":")).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise EncryptionError(f"Metrics are not serializable: {exc}") from exc
        return self._fernet.encrypt(plaintext).decode("utf-8")

    def open(self, token: str) -> dict[str, Any]:
        """Decrypt a token produced by :meth:`seal`.

        Raises:
            EncryptionError: On a wrong key, tampered token, or bad payload.
        """
        try:
            plaintext = self._fernet.decrypt(token.encode("utf-8"))
        except InvalidToken as exc:
            raise EncryptionError("Decryption failed: invalid token or wrong key") from exc
        try:
            metrics = json.loads(plaintext)
        except json.JSONDecodeError as exc:
            raise EncryptionError(f"Decrypted payload is not JSON: {exc}") from exc
        if not isinstance(metrics, dict):
            raise EncryptionError("Decrypted payload is not a metrics object")
        return metrics

    @staticmethod
    def generate_key() -> str:
        """Generate a new URL-safe base64 Fernet key."""
        return Fernet.generate_key().decode("utf-8")
