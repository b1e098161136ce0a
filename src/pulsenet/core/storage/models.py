"""Data models for the PulseNet persistence layer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

Number = int | float


@dataclass(frozen=True)
class HealthSubmission:
    """One user's metric snapshot.

    Immutable once written. ``id``, ``data_hash`` and ``proof`` are empty
    until the off-chain store accepts the record.
    """

    user_address: str  # stored as received; compared lowercase
    heart_rate: Number | None
    sleep_hours: Number | None
    steps: Number | None
    timestamp: int  # ms since epoch
    id: str = ""
    data_hash: str = ""
    proof: str = ""

    def hash_fields(self) -> dict[str, Any]:
        """The five fields the commitment hash binds, in canonical order."""
        return {
            "userAddress": self.user_address,
            "heartRate": self.heart_rate,
            "sleepHours": self.sleep_hours,
            "steps": self.steps,
            "timestamp": self.timestamp,
        }

    def metrics(self) -> dict[str, Number | None]:
        return {
            "heartRate": self.heart_rate,
            "sleepHours": self.sleep_hours,
            "steps": self.steps,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            **self.hash_fields(),
            "dataHash": self.data_hash,
            "proof": self.proof,
        }


@dataclass(frozen=True)
class Commitment:
    """Output of a commitment scheme for one submission."""

    proof: str
    data_hash: str
    generated_at: str  # ISO 8601
    verification_time_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "proof": self.proof,
            "dataHash": self.data_hash,
            "generatedAt": self.generated_at,
            "verificationTime": self.verification_time_ms,
        }


@dataclass(frozen=True)
class PlatformStats:
    """Materialized snapshot derived from the full submission log."""

    total_submissions: int
    unique_contributors: int
    last_updated: str  # ISO 8601

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalSubmissions": self.total_submissions,
            "uniqueContributors": self.unique_contributors,
            "lastUpdated": self.last_updated,
        }


@dataclass
class UserRegistration:
    """Wallet <-> device fingerprint binding."""

    wallet_address: str
    device_fingerprint: str
    registration_id: str
    registered_at: str  # ISO 8601
    verified: bool = True
    last_activity: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Public view. The fingerprint is never echoed back."""
        return {
            "walletAddress": self.wallet_address,
            "registrationId": self.registration_id,
            "registeredAt": self.registered_at,
            "verified": self.verified,
            "lastActivity": self.last_activity,
        }
