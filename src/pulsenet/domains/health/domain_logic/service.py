"""Response assembly for every external operation.

The MCP tools and the HTTP routes are thin adapters over this class: each
method returns the success body, or raises a :class:`PulseNetError` that
:func:`error_body` renders.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from pulsenet.core.errors import PulseNetError, ValidationError
from pulsenet.domains.health.domain_logic.validator import (
    DEFAULT_MIN_FINGERPRINT_LENGTH,
    validate_address,
    validate_registration,
)

if TYPE_CHECKING:
    from pulsenet.core.audit.logger import AuditLogger
    from pulsenet.domains.health.domain_logic.registration import RegistrationRegistry
    from pulsenet.domains.health.domain_logic.submission_pipeline import SubmissionPipeline

logger = logging.getLogger(__name__)


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def error_body(exc: PulseNetError) -> tuple[int, dict[str, Any]]:
    """Map a domain error to (status_code, response body)."""
    return exc.status_code, exc.to_dict()


def tool_json(body: dict[str, Any], status: int = 200) -> str:
    """Serialize a body for an MCP tool result, carrying the HTTP-equivalent status."""
    return json.dumps({"status": status, **body})


class PulseNetService:
    """Builds the JSON bodies for submissions, stats, proofs, and registrations."""

    def __init__(
        self,
        pipeline: SubmissionPipeline,
        registry: RegistrationRegistry,
        audit_logger: AuditLogger | None = None,
        *,
        reward_per_submission: int = 10,
        min_fingerprint_length: int = DEFAULT_MIN_FINGERPRINT_LENGTH,
    ) -> None:
        self._pipeline = pipeline
        self._registry = registry
        self._audit = audit_logger
        self._reward = reward_per_submission
        self._min_fp = min_fingerprint_length

    @property
    def pipeline(self) -> SubmissionPipeline:
        return self._pipeline

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------

    async def submit(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        outcome = await self._pipeline.submit(payload)
        body: dict[str, Any] = {
            "success": True,
            "message": "Health data submitted successfully",
            "data": {
                "submissionId": outcome.submission_id,
                "zkProof": {
                    "verified": True,
                    "proof": outcome.commitment.proof,
                    "verificationTime": outcome.commitment.verification_time_ms,
                },
                "blockchain": outcome.receipt.to_dict(),
                "user": {
                    "address": outcome.submission.user_address,
                    "submissionCount": outcome.submission_count,
                    "tokenBalance": outcome.token_balance,
                },
                "dataHash": outcome.commitment.data_hash,
                "timestamp": outcome.commitment.generated_at,
            },
        }
        if outcome.degraded:
            body["data"]["degraded"] = True
            body["warnings"] = outcome.warnings
        return body

    async def platform_stats(self) -> dict[str, Any]:
        snapshot = self._pipeline.store.snapshot()
        chain = await self._pipeline.best_effort(
            self._pipeline.relay.get_platform_stats(),
            {"totalSubmissions": 0, "uniqueContributors": 0},
            "platform stats",
        )
        logger.info("Platform statistics requested")
        return {
            "success": True,
            "data": {
                "platform": {**snapshot, "blockchain": chain},
                "metadata": {
                    "dataSource": "anonymized_aggregation",
                    "privacyLevel": "high",
                    "lastUpdated": snapshot["lastUpdated"],
                },
            },
        }

    async def user_stats(self, address: Any) -> dict[str, Any]:
        address = validate_address(address)
        relay = self._pipeline.relay
        off_chain = self._pipeline.store.count_by_user(address)
        on_chain = await self._pipeline.best_effort(
            relay.get_submission_count(address), 0, "submission count"
        )
        balance = await self._pipeline.best_effort(
            relay.get_token_balance(address), "0", "token balance"
        )
        logger.info("User statistics requested for %s", address)
        return {
            "success": True,
            "data": {
                "userAddress": address,
                "submissions": {"offChain": off_chain, "onChain": on_chain},
                "rewards": {
                    "tokenBalance": balance,
                    "totalEarned": str(on_chain * self._reward),
                },
                "lastUpdated": _iso_now(),
            },
        }

    async def reward_balance(self, address: Any) -> dict[str, Any]:
        address = validate_address(address)
        relay = self._pipeline.relay
        balance = await self._pipeline.best_effort(
            relay.get_token_balance(address), "0", "token balance"
        )
        count = await self._pipeline.best_effort(
            relay.get_submission_count(address), 0, "submission count"
        )
        return {
            "success": True,
            "data": {
                "address": address,
                "balance": balance,
                "submissionCount": count,
                "totalEarned": str(count * self._reward),
                "lastUpdated": _iso_now(),
            },
        }

    def verify_proof(self, proof: Any, data_hash: Any) -> dict[str, Any]:
        if not proof or not data_hash:
            raise ValidationError(
                "proof" if not proof else "dataHash", "Missing proof or dataHash"
            )
        valid = self._pipeline.scheme.verify(proof, data_hash)
        return {
            "success": True,
            "data": {
                "valid": valid,
                "proof": proof,
                "dataHash": data_hash,
                "verifiedAt": _iso_now(),
            },
        }

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        start = time.monotonic()
        try:
            wallet, fingerprint, timestamp = validate_registration(
                payload, min_fingerprint_length=self._min_fp
            )
            record, created = self._registry.register(
                wallet, fingerprint, timestamp_ms=timestamp
            )
        except PulseNetError as exc:
            self._audit_registry("registration", payload, start, exc)
            raise
        self._audit_registry("registration", payload, start, None, {"created": created})

        return {
            "success": True,
            "message": "User registered successfully" if created else "User already registered",
            "data": {
                "walletAddress": record.wallet_address,
                "registrationId": record.registration_id,
                "registeredAt": record.registered_at,
                "verified": record.verified,
            },
        }

    def verify_user(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        start = time.monotonic()
        try:
            wallet, fingerprint, _ = validate_registration(
                payload, min_fingerprint_length=self._min_fp, allow_timestamp=False
            )
            record = self._registry.verify(wallet, fingerprint)
        except PulseNetError as exc:
            self._audit_registry("verification", payload, start, exc)
            raise
        self._audit_registry("verification", payload, start, None)

        return {
            "success": True,
            "message": "User verified successfully",
            "data": {
                "walletAddress": record.wallet_address,
                "verified": record.verified,
                "registeredAt": record.registered_at,
                "lastActivity": record.last_activity,
            },
        }

    def get_registration(self, address: Any) -> dict[str, Any]:
        address = validate_address(address)
        record = self._registry.get(address)
        return {"success": True, "message": "User found", "data": record.to_dict()}

    def registration_summary(self) -> dict[str, Any]:
        summary = self._registry.summary()
        return {
            "success": True,
            "message": "User statistics retrieved",
            "data": {**summary, "timestamp": _iso_now()},
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _audit_registry(
        self,
        action: str,
        payload: Mapping[str, Any],
        start: float,
        exc: PulseNetError | None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        if self._audit is None:
            return
        wallet = payload.get("walletAddress") if isinstance(payload, Mapping) else None
        if exc is not None:
            metadata = {**(metadata or {}), "code": exc.code}
        self._audit.log_action(
            action,
            tool_name="register_user" if action == "registration" else "verify_user",
            tool_input=dict(payload) if isinstance(payload, Mapping) else None,
            wallet_address=wallet if isinstance(wallet, str) else None,
            duration_ms=(time.monotonic() - start) * 1000,
            status="failure" if exc is not None else "success",
            error_type=type(exc).__name__ if exc is not None else None,
            metadata=metadata,
        )
