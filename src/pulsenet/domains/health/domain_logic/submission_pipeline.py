"""Submission pipeline — validate, commit, store, relay.

Steps run sequentially per request:

1. Validator            : schema + range checks (raises ValidationError)
2. Commitment scheme    : data hash + proof token
3. Off-chain store      : append under the store's write lock (raises StorageError)
4. Ledger relay         : best effort, strictly after the write commits

A relay failure or timeout never undoes step 3; it is logged, audited, and
reported back as a warning on an otherwise successful outcome.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

from pulsenet.core.errors import PulseNetError, RelayError
from pulsenet.core.ledger.models import RelayReceipt
from pulsenet.core.storage.models import Commitment, HealthSubmission
from pulsenet.domains.health.domain_logic.validator import validate_submission

if TYPE_CHECKING:
    from pulsenet.core.audit.logger import AuditLogger
    from pulsenet.core.ledger import LedgerRelay
    from pulsenet.domains.health.domain_logic.commitment import CommitmentScheme
    from pulsenet.domains.health.domain_logic.offchain_store import OffChainStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class SubmissionOutcome:
    """Everything the response layer needs about one accepted submission."""

    submission_id: str
    submission: HealthSubmission
    commitment: Commitment
    receipt: RelayReceipt
    submission_count: int
    token_balance: str
    warnings: list[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return not self.receipt.success


class SubmissionPipeline:
    """Runs one submission through validation, commitment, storage, and relay.

    Usage::

        pipeline = SubmissionPipeline(store, SimulatedCommitmentScheme(), relay)
        outcome = await pipeline.submit({"userAddress": "0x...", ...})
    """

    def __init__(
        self,
        store: OffChainStore,
        scheme: CommitmentScheme,
        relay: LedgerRelay,
        audit_logger: AuditLogger | None = None,
        *,
        relay_timeout_s: float = 10.0,
    ) -> None:
        self._store = store
        self._scheme = scheme
        self._relay = relay
        self._audit = audit_logger
        self._relay_timeout_s = relay_timeout_s

    @property
    def store(self) -> OffChainStore:
        return self._store

    @property
    def scheme(self) -> CommitmentScheme:
        return self._scheme

    @property
    def relay(self) -> LedgerRelay:
        return self._relay

    async def submit(self, payload: Mapping[str, Any]) -> SubmissionOutcome:
        """Accept a submission.

        Raises:
            ValidationError: The payload breaks a schema or range rule.
            StorageError: The off-chain write failed; nothing was relayed.
        """
        start = time.monotonic()
        try:
            submission = validate_submission(payload)
            commitment = self._scheme.generate(submission)
            logger.info("Processing health data submission from %s", submission.user_address)
            submission_id = self._store.append(submission, commitment)
        except PulseNetError as exc:
            self._audit_submission(payload, start, status="failure", error_type=type(exc).__name__)
            raise

        # The write has committed; nothing below may fail the request.
        receipt = await self._submit_to_relay(commitment.data_hash, submission.user_address)
        warnings: list[str] = []
        if not receipt.success:
            warnings.append(
                f"Ledger relay failed ({receipt.error}); data stored off-chain only"
            )

        count = self._store.count_by_user(submission.user_address)
        balance = await self.best_effort(
            self._relay.get_token_balance(submission.user_address), "0", "token balance"
        )

        self._audit_submission(
            payload,
            start,
            status="degraded" if warnings else "success",
            metadata={"submission_id": submission_id, "relayed": receipt.success},
        )
        logger.info("Health data submitted by %s (id=%s)", submission.user_address, submission_id)

        return SubmissionOutcome(
            submission_id=submission_id,
            submission=submission,
            commitment=commitment,
            receipt=receipt,
            submission_count=count,
            token_balance=balance,
            warnings=warnings,
        )

    async def best_effort(self, call: Awaitable[T], default: T, what: str) -> T:
        """Await a relay read with the relay timeout; fall back to ``default``."""
        try:
            return await asyncio.wait_for(call, timeout=self._relay_timeout_s)
        except (RelayError, asyncio.TimeoutError) as exc:
            logger.warning("Ledger relay %s unavailable: %s", what, exc or type(exc).__name__)
            return default

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _submit_to_relay(self, data_hash: str, address: str) -> RelayReceipt:
        try:
            return await asyncio.wait_for(
                self._relay.submit_hash(data_hash), timeout=self._relay_timeout_s
            )
        except asyncio.TimeoutError:
            error = f"timed out after {self._relay_timeout_s:g}s"
        except RelayError as exc:
            error = exc.message

        logger.warning("Blockchain submission failed for %s: %s", data_hash[:10], error)
        if self._audit is not None:
            self._audit.log_relay_failure(data_hash=data_hash, error=error, wallet_address=address)
        return RelayReceipt.failed(error)

    def _audit_submission(
        self,
        payload: Mapping[str, Any],
        start: float,
        *,
        status: str,
        error_type: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        if self._audit is None:
            return
        address = payload.get("userAddress") if isinstance(payload, Mapping) else None
        self._audit.log_action(
            "submission",
            tool_name="submit_health_data",
            tool_input=dict(payload) if isinstance(payload, Mapping) else None,
            wallet_address=address if isinstance(address, str) else None,
            duration_ms=(time.monotonic() - start) * 1000,
            status=status,
            error_type=error_type,
            metadata=metadata,
        )
