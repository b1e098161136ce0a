"""Commitment scheme — binds a submission to a data hash and a proof token.

The shipped scheme is a simulation: the proof is ``zkp-<hash8>-<nonce>-verified``
and verification only checks the shape and the embedded hash prefix. The
nonce is never checked, so two proofs for the same hash both verify. A real
proof system can replace :class:`SimulatedCommitmentScheme` by implementing
:class:`CommitmentScheme`; the pipeline only sees the protocol.
"""

from __future__ import annotations

import hashlib
import json
import logging
import secrets
import time
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Protocol, runtime_checkable

from pulsenet.core.storage.models import Commitment, HealthSubmission
from pulsenet.domains.health.domain_logic.validator import validate_submission

logger = logging.getLogger(__name__)

PROOF_PREFIX = "zkp"
PROOF_SUFFIX = "verified"
NONCE_BYTES = 16


@runtime_checkable
class CommitmentScheme(Protocol):
    """Generate and check commitments over health submissions."""

    def generate(self, submission: HealthSubmission | Mapping[str, Any]) -> Commitment:
        ...

    def verify(self, proof: Any, data_hash: Any) -> bool:
        ...


# ---------------------------------------------------------------------------
# Canonical serialization
# ---------------------------------------------------------------------------

def _canonical_number(value: Any) -> Any:
    """Render integral floats as ints (``8.0`` -> ``8``) for stable hashing."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def canonical_serialize(submission: HealthSubmission) -> str:
    """Compact JSON of the five hashed fields in fixed key order."""
    fields = {k: _canonical_number(v) for k, v in submission.hash_fields().items()}
    return json.dumps(fields, separators=(",", ":"), ensure_ascii=False)


def compute_data_hash(submission: HealthSubmission) -> str:
    digest = hashlib.sha256(canonical_serialize(submission).encode("utf-8")).hexdigest()
    return "0x" + digest


# ---------------------------------------------------------------------------
# Simulated scheme
# ---------------------------------------------------------------------------

class SimulatedCommitmentScheme:
    """Reproducible hash plus a nonce-bearing, non-cryptographic proof token.

    Stateless; safe to share across requests without locking.
    """

    def generate(self, submission: HealthSubmission | Mapping[str, Any]) -> Commitment:
        """Validate, hash, and build a proof token.

        Accepts either a raw payload or an already validated submission; both
        are re-validated so the scheme is safe to call on its own.

        Raises:
            ValidationError: If the submission breaks a schema or range rule.
        """
        start = time.perf_counter()
        payload = submission.hash_fields() if isinstance(submission, HealthSubmission) else submission
        validated = validate_submission(payload)

        data_hash = compute_data_hash(validated)
        proof = "-".join(
            [PROOF_PREFIX, data_hash[2:10], secrets.token_hex(NONCE_BYTES), PROOF_SUFFIX]
        )
        elapsed_ms = (time.perf_counter() - start) * 1000

        return Commitment(
            proof=proof,
            data_hash=data_hash,
            generated_at=datetime.now(timezone.utc).isoformat(),
            verification_time_ms=round(elapsed_ms, 3),
        )

    def verify(self, proof: Any, data_hash: Any) -> bool:
        """Check a proof token against a data hash. Never raises."""
        if not isinstance(proof, str) or not isinstance(data_hash, str):
            return False
        if not proof.startswith(PROOF_PREFIX + "-"):
            return False

        parts = proof.split("-")
        if len(parts) != 4 or parts[3] != PROOF_SUFFIX:
            return False

        # Segment 3 (the nonce) is intentionally not inspected.
        return parts[1] == data_hash[2:10]
