"""
Opacity prover service calls.

The prover decides what makes a proof valid; these helpers only fetch and
forward proofs.
"""

from __future__ import annotations

import dataclasses
import time
from dataclasses import dataclass
from typing import Any

import httpx

from ..core.errors import ProofGenerationError, ProofVerificationError
from ..core.types import Proof

PROOF_TYPE = "opacity"


@dataclass(frozen=True)
class OpacityProverResponse:
    success: bool
    error: str | None = None
    details: Any = None


async def generate_proof(
    client: httpx.AsyncClient, prover_url: str, log_id: str
) -> Proof:
    """Fetch the proof recorded for ``log_id``.

    Raises:
        ProofGenerationError: If the prover does not answer with 2xx.
    """
    resp = await client.get(f"{prover_url.rstrip('/')}/api/logs/{log_id}")
    if resp.is_error:
        raise ProofGenerationError(
            f"Failed to generate proof: {resp.reason_phrase}",
            details=resp.text[:256],
        )
    return Proof(
        type=PROOF_TYPE,
        data=resp.json(),
        timestamp=time.time(),
        metadata={"log_id": log_id, "prover_url": prover_url},
    )


async def verify_proof(
    client: httpx.AsyncClient, prover_url: str, log_id: str, proof: Proof
) -> OpacityProverResponse:
    """Ask the prover to verify ``proof``.

    Raises:
        ProofVerificationError: If the prover does not answer with 2xx.
    """
    body = dataclasses.asdict(proof)
    body["metadata"] = dict(proof.metadata)
    resp = await client.post(
        f"{prover_url.rstrip('/')}/api/verify/{log_id}",
        json=body,
    )
    if resp.is_error:
        raise ProofVerificationError(
            f"Failed to verify proof: {resp.reason_phrase}",
            proof=proof,
            details=resp.text[:256],
        )
    data = resp.json()
    return OpacityProverResponse(
        success=bool(data.get("success")),
        error=data.get("error"),
        details=data.get("details"),
    )
