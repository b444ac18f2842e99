"""
Prover Module - Proof generation behind a message-passing boundary.

Private coordinates go in once; only the proof and its public output come
back out. The worker runs in its own process and is cancelled by
termination.
"""

from .messages import ProofRequest, Status, Ready, Failed, WorkerMessage, is_terminal
from .backend import (
    TRANSCRIPT_MODE,
    TranscriptMode,
    CircuitError,
    PrivateInputs,
    Witness,
    ProofSystem,
    ProofVerifier,
    ReferenceProofSystem,
    ReferenceVerifier,
    public_output_bytes,
)
from .worker import ProofWorker, ProofGenerationError, run_proof_job

__all__ = [
    "ProofRequest",
    "Status",
    "Ready",
    "Failed",
    "WorkerMessage",
    "is_terminal",
    "TRANSCRIPT_MODE",
    "TranscriptMode",
    "CircuitError",
    "PrivateInputs",
    "Witness",
    "ProofSystem",
    "ProofVerifier",
    "ReferenceProofSystem",
    "ReferenceVerifier",
    "public_output_bytes",
    "ProofWorker",
    "ProofGenerationError",
    "run_proof_job",
]
