"""
Proof System Backend - The contract between the worker and a prover.

A proof system exposes two calls:
    execute(private_inputs, public_input) -> Witness
    prove(witness, transcript_mode) -> (proof, public_outputs)

The transcript mode decides how Fiat-Shamir challenges are derived. The
verifier on the ledger expects Keccak challenges. A proof generated with any
other mode is still a well-formed byte string, and nothing fails until the
verifier rejects it at submission time, so the mode is a fixed constant here
rather than something callers pick.

The reference backend below honours that contract for local ledgers and
tests. It binds a proof to its public output and transcript mode, but it is
not zero-knowledge sound and must not be deployed against real stakes.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol
import hashlib
import hmac
import secrets

from eth_utils import keccak

from ..commitment.codec import HashPrimitive, commit
from ..errors import VerificationError


class TranscriptMode(Enum):
    """Challenge-derivation hash for the proof transcript."""
    KECCAK = "keccak"
    POSEIDON = "poseidon"


# The verifier expects Keccak transcripts. Never infer this.
TRANSCRIPT_MODE = TranscriptMode.KECCAK


class CircuitError(Exception):
    """The private inputs do not satisfy the circuit."""


@dataclass(frozen=True)
class PrivateInputs:
    x: int = field(repr=False)
    y: int = field(repr=False)
    nullifier: int = field(repr=False)


@dataclass(frozen=True)
class Witness:
    """Solved circuit assignment. Opaque outside the backend."""
    public_output: bytes
    values: tuple[int, ...] = field(repr=False, default=())


class ProofSystem(Protocol):
    def execute(self, private_inputs: PrivateInputs, public_input: bytes) -> Witness:
        ...

    def prove(self, witness: Witness, transcript_mode: TranscriptMode) -> tuple[bytes, list[Any]]:
        ...


class ProofVerifier(Protocol):
    """Raises VerificationError on an invalid proof; returns None otherwise."""

    def verify_proof(self, proof: bytes, public_inputs: bytes) -> None:
        ...


# =============================================================================
# Reference backend
# =============================================================================

PROOF_DOMAIN = b"aethergrid/proof/v1"
SALT_BYTES = 16
CHALLENGE_BYTES = 32
PROOF_LENGTH = SALT_BYTES + CHALLENGE_BYTES


def transcript_hash(mode: TranscriptMode, data: bytes) -> bytes:
    if mode == TranscriptMode.KECCAK:
        return keccak(data)
    return hashlib.blake2s(data, digest_size=32, person=b"poseidon").digest()


@dataclass
class ReferenceProofSystem:
    """Deterministic-shape prover for local ledgers."""
    hasher: HashPrimitive | None = None

    def execute(self, private_inputs: PrivateInputs, public_input: bytes) -> Witness:
        """Solve the circuit: assert hash(x, y, nullifier) == public_input."""
        computed = commit(
            private_inputs.x, private_inputs.y, private_inputs.nullifier, self.hasher
        )
        if not hmac.compare_digest(computed.value, bytes(public_input)):
            raise CircuitError("Circuit assertion failed: hash(x, y, nullifier) != public input")
        return Witness(
            public_output=computed.value,
            values=(private_inputs.x, private_inputs.y, private_inputs.nullifier),
        )

    def prove(self, witness: Witness, transcript_mode: TranscriptMode) -> tuple[bytes, list[Any]]:
        salt = secrets.token_bytes(SALT_BYTES)
        challenge = transcript_hash(transcript_mode, PROOF_DOMAIN + salt + witness.public_output)
        return salt + challenge, ["0x" + witness.public_output.hex()]


@dataclass
class ReferenceVerifier:
    """Verifier matching ReferenceProofSystem; the verification key is the mode."""
    transcript_mode: TranscriptMode = TRANSCRIPT_MODE

    def verify_proof(self, proof: bytes, public_inputs: bytes) -> None:
        proof = bytes(proof)
        if len(proof) != PROOF_LENGTH:
            raise VerificationError("VerificationFailed: malformed proof")
        if len(public_inputs) != 32:
            raise VerificationError("VerificationFailed: malformed public inputs")
        salt, challenge = proof[:SALT_BYTES], proof[SALT_BYTES:]
        expected = transcript_hash(
            self.transcript_mode, PROOF_DOMAIN + salt + bytes(public_inputs)
        )
        if not hmac.compare_digest(challenge, expected):
            raise VerificationError("VerificationFailed")


def public_output_bytes(public_outputs: list[Any]) -> bytes:
    """
    Normalize the circuit's single public output to the 32-byte buffer
    submitted as `public_inputs`.

    Backends report public outputs as 0x-hex strings, ints or raw bytes.
    """
    if not public_outputs:
        raise ValueError("proof has no public outputs")
    value = public_outputs[0]
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
        if len(raw) > 32:
            raise ValueError("public output longer than 32 bytes")
        return raw.rjust(32, b"\x00")
    if isinstance(value, int):
        return value.to_bytes(32, "big")
    text = str(value)
    clean = text[2:] if text.lower().startswith("0x") else text
    if len(clean) > 64:
        raise ValueError("public output longer than 32 bytes")
    return bytes.fromhex(clean.rjust(64, "0"))
