"""
Verifier contract - Puts a ProofVerifier on the ledger.

verify_proof raises on an invalid proof, which aborts the whole calling
transaction.
"""

from __future__ import annotations

from ..ledger.network import Env
from ..prover.backend import ProofVerifier, ReferenceVerifier


class VerifierContract:
    EXPORTS = ("verify_proof",)

    def __init__(self, verifier: ProofVerifier | None = None):
        self.verifier = verifier or ReferenceVerifier()

    def verify_proof(self, env: Env, proof: bytes, public_inputs: bytes):
        self.verifier.verify_proof(bytes(proof), bytes(public_inputs))
