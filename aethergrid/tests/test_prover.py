"""
Tests for the proof worker boundary.

Tests:
- Message sequence: Status*, then exactly one Ready or Failed
- Failures reported as Failed, never raised
- Transcript mode pinned to what the verifier expects
- Real-process runs, including cancellation and timeout
"""

import time

import pytest

from ..commitment import commit
from ..errors import VerificationError
from ..prover import (
    TRANSCRIPT_MODE,
    Failed,
    ProofGenerationError,
    ProofRequest,
    ProofWorker,
    Ready,
    ReferenceProofSystem,
    ReferenceVerifier,
    TranscriptMode,
    is_terminal,
    public_output_bytes,
    run_proof_job,
)


class SlowProofSystem(ReferenceProofSystem):
    """Stalls in witness generation so a worker can be stopped mid-proof."""

    def execute(self, private_inputs, public_input):
        time.sleep(60)
        return super().execute(private_inputs, public_input)


def run_in_process(request, backend=None):
    messages = []
    run_proof_job(request, backend or ReferenceProofSystem(), messages.append)
    return messages


class TestTranscriptMode:
    """The transcript mode is a fixed constant shared with the verifier."""

    def test_pinned_to_keccak(self):
        assert TRANSCRIPT_MODE == TranscriptMode.KECCAK

    def test_verifier_default_matches(self):
        assert ReferenceVerifier().transcript_mode == TRANSCRIPT_MODE

    def test_wrong_mode_proof_is_rejected_by_verifier(self, prove):
        """A Poseidon-transcript proof is well formed but fails verification."""
        proof, public_output = prove(mode=TranscriptMode.POSEIDON)
        assert len(proof) == len(prove()[0])
        with pytest.raises(VerificationError):
            ReferenceVerifier().verify_proof(proof, public_output)


class TestRunProofJob:
    """Tests for the in-process job runner."""

    def test_success_sequence(self):
        """Status messages, then a single Ready bound to the commitment."""
        treasure_hash = bytes(commit(3, 5, 42))
        messages = run_in_process(ProofRequest(x=3, y=5, nullifier=42, public_input=treasure_hash))

        assert [m.text for m in messages[:-1]] == [
            "Initialising proving backend...",
            "Computing witness...",
            "Generating proof...",
        ]
        assert isinstance(messages[-1], Ready)
        assert messages[-1].public_output == treasure_hash
        assert sum(is_terminal(m) for m in messages) == 1

    def test_proof_verifies(self):
        treasure_hash = bytes(commit(3, 5, 42))
        ready = run_in_process(ProofRequest(x=3, y=5, nullifier=42, public_input=treasure_hash))[-1]
        ReferenceVerifier().verify_proof(ready.proof, ready.public_output)

    def test_wrong_location_fails(self):
        """Coordinates that do not hash to the commitment are a circuit failure."""
        treasure_hash = bytes(commit(3, 5, 42))
        messages = run_in_process(ProofRequest(x=4, y=5, nullifier=42, public_input=treasure_hash))

        assert isinstance(messages[-1], Failed)
        assert "Circuit assertion failed" in messages[-1].reason
        assert not any(isinstance(m, Ready) for m in messages)

    def test_malformed_input_fails(self):
        messages = run_in_process(ProofRequest(x=-1, y=5, nullifier=42, public_input=bytes(32)))
        assert isinstance(messages[-1], Failed)
        assert sum(is_terminal(m) for m in messages) == 1

    def test_failure_reason_omits_private_input(self):
        """The reason is logged by callers, so it never echoes the input."""
        messages = run_in_process(ProofRequest(x="77x31", y=5, nullifier=42, public_input=bytes(32)))
        assert isinstance(messages[-1], Failed)
        assert "77x31" not in messages[-1].reason

    def test_out_of_memory_reported(self):
        """Backend OOM is a Failed message, not an exception."""

        class Exhausted(ReferenceProofSystem):
            def prove(self, witness, transcript_mode):
                raise MemoryError()

        treasure_hash = bytes(commit(3, 5, 42))
        messages = run_in_process(
            ProofRequest(x=3, y=5, nullifier=42, public_input=treasure_hash), Exhausted()
        )
        assert messages[-1] == Failed("out of memory while proving")

    def test_backend_fault_without_message(self):
        class Broken(ReferenceProofSystem):
            def execute(self, private_inputs, public_input):
                raise RuntimeError()

        messages = run_in_process(
            ProofRequest(x=3, y=5, nullifier=42, public_input=bytes(commit(3, 5, 42))), Broken()
        )
        assert messages[-1] == Failed("RuntimeError")

    def test_uses_pinned_transcript_mode(self):
        """The worker never picks a mode of its own."""
        seen = []

        class Recording(ReferenceProofSystem):
            def prove(self, witness, transcript_mode):
                seen.append(transcript_mode)
                return super().prove(witness, transcript_mode)

        run_in_process(ProofRequest(x=3, y=5, nullifier=42, public_input=bytes(commit(3, 5, 42))), Recording())
        assert seen == [TRANSCRIPT_MODE]


class TestPrivacy:
    """Private inputs stay out of reprs."""

    def test_request_repr_redacts(self):
        request = ProofRequest(x=123456789, y=987654321, nullifier=55555, public_input=bytes(32))
        text = repr(request)
        assert "123456789" not in text
        assert "987654321" not in text
        assert "55555" not in text

    def test_ready_repr_omits_proof_bytes(self):
        ready = Ready(proof=b"\x07" * 48, public_output=bytes(32))
        assert "48 bytes" in repr(ready)


class TestVerifier:
    """Tests for the reference verifier."""

    def test_tampered_proof_rejected(self, prove):
        proof, public_output = prove()
        tampered = proof[:-1] + bytes([proof[-1] ^ 1])
        with pytest.raises(VerificationError):
            ReferenceVerifier().verify_proof(tampered, public_output)

    def test_proof_bound_to_public_input(self, prove):
        """A valid proof for one commitment does not verify for another."""
        proof, _ = prove()
        with pytest.raises(VerificationError):
            ReferenceVerifier().verify_proof(proof, bytes(commit(3, 5, 43)))

    def test_malformed_proof_rejected(self):
        with pytest.raises(VerificationError):
            ReferenceVerifier().verify_proof(b"short", bytes(32))


class TestPublicOutputBytes:
    """Backends report public outputs in different shapes."""

    def test_shapes_normalize(self):
        expected = bytes(31) + b"\x2a"
        assert public_output_bytes(["0x2a"]) == expected
        assert public_output_bytes([42]) == expected
        assert public_output_bytes([b"\x2a"]) == expected

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            public_output_bytes([])


class TestProofWorker:
    """Process-isolated worker."""

    def test_generate_in_subprocess(self):
        """A real worker process returns a verifiable proof."""
        treasure_hash = bytes(commit(3, 5, 42))
        statuses = []

        ready = ProofWorker().generate(
            ProofRequest(x=3, y=5, nullifier=42, public_input=treasure_hash),
            on_status=statuses.append,
            timeout=120,
        )

        assert ready.public_output == treasure_hash
        assert "Generating proof..." in statuses
        ReferenceVerifier().verify_proof(ready.proof, ready.public_output)

    def test_messages_before_start(self):
        with pytest.raises(RuntimeError):
            list(ProofWorker().messages())

    def test_generation_error_carries_reason(self):
        error = ProofGenerationError("out of memory while proving")
        assert error.reason == "out of memory while proving"

    def test_cancel_discards_in_flight_proof(self):
        treasure_hash = bytes(commit(3, 5, 42))
        worker = ProofWorker(backend=SlowProofSystem())
        worker.start(ProofRequest(x=3, y=5, nullifier=42, public_input=treasure_hash))
        first = next(worker.messages(timeout=60))
        assert not is_terminal(first)

        worker.cancel()

        assert not worker.running
        rest = list(worker.messages(timeout=5))
        assert len(rest) == 1
        assert isinstance(rest[0], Failed)
        assert "cancelled" in rest[0].reason
        assert list(worker.messages(timeout=5)) == []

    def test_timeout_terminates_worker(self):
        treasure_hash = bytes(commit(3, 5, 42))
        worker = ProofWorker(backend=SlowProofSystem())
        worker.start(ProofRequest(x=3, y=5, nullifier=42, public_input=treasure_hash))

        received = list(worker.messages(timeout=1))

        assert not any(isinstance(m, Ready) for m in received)
        assert isinstance(received[-1], Failed)
        assert "timed out" in received[-1].reason
        assert not worker.running
