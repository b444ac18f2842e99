"""
Worker messages.

A proof request produces zero or more Status messages followed by exactly
one terminal message: Ready or Failed.
"""

from __future__ import annotations
from dataclasses import dataclass, field

from ..commitment.fields import to_field


@dataclass(frozen=True)
class ProofRequest:
    """
    Private inputs plus the public commitment they must hash to.

    The private fields are excluded from repr so they never reach a log line
    or a traceback.
    """
    x: int = field(repr=False)
    y: int = field(repr=False)
    nullifier: int = field(repr=False)
    public_input: bytes

    def validated(self) -> ProofRequest:
        """Return a copy with every input checked as a field element."""
        if len(self.public_input) != 32:
            raise ValueError("public_input must be 32 bytes")
        return ProofRequest(
            x=to_field(self.x, "x"),
            y=to_field(self.y, "y"),
            nullifier=to_field(self.nullifier, "nullifier"),
            public_input=bytes(self.public_input),
        )


@dataclass(frozen=True)
class Status:
    """Progress only; no side effects."""
    text: str


@dataclass(frozen=True)
class Ready:
    """Terminal success."""
    proof: bytes
    public_output: bytes

    def __repr__(self) -> str:
        return (
            f"Ready(proof=<{len(self.proof)} bytes>, "
            f"public_output=0x{self.public_output.hex()})"
        )


@dataclass(frozen=True)
class Failed:
    """Terminal failure."""
    reason: str


WorkerMessage = Status | Ready | Failed


def is_terminal(message: WorkerMessage) -> bool:
    return isinstance(message, (Ready, Failed))
