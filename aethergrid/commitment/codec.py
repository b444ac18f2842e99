"""
Commitment Codec - Derives the 32-byte treasure commitment.

The hash primitive is a collaborator. Production wires in the circuit's own
hash; the bundled KeccakFieldHash is a domain-separated stand-in with the
same contract (three field elements in, one field element out).

The ledger only ever compares the commitment as opaque bytes. Nothing on the
ledger side parses it as a number.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from eth_utils import keccak

from .fields import FIELD_MODULUS, FIELD_BYTES, to_field, field_to_bytes

U32_MAX = 2**32 - 1


class HashPrimitive(Protocol):
    """Three field elements in, 32 bytes (one field element) out."""

    def hash3(self, a: int, b: int, c: int) -> bytes:
        ...


class KeccakFieldHash:
    """
    Keccak-256 over three big-endian words, reduced into the field.

    The output is always a canonical field element, so it is a valid public
    input to the circuit.
    """
    DOMAIN = b"aethergrid/commit/v1"

    def hash3(self, a: int, b: int, c: int) -> bytes:
        digest = keccak(
            self.DOMAIN + field_to_bytes(a) + field_to_bytes(b) + field_to_bytes(c)
        )
        return (int.from_bytes(digest, "big") % FIELD_MODULUS).to_bytes(FIELD_BYTES, "big")


DEFAULT_HASH = KeccakFieldHash()


@dataclass(frozen=True)
class Commitment:
    """A 32-byte opaque commitment."""
    value: bytes

    def __post_init__(self):
        if not isinstance(self.value, (bytes, bytearray)) or len(self.value) != FIELD_BYTES:
            raise ValueError("commitment must be exactly 32 bytes")
        object.__setattr__(self, "value", bytes(self.value))

    def __bytes__(self) -> bytes:
        return self.value

    def hex(self) -> str:
        return self.value.hex()

    def as_field(self) -> int:
        """The commitment as the circuit's public input field element."""
        return int.from_bytes(self.value, "big")

    @classmethod
    def from_hex(cls, text: str) -> Commitment:
        """Parse a 0x-prefixed or bare hex string, left-padding to 32 bytes."""
        clean = text[2:] if text.lower().startswith("0x") else text
        if len(clean) > FIELD_BYTES * 2:
            raise ValueError("hex commitment longer than 32 bytes")
        return cls(bytes.fromhex(clean.rjust(FIELD_BYTES * 2, "0")))


def commit(x: int, y: int, nullifier: int, hasher: HashPrimitive | None = None) -> Commitment:
    """
    Commit to a treasure location for one session.

    Raises:
        FieldElementError: if any input is not a canonical field element
    """
    x = to_field(x, "x")
    y = to_field(y, "y")
    nullifier = to_field(nullifier, "nullifier")
    return Commitment((hasher or DEFAULT_HASH).hash3(x, y, nullifier))


class NullifierScheme(Enum):
    """How the nullifier is derived from session identity."""
    SESSION_BINDING = "session_binding"  # keccak(session_id || player1 || player2)
    SESSION_ID = "session_id"  # the session id itself


def derive_nullifier(session_id: int, player1: str, player2: str) -> int:
    """
    Bind a nullifier to a session and both of its players.

    nullifier = keccak256(session_id_be32 || player1 || player2) mod p
    """
    if isinstance(session_id, bool) or not 0 <= session_id <= U32_MAX:
        raise ValueError("session_id must be a u32")
    if player1 == player2:
        raise ValueError("a session needs two distinct players")
    digest = keccak(
        session_id.to_bytes(4, "big") + player1.encode("ascii") + player2.encode("ascii")
    )
    return int.from_bytes(digest, "big") % FIELD_MODULUS


def nullifier_for(
    scheme: NullifierScheme,
    session_id: int,
    player1: str,
    player2: str,
) -> int:
    """Derive the nullifier for a session under the given scheme."""
    if scheme == NullifierScheme.SESSION_ID:
        if isinstance(session_id, bool) or not 0 <= session_id <= U32_MAX:
            raise ValueError("session_id must be a u32")
        return session_id
    return derive_nullifier(session_id, player1, player2)
