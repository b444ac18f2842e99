"""
Commitment Module - Binds a private treasure location to one session.

commit(x, y, nullifier) -> 32 opaque bytes
- Deterministic and one-way
- The nullifier is derived from session identity, so the same (x, y)
  commits to a different value in every session
- Inputs outside the field are rejected, never wrapped
"""

from .fields import FIELD_MODULUS, to_field, field_to_bytes, bytes_to_field
from .codec import (
    Commitment,
    HashPrimitive,
    KeccakFieldHash,
    NullifierScheme,
    commit,
    derive_nullifier,
    nullifier_for,
)

__all__ = [
    "FIELD_MODULUS",
    "to_field",
    "field_to_bytes",
    "bytes_to_field",
    "Commitment",
    "HashPrimitive",
    "KeccakFieldHash",
    "NullifierScheme",
    "commit",
    "derive_nullifier",
    "nullifier_for",
]
