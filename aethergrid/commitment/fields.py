"""
Field elements of the BN254 scalar field, the native field of the circuit.
"""

from __future__ import annotations

from ..errors import FieldElementError

# BN254 (alt_bn128) scalar field order
FIELD_MODULUS = 21888242871839275222246405745257275088548364400416034343698204186575808495617

FIELD_BYTES = 32


def to_field(value, name: str = "value") -> int:
    """
    Validate that a value is a canonical field element.

    Accepts ints and decimal or 0x-prefixed hex strings. Rejects bools,
    negatives and anything >= the modulus.
    """
    if isinstance(value, bool):
        raise FieldElementError(f"{name} must be an integer, got bool")
    if isinstance(value, str):
        text = value.strip()
        try:
            value = int(text, 16) if text.lower().startswith("0x") else int(text, 10)
        except ValueError:
            raise FieldElementError(f"{name} is not a decimal or 0x-hex number") from None
    if not isinstance(value, int):
        raise FieldElementError(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0:
        raise FieldElementError(f"{name} must be non-negative")
    if value >= FIELD_MODULUS:
        raise FieldElementError(f"{name} is outside the field")
    return value


def field_to_bytes(value: int) -> bytes:
    """Encode a field element as 32 big-endian bytes."""
    return to_field(value).to_bytes(FIELD_BYTES, "big")


def bytes_to_field(data: bytes) -> int:
    """Decode 32 big-endian bytes, rejecting non-canonical encodings."""
    if len(data) != FIELD_BYTES:
        raise FieldElementError(f"expected {FIELD_BYTES} bytes, got {len(data)}")
    return to_field(int.from_bytes(data, "big"))
