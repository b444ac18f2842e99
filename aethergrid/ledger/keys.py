"""
Ed25519 account keys and their printable addresses.

An account address is "G" followed by the unpadded base32 of the 32-byte
public key. Contract addresses use the same encoding with a "C" prefix over
a hash of the deployment salt, so the two never collide.
"""

from __future__ import annotations
import base64
import hashlib

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

ACCOUNT_PREFIX = "G"
CONTRACT_PREFIX = "C"


def _encode(prefix: str, raw: bytes) -> str:
    return prefix + base64.b32encode(raw).decode("ascii").rstrip("=")


def _decode(address: str) -> bytes:
    body = address[1:]
    padded = body + "=" * (-len(body) % 8)
    try:
        raw = base64.b32decode(padded)
    except ValueError:
        raise ValueError(f"malformed address: {address!r}") from None
    if len(raw) != 32:
        raise ValueError(f"malformed address: {address!r}")
    return raw


def is_account_address(address) -> bool:
    if not isinstance(address, str) or not address.startswith(ACCOUNT_PREFIX):
        return False
    try:
        _decode(address)
    except ValueError:
        return False
    return True


def is_contract_address(address) -> bool:
    if not isinstance(address, str) or not address.startswith(CONTRACT_PREFIX):
        return False
    try:
        _decode(address)
    except ValueError:
        return False
    return True


def is_address(value) -> bool:
    return is_account_address(value) or is_contract_address(value)


def contract_address(salt: bytes) -> str:
    """Derive a contract address from a deployment salt."""
    return _encode(CONTRACT_PREFIX, hashlib.sha256(b"contract:" + salt).digest())


class Keypair:
    """
    An account signing key.

    The private key never leaves this object; callers get signatures, not
    key material.
    """

    def __init__(self, private_key: Ed25519PrivateKey):
        self._private_key = private_key
        public = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        self.address = _encode(ACCOUNT_PREFIX, public)

    @classmethod
    def random(cls) -> Keypair:
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_seed(cls, seed: bytes) -> Keypair:
        """Deterministic keypair from a 32-byte seed."""
        if len(seed) != 32:
            raise ValueError("seed must be 32 bytes")
        return cls(Ed25519PrivateKey.from_private_bytes(seed))

    def sign(self, message: bytes) -> bytes:
        return self._private_key.sign(message)

    def __repr__(self) -> str:
        return f"Keypair({self.address})"


def verify_signature(address: str, message: bytes, signature: bytes) -> bool:
    """Check an Ed25519 signature against an account address."""
    if not is_account_address(address) or not signature:
        return False
    public_key = Ed25519PublicKey.from_public_bytes(_decode(address))
    try:
        public_key.verify(bytes(signature), message)
    except InvalidSignature:
        return False
    return True
