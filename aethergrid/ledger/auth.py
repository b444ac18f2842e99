"""
Authorization entries.

An authorization entry is a credential-scoped (address + nonce),
time-bounded (expiration_ledger) signature over one root invocation: a
contract id, a function name and the argument values the contract asked to
have authorized. It is independent of the transaction envelope and of any
session record, so one party can sign it offline and hand it to another.

Simulation produces unsigned stubs. Signing fills in the expiration ledger
and the signature. Once a set of entries is signed it is carried as an
immutable SignedAuthorizationSet and spliced into later builds, never
re-derived from a fresh simulation.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Any, Iterable, Protocol, TYPE_CHECKING
import hashlib
import json

from .keys import Keypair, is_address, verify_signature

if TYPE_CHECKING:
    from .transaction import Transaction


# =============================================================================
# Argument encoding
# =============================================================================

def encode_value(value: Any) -> dict:
    """Encode one contract argument as tagged JSON."""
    if value is None:
        return {"void": None}
    if isinstance(value, bool):
        return {"bool": value}
    if isinstance(value, int):
        return {"int": str(value)}
    if isinstance(value, (bytes, bytearray)):
        return {"bytes": bytes(value).hex()}
    if isinstance(value, str):
        return {"address": value} if is_address(value) else {"symbol": value}
    raise TypeError(f"unsupported contract value: {type(value).__name__}")


def decode_value(data: dict) -> Any:
    if not isinstance(data, dict) or len(data) != 1:
        raise ValueError(f"malformed contract value: {data!r}")
    (tag, raw), = data.items()
    if tag == "void":
        return None
    if tag == "bool":
        return bool(raw)
    if tag == "int":
        return int(raw)
    if tag == "bytes":
        return bytes.fromhex(raw)
    if tag in ("address", "symbol"):
        return str(raw)
    raise ValueError(f"unknown contract value tag: {tag!r}")


def canonical_json(data: Any) -> bytes:
    return json.dumps(data, sort_keys=True, separators=(",", ":")).encode("utf-8")


def network_id(network_passphrase: str) -> bytes:
    return hashlib.sha256(network_passphrase.encode("utf-8")).digest()


# =============================================================================
# Invocation & entry
# =============================================================================

@dataclass(frozen=True)
class Invocation:
    """A call to one contract function with concrete arguments."""
    contract_id: str
    function: str
    args: tuple = ()

    def __post_init__(self):
        object.__setattr__(self, "args", tuple(self.args))

    def to_dict(self) -> dict:
        return {
            "contract_id": self.contract_id,
            "function": self.function,
            "args": [encode_value(a) for a in self.args],
        }

    @classmethod
    def from_dict(cls, data: dict) -> Invocation:
        return cls(
            contract_id=data["contract_id"],
            function=data["function"],
            args=tuple(decode_value(a) for a in data["args"]),
        )

    def fingerprint(self) -> str:
        """Digest over contract, function and argument values."""
        return hashlib.sha256(canonical_json(self.to_dict())).hexdigest()


@dataclass(frozen=True)
class AuthorizationEntry:
    """
    One address's permission for one root invocation.

    `expiration_ledger` is the last ledger in which the entry is valid.
    Unsigned stubs carry expiration 0 and no signature.
    """
    address: str
    nonce: int
    invocation: Invocation
    expiration_ledger: int = 0
    signature: bytes | None = None

    @property
    def signed(self) -> bool:
        return self.signature is not None

    def preimage(self, network_passphrase: str) -> bytes:
        """The bytes the address signs."""
        body = canonical_json({
            "nonce": str(self.nonce),
            "expiration_ledger": self.expiration_ledger,
            "invocation": self.invocation.to_dict(),
        })
        return hashlib.sha256(network_id(network_passphrase) + body).digest()

    def matches(self, other: AuthorizationEntry) -> bool:
        """Same credential address and same invocation (contract, function, args)."""
        return (
            self.address == other.address
            and self.invocation.fingerprint() == other.invocation.fingerprint()
        )

    def verify(self, network_passphrase: str) -> bool:
        if self.signature is None:
            return False
        return verify_signature(self.address, self.preimage(network_passphrase), self.signature)

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "nonce": str(self.nonce),
            "invocation": self.invocation.to_dict(),
            "expiration_ledger": self.expiration_ledger,
            "signature": self.signature.hex() if self.signature is not None else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> AuthorizationEntry:
        signature = data.get("signature")
        return cls(
            address=data["address"],
            nonce=int(data["nonce"]),
            invocation=Invocation.from_dict(data["invocation"]),
            expiration_ledger=int(data.get("expiration_ledger", 0)),
            signature=bytes.fromhex(signature) if signature is not None else None,
        )


def sign_entry(
    entry: AuthorizationEntry,
    keypair: Keypair,
    expiration_ledger: int,
    network_passphrase: str,
) -> AuthorizationEntry:
    """Return a signed copy of `entry`, valid through `expiration_ledger`."""
    if entry.address != keypair.address:
        raise ValueError(
            f"entry belongs to {entry.address}, cannot sign with {keypair.address}"
        )
    bounded = replace(entry, expiration_ledger=expiration_ledger, signature=None)
    return replace(bounded, signature=keypair.sign(bounded.preimage(network_passphrase)))


# =============================================================================
# Signers
# =============================================================================

class Signer(Protocol):
    """A signing capability. Wallets implement the same two calls."""
    address: str

    def sign_authorization(self, entry: AuthorizationEntry, expiration_ledger: int) -> AuthorizationEntry:
        ...

    def sign_envelope(self, tx: Transaction) -> Transaction:
        ...


class KeypairSigner:
    """Signer backed by a local Keypair."""

    def __init__(self, keypair: Keypair, network_passphrase: str):
        self.keypair = keypair
        self.network_passphrase = network_passphrase

    @property
    def address(self) -> str:
        return self.keypair.address

    def sign_authorization(self, entry: AuthorizationEntry, expiration_ledger: int) -> AuthorizationEntry:
        return sign_entry(entry, self.keypair, expiration_ledger, self.network_passphrase)

    def sign_envelope(self, tx: Transaction) -> Transaction:
        if tx.source != self.address:
            raise ValueError(f"transaction source is {tx.source}, not {self.address}")
        return tx.with_signature(self.keypair.sign(tx.hash_bytes(self.network_passphrase)))

    def __repr__(self) -> str:
        return f"KeypairSigner({self.address})"


# =============================================================================
# Signed set
# =============================================================================

@dataclass(frozen=True)
class SignedAuthorizationSet:
    """
    Authorization entries that already carry signatures.

    Immutable. Every step after co-signing threads this value through and
    re-injects it into whatever stubs a build produces.
    """
    entries: tuple[AuthorizationEntry, ...] = ()

    def __post_init__(self):
        entries = tuple(self.entries)
        for entry in entries:
            if not entry.signed:
                raise ValueError(f"entry for {entry.address} is not signed")
        object.__setattr__(self, "entries", entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    @property
    def addresses(self) -> tuple[str, ...]:
        return tuple(e.address for e in self.entries)

    def with_entry(self, entry: AuthorizationEntry) -> SignedAuthorizationSet:
        return SignedAuthorizationSet(self.entries + (entry,))

    def find(self, stub: AuthorizationEntry) -> AuthorizationEntry | None:
        for entry in self.entries:
            if entry.matches(stub):
                return entry
        return None

    def inject(self, stubs: Iterable[AuthorizationEntry]) -> tuple[AuthorizationEntry, ...]:
        """
        Replace each stub with its signed counterpart.

        Raises:
            ValueError: if a signed entry has no matching stub, which means
                the invocation changed since it was signed
        """
        stubs = tuple(stubs)
        result = []
        used = set()
        for stub in stubs:
            signed = None
            for i, entry in enumerate(self.entries):
                if i not in used and entry.matches(stub):
                    signed = entry
                    used.add(i)
                    break
            result.append(signed if signed is not None else stub)
        missing = [e.address for i, e in enumerate(self.entries) if i not in used]
        if missing:
            raise ValueError(
                f"signed entries for {', '.join(missing)} match no required authorization"
            )
        return tuple(result)
