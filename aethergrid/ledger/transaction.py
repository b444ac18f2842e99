"""
Transactions and their portable envelope.

A transaction is one contract invocation plus everything the ledger needs
to admit it: the source account and sequence number, a fee, the storage
footprint, the authorization entries, and the source's envelope signature.

Envelopes are base64url-encoded JSON, self-describing so they can travel
out of band (copy/paste, deep link) and be re-verified on the other side.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING
import base64
import binascii
import hashlib
import json

from .auth import AuthorizationEntry, Invocation, canonical_json, network_id

if TYPE_CHECKING:
    from .network import SimulationResult

ENVELOPE_VERSION = 1


@dataclass(frozen=True)
class Transaction:
    source: str
    sequence: int
    fee: int
    invocation: Invocation
    auth: tuple[AuthorizationEntry, ...] = ()
    footprint: frozenset[str] = field(default_factory=frozenset)
    signature: bytes | None = None

    def __post_init__(self):
        object.__setattr__(self, "auth", tuple(self.auth))
        object.__setattr__(self, "footprint", frozenset(self.footprint))

    # -------------------------------------------------------------------------
    # Hashing
    # -------------------------------------------------------------------------

    def _body(self) -> dict:
        return {
            "source": self.source,
            "sequence": self.sequence,
            "fee": self.fee,
            "invocation": self.invocation.to_dict(),
            "auth": [e.to_dict() for e in self.auth],
            "footprint": sorted(self.footprint),
        }

    def hash_bytes(self, network_passphrase: str) -> bytes:
        """What the source signs; excludes the envelope signature."""
        return hashlib.sha256(network_id(network_passphrase) + canonical_json(self._body())).digest()

    def hash(self, network_passphrase: str) -> str:
        return self.hash_bytes(network_passphrase).hex()

    # -------------------------------------------------------------------------
    # Copies
    # -------------------------------------------------------------------------

    def with_auth(self, entries) -> Transaction:
        """Replace the authorization entries. Drops any envelope signature."""
        return replace(self, auth=tuple(entries), signature=None)

    def with_footprint(self, footprint) -> Transaction:
        return replace(self, footprint=frozenset(footprint), signature=None)

    def with_signature(self, signature: bytes) -> Transaction:
        return replace(self, signature=bytes(signature))

    def assemble(self, simulation: SimulationResult) -> Transaction:
        """
        Adopt a simulation's auth stubs, footprint and minimum fee.

        Replaces every authorization entry with the simulation's fresh
        unsigned stubs. Any signatures already on this transaction are lost;
        use `with_auth(signed_set.inject(simulation.auth))` to keep them.
        """
        return replace(
            self,
            auth=simulation.auth,
            footprint=simulation.footprint,
            fee=max(self.fee, simulation.min_fee),
            signature=None,
        )

    @property
    def unsigned_addresses(self) -> tuple[str, ...]:
        return tuple(e.address for e in self.auth if not e.signed)

    # -------------------------------------------------------------------------
    # Envelope
    # -------------------------------------------------------------------------

    def to_envelope(self) -> str:
        data = {
            "version": ENVELOPE_VERSION,
            "tx": self._body(),
            "signature": self.signature.hex() if self.signature is not None else None,
        }
        return base64.urlsafe_b64encode(canonical_json(data)).decode("ascii")

    @classmethod
    def from_envelope(cls, envelope: str) -> Transaction:
        """
        Parse an envelope.

        Raises:
            ValueError: if the envelope is not valid base64 JSON of a known version
        """
        try:
            data = json.loads(base64.urlsafe_b64decode(envelope.strip().encode("ascii")))
        except (binascii.Error, UnicodeError, json.JSONDecodeError) as e:
            raise ValueError(f"malformed transaction envelope: {e}") from None
        if not isinstance(data, dict) or data.get("version") != ENVELOPE_VERSION:
            raise ValueError("unsupported transaction envelope version")
        try:
            body = data["tx"]
            signature = data.get("signature")
            return cls(
                source=body["source"],
                sequence=int(body["sequence"]),
                fee=int(body["fee"]),
                invocation=Invocation.from_dict(body["invocation"]),
                auth=tuple(AuthorizationEntry.from_dict(e) for e in body["auth"]),
                footprint=frozenset(body["footprint"]),
                signature=bytes.fromhex(signature) if signature is not None else None,
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"malformed transaction envelope: missing {e}") from None


def build_transaction(
    source: str,
    sequence: int,
    invocation: Invocation,
    fee: int = 100,
) -> Transaction:
    """A fresh unsimulated transaction; `sequence` is the account's next one."""
    return Transaction(source=source, sequence=sequence, fee=fee, invocation=invocation)
