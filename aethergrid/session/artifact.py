"""
Step A artifact - The initiator's signed half of start_game.

The artifact is the only thing that crosses from the initiator to the
responder, out of band (pasted text or a deep link). It is self-describing:
the signed authorization entry carries the contract, the function, the
authorized arguments (session_id, player1_points), the initiator's address
and the expiration ledger. The responder can re-verify all of it without
trusting the channel.

It never contains the treasure hash or the coordinates.
"""

from __future__ import annotations
from dataclasses import dataclass
import base64
import binascii
import json

from ..errors import ArtifactError, AuthorizationExpiredError
from ..ledger.auth import AuthorizationEntry, canonical_json, network_id

ARTIFACT_VERSION = 1
START_GAME = "start_game"


@dataclass(frozen=True)
class ArtifactPreview:
    """What an artifact says, before anyone acts on it."""
    session_id: int
    initiator: str
    initiator_points: int
    contract_id: str
    expiration_ledger: int
    network: str
    entry: AuthorizationEntry

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "initiator": self.initiator,
            "initiator_points": self.initiator_points,
            "contract_id": self.contract_id,
            "expiration_ledger": self.expiration_ledger,
            "network": self.network,
        }


def encode_artifact(entry: AuthorizationEntry, network_passphrase: str) -> str:
    """Serialize a signed start_game entry for transfer."""
    if not entry.signed:
        raise ArtifactError("only a signed authorization entry can be exported")
    data = {
        "version": ARTIFACT_VERSION,
        "network": network_id(network_passphrase).hex(),
        "entry": entry.to_dict(),
    }
    return base64.urlsafe_b64encode(canonical_json(data)).decode("ascii")


def parse_artifact(artifact: str) -> ArtifactPreview:
    """
    Decode an artifact and check its shape. Does not verify the signature.

    Raises:
        ArtifactError: if it is not a start_game entry with
            (session_id: u32, player1_points: int) arguments
    """
    try:
        data = json.loads(base64.urlsafe_b64decode(artifact.strip().encode("ascii")))
    except (binascii.Error, UnicodeError, json.JSONDecodeError) as e:
        raise ArtifactError(f"Failed to parse authorization artifact: {e}") from None
    if not isinstance(data, dict) or data.get("version") != ARTIFACT_VERSION:
        raise ArtifactError("Unsupported authorization artifact version")

    try:
        entry = AuthorizationEntry.from_dict(data["entry"])
    except (KeyError, TypeError, ValueError) as e:
        raise ArtifactError(f"Failed to parse authorization entry: {e}") from None

    function = entry.invocation.function
    if function != START_GAME:
        raise ArtifactError(f"Unexpected function: {function}. Expected {START_GAME}.")
    args = entry.invocation.args
    if len(args) != 2:
        raise ArtifactError(f"Expected 2 arguments for start_game entry, got {len(args)}")
    session_id, points = args
    if isinstance(session_id, bool) or not isinstance(session_id, int) or not 0 <= session_id < 2**32:
        raise ArtifactError("session_id in artifact is not a u32")
    if isinstance(points, bool) or not isinstance(points, int):
        raise ArtifactError("player1_points in artifact is not an integer")
    if not entry.signed:
        raise ArtifactError("authorization entry in artifact is not signed")

    return ArtifactPreview(
        session_id=session_id,
        initiator=entry.address,
        initiator_points=points,
        contract_id=entry.invocation.contract_id,
        expiration_ledger=entry.expiration_ledger,
        network=str(data.get("network", "")),
        entry=entry,
    )


def verify_artifact(preview: ArtifactPreview, network_passphrase: str, latest_ledger: int):
    """
    Check the artifact's signature and expiry against a network.

    The entry is usable in a ledger only while expiration_ledger is at least
    the ledger that will apply it, which is latest_ledger + 1.

    Raises:
        ArtifactError: wrong network or bad signature
        AuthorizationExpiredError: the initiator must prepare again
    """
    if preview.network != network_id(network_passphrase).hex():
        raise ArtifactError("Artifact was signed for a different network")
    if not preview.entry.verify(network_passphrase):
        raise ArtifactError("Artifact signature does not verify for its address")
    if preview.expiration_ledger <= latest_ledger:
        raise AuthorizationExpiredError(preview.expiration_ledger, latest_ledger)


def inspect_artifact(
    artifact: str,
    network_passphrase: str | None = None,
    latest_ledger: int | None = None,
) -> dict:
    """
    Read-only preview for import forms and deep links.

    Adds `signature_valid` when a passphrase is given and `expired` when the
    latest ledger is known. Never raises for a bad signature or expiry.
    """
    preview = parse_artifact(artifact)
    result = preview.to_dict()
    if network_passphrase is not None:
        result["signature_valid"] = (
            preview.network == network_id(network_passphrase).hex()
            and preview.entry.verify(network_passphrase)
        )
    if latest_ledger is not None:
        result["expired"] = preview.expiration_ledger <= latest_ledger
    return result
