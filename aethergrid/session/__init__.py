"""
Session Module - Everything a player's client runs.

1. The assembler creates a session from two independently signed halves
2. The client submits proofs and resolves sessions
3. The watcher polls the ledger and drives the protocol phase
4. The snapshot store keeps local progress across restarts

No state here is authoritative; the ledger is.
"""

from .artifact import ArtifactPreview, encode_artifact, inspect_artifact, parse_artifact, verify_artifact
from .assembler import (
    CosignedSession,
    FinalizedSession,
    PreparedSession,
    SessionAuthorizationAssembler,
    required_signers,
)
from .client import GameClient
from .sync import SessionPhase, SessionProtocol, SessionWatcher, phase_from_game, poll_until
from .store import FileSnapshotStore, MemorySnapshotStore, SessionSnapshot, SnapshotStore

__all__ = [
    "ArtifactPreview",
    "encode_artifact",
    "inspect_artifact",
    "parse_artifact",
    "verify_artifact",
    "CosignedSession",
    "FinalizedSession",
    "PreparedSession",
    "SessionAuthorizationAssembler",
    "required_signers",
    "GameClient",
    "SessionPhase",
    "SessionProtocol",
    "SessionWatcher",
    "phase_from_game",
    "poll_until",
    "FileSnapshotStore",
    "MemorySnapshotStore",
    "SessionSnapshot",
    "SnapshotStore",
]
