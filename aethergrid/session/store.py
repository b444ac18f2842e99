"""
Snapshot Store - Per-(session, player) client state that survives restarts.

The store:
- Keys snapshots by (session_id, player address)
- Persists only durable fields through SessionSnapshot.to_dict()
- Drops transient fields: progress text, visual effects, proofs in flight
- Has an in-memory backend and a JSON-file backend
- Never holds authority: the ledger wins whenever the two disagree

Design decisions:
- One JSON file per key, named by a truncated hash of the key
- An unreadable file is a cache miss and is deleted
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Protocol
import hashlib
import json
import time

import structlog

from .. import config
from .sync import SessionPhase

log = structlog.get_logger()

SNAPSHOT_VERSION = 1


@dataclass(frozen=True)
class SessionSnapshot:
    """
    One player's view of one session.

    Fields after `updated_at` are transient and never serialized.
    """
    session_id: int
    player: str
    phase: SessionPhase = SessionPhase.NEW
    role: str = "initiator"  # initiator | responder
    opponent: str | None = None
    points: int = 0
    position: tuple[int, int] | None = None
    found_tile: tuple[int, int] | None = None
    energy_used: int | None = None
    updated_at: float = 0.0

    # Transient
    status_text: str | None = field(default=None, compare=False)
    effects: tuple = field(default=(), compare=False)
    proof_in_flight: bytes | None = field(default=None, compare=False, repr=False)

    @property
    def key(self) -> tuple[int, str]:
        return (self.session_id, self.player)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": SNAPSHOT_VERSION,
            "session_id": self.session_id,
            "player": self.player,
            "phase": self.phase.name,
            "role": self.role,
            "opponent": self.opponent,
            "points": self.points,
            "position": list(self.position) if self.position is not None else None,
            "found_tile": list(self.found_tile) if self.found_tile is not None else None,
            "energy_used": self.energy_used,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionSnapshot:
        if data.get("version") != SNAPSHOT_VERSION:
            raise ValueError(f"unsupported snapshot version: {data.get('version')!r}")
        position = data.get("position")
        found_tile = data.get("found_tile")
        return cls(
            session_id=int(data["session_id"]),
            player=data["player"],
            phase=SessionPhase[data.get("phase", "NEW")],
            role=data.get("role", "initiator"),
            opponent=data.get("opponent"),
            points=int(data.get("points", 0)),
            position=tuple(position) if position is not None else None,
            found_tile=tuple(found_tile) if found_tile is not None else None,
            energy_used=data.get("energy_used"),
            updated_at=float(data.get("updated_at", 0.0)),
        )


class SnapshotStore(Protocol):
    def get(self, session_id: int, player: str) -> SessionSnapshot | None:
        ...

    def put(self, snapshot: SessionSnapshot):
        ...

    def delete(self, session_id: int, player: str):
        ...

    def keys(self) -> list[tuple[int, str]]:
        ...


class MemorySnapshotStore:
    """
    In-process store. Round-trips through to_dict so it drops exactly what
    the file store drops.
    """

    def __init__(self):
        self._data: dict[tuple[int, str], dict[str, Any]] = {}

    def get(self, session_id: int, player: str) -> SessionSnapshot | None:
        data = self._data.get((session_id, player))
        return SessionSnapshot.from_dict(data) if data is not None else None

    def put(self, snapshot: SessionSnapshot):
        stamped = replace(snapshot, updated_at=time.time())
        self._data[snapshot.key] = stamped.to_dict()

    def delete(self, session_id: int, player: str):
        self._data.pop((session_id, player), None)

    def keys(self) -> list[tuple[int, str]]:
        return sorted(self._data)


class FileSnapshotStore:
    """
    JSON files under a cache directory.

    Usage:
        store = FileSnapshotStore()  # AETHERGRID_CACHE_DIR or ~/.aethergrid/snapshots
        store.put(SessionSnapshot(session_id=42, player=alice.address))
        snapshot = store.get(42, alice.address)
    """

    def __init__(self, cache_dir: str | Path | None = None):
        if cache_dir is None:
            cache_dir = config.AETHERGRID_CACHE_DIR or Path.home() / ".aethergrid" / "snapshots"
        self.cache_dir = Path(cache_dir).expanduser()
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def get(self, session_id: int, player: str) -> SessionSnapshot | None:
        """Returns None if absent. A corrupt file is deleted."""
        path = self._path(session_id, player)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                snapshot = SessionSnapshot.from_dict(json.load(f))
        except (json.JSONDecodeError, KeyError, ValueError, TypeError) as e:
            log.warning("snapshot_discarded", session_id=session_id, player=player, error=str(e))
            path.unlink(missing_ok=True)
            return None
        if snapshot.key != (session_id, player):
            log.warning("snapshot_key_mismatch", session_id=session_id, player=player)
            return None
        return snapshot

    def put(self, snapshot: SessionSnapshot):
        stamped = replace(snapshot, updated_at=time.time())
        path = self._path(snapshot.session_id, snapshot.player)
        tmp = path.with_suffix(".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(stamped.to_dict(), f, indent=2)
        tmp.replace(path)

    def delete(self, session_id: int, player: str):
        self._path(session_id, player).unlink(missing_ok=True)

    def keys(self) -> list[tuple[int, str]]:
        keys = []
        for path in self.cache_dir.glob("*.json"):
            try:
                with open(path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                keys.append((int(data["session_id"]), data["player"]))
            except (json.JSONDecodeError, KeyError, ValueError, TypeError):
                continue
        return sorted(keys)

    def clear(self):
        for path in self.cache_dir.glob("*.json"):
            path.unlink(missing_ok=True)

    def _path(self, session_id: int, player: str) -> Path:
        digest = hashlib.sha256(f"{session_id}:{player}".encode("utf-8")).hexdigest()[:16]
        return self.cache_dir / f"{digest}.json"
