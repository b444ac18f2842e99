"""
Tests for the snapshot store.

Tests:
- Durable fields survive, transient fields are dropped
- File backend survives a restart
- Corrupt files are discarded
"""

import json
from dataclasses import replace

import pytest

from .. import config
from ..session import FileSnapshotStore, MemorySnapshotStore, SessionPhase, SessionSnapshot
from .conftest import make_signer

PLAYER = make_signer(2).address
OPPONENT = make_signer(3).address


@pytest.fixture
def snapshot():
    return SessionSnapshot(
        session_id=42,
        player=PLAYER,
        phase=SessionPhase.PROOF_PENDING,
        role="responder",
        opponent=OPPONENT,
        points=100,
        position=(2, 4),
        found_tile=(3, 5),
        energy_used=7,
        status_text="Generating proof...",
        effects=("sparkle",),
        proof_in_flight=b"\x01" * 48,
    )


@pytest.fixture(params=["memory", "file"])
def store(request, tmp_path):
    if request.param == "memory":
        return MemorySnapshotStore()
    return FileSnapshotStore(cache_dir=tmp_path)


class TestSnapshot:
    """The serialization boundary."""

    def test_transient_fields_not_serialized(self, snapshot):
        data = snapshot.to_dict()
        assert "status_text" not in data
        assert "effects" not in data
        assert "proof_in_flight" not in data
        assert data["phase"] == "PROOF_PENDING"

    def test_unknown_version_rejected(self, snapshot):
        data = {**snapshot.to_dict(), "version": 99}
        with pytest.raises(ValueError):
            SessionSnapshot.from_dict(data)


class TestStores:
    """Behaviour shared by both backends."""

    def test_round_trip_drops_transients(self, store, snapshot):
        store.put(snapshot)
        loaded = store.get(42, PLAYER)

        assert loaded == replace(snapshot, updated_at=loaded.updated_at)
        assert loaded.position == (2, 4)
        assert loaded.found_tile == (3, 5)
        assert loaded.phase == SessionPhase.PROOF_PENDING
        assert loaded.status_text is None
        assert loaded.proof_in_flight is None
        assert loaded.effects == ()
        assert loaded.updated_at > 0

    def test_keyed_by_session_and_player(self, store, snapshot):
        store.put(snapshot)
        assert store.get(42, OPPONENT) is None
        assert store.get(43, PLAYER) is None
        assert store.keys() == [(42, PLAYER)]

    def test_delete(self, store, snapshot):
        store.put(snapshot)
        store.delete(42, PLAYER)
        assert store.get(42, PLAYER) is None

    def test_missing(self, store):
        assert store.get(1, PLAYER) is None


class TestFileStore:
    """JSON files under a cache directory."""

    def test_survives_restart(self, tmp_path, snapshot):
        FileSnapshotStore(cache_dir=tmp_path).put(snapshot)
        loaded = FileSnapshotStore(cache_dir=tmp_path).get(42, PLAYER)
        assert loaded == replace(snapshot, updated_at=loaded.updated_at)

    def test_corrupt_file_discarded(self, tmp_path, snapshot):
        store = FileSnapshotStore(cache_dir=tmp_path)
        store.put(snapshot)
        path = store._path(42, PLAYER)
        path.write_text("{not json", encoding="utf-8")

        assert store.get(42, PLAYER) is None
        assert not path.exists()

    def test_files_hold_no_proof(self, tmp_path, snapshot):
        store = FileSnapshotStore(cache_dir=tmp_path)
        store.put(snapshot)
        data = json.loads(store._path(42, PLAYER).read_text(encoding="utf-8"))
        assert "proof_in_flight" not in data

    def test_clear(self, tmp_path, snapshot):
        store = FileSnapshotStore(cache_dir=tmp_path)
        store.put(snapshot)
        store.clear()
        assert store.keys() == []

    def test_default_dir_from_environment(self, tmp_path, monkeypatch, snapshot):
        monkeypatch.setattr(config, "AETHERGRID_CACHE_DIR", str(tmp_path / "cache"))
        store = FileSnapshotStore()
        store.put(snapshot)
        assert store.cache_dir == tmp_path / "cache"
        assert list((tmp_path / "cache").iterdir())
