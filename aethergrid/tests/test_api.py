"""
Tests for the ledger-node API.

Tests:
- Endpoints and error responses
- HttpLedgerClient over the app, driving a full session
- Transport failures surface as TransportError
"""

import pytest
from fastapi.testclient import TestClient

from ..api import HttpLedgerClient, LedgerService, create_app
from ..commitment import commit
from ..engine import Outcome
from ..errors import (
    AccountNotFoundError,
    GameErrorCode,
    GateRejectedError,
    InvalidArgumentError,
    TransportError,
)
from ..ledger import Invocation, build_transaction
from ..session import GameClient, SessionAuthorizationAssembler
from .conftest import FUNDING, PASSPHRASE


@pytest.fixture
def node(ledger, admin) -> LedgerService:
    return LedgerService(ledger=ledger, admin=admin.keypair)


@pytest.fixture
def api(node) -> TestClient:
    return TestClient(create_app(node))


@pytest.fixture
def remote(api) -> HttpLedgerClient:
    return HttpLedgerClient(client=api)


@pytest.fixture
def remote_staked(remote, node, admin, alice, bob):
    hub = GameClient(remote, node.deployment.hub_id)
    for player in (alice, bob):
        hub.invoke(admin, "grant_points", player.address, 500)
    return remote


@pytest.fixture
def remote_session(remote_staked, alice, bob, relay):
    """Session 42 created entirely over HTTP."""
    assembler = SessionAuthorizationAssembler(remote_staked, remote_staked.game_contract_id)
    prepared = assembler.prepare(alice, 42, 100, x=3, y=5, nullifier=42, placeholder=relay.address)
    cosigned = assembler.import_and_cosign(prepared.artifact, bob, 100, x=3, y=5, nullifier=42)
    assembler.finalize(cosigned, bob)
    return GameClient(remote_staked, remote_staked.game_contract_id)


class TestEndpoints:
    """Direct HTTP calls."""

    def test_health(self, api):
        response = api.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_ledger_info(self, api, node):
        data = api.get("/api/v1/ledger").json()
        assert data["game_contract_id"] == node.deployment.game_id
        assert data["network_passphrase"] == PASSPHRASE
        assert data["latest_ledger"] == node.ledger.latest_ledger()

    def test_account(self, api, alice):
        data = api.get(f"/api/v1/accounts/{alice.address}").json()
        assert data["sequence"] == 0
        assert data["balance"] == FUNDING

    def test_unknown_account(self, api):
        response = api.get("/api/v1/accounts/GNOBODY")
        assert response.status_code == 404
        assert response.json()["error_code"] == "ACCOUNT_NOT_FOUND"

    def test_unknown_game(self, api):
        response = api.get("/api/v1/games/42")
        assert response.status_code == 404
        assert response.json()["error_code"] == "GAME_NOT_FOUND"

    def test_session_id_must_be_u32(self, api):
        assert api.get("/api/v1/games/4294967296").status_code == 422

    def test_malformed_envelope(self, api):
        for path in ("/api/v1/transactions/simulate", "/api/v1/transactions"):
            response = api.post(path, json={"envelope": "garbage"})
            assert response.status_code == 400
            assert response.json()["error_code"] == "INVALID_ENVELOPE"

    def test_simulation_failure_details(self, api, node, alice):
        """Gate rejections carry their contract code."""
        invocation = Invocation(
            node.deployment.game_id, "submit_zk_proof", (7, alice.address, b"p", bytes(32), 1)
        )
        envelope = build_transaction(alice.address, 1, invocation).to_envelope()

        response = api.post("/api/v1/transactions/simulate", json={"envelope": envelope})

        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "SIMULATION_FAILED"
        assert body["details"]["kind"] == "contract"
        assert body["details"]["code"] == int(GameErrorCode.GAME_NOT_FOUND)

    def test_rejected_broadcast_is_reported_not_raised(self, api, node, alice):
        """A transaction the ledger refuses is a 200 with status FAILED."""
        invocation = Invocation(node.deployment.game_id, "resolve_game", (42,))
        envelope = build_transaction(alice.address, 1, invocation).to_envelope()

        response = api.post("/api/v1/transactions", json={"envelope": envelope})

        assert response.status_code == 200
        assert response.json()["status"] == "FAILED"
        assert response.json()["error_kind"] == "envelope"

    def test_wrong_argument_count(self, api, node, alice):
        """Malformed invocations are client errors, not server crashes."""
        invocation = Invocation(node.deployment.game_id, "resolve_game", ())
        tx = build_transaction(alice.address, 1, invocation)

        simulated = api.post("/api/v1/transactions/simulate", json={"envelope": tx.to_envelope()})
        assert simulated.status_code == 400
        assert simulated.json()["error_code"] == "SIMULATION_FAILED"
        assert simulated.json()["details"]["kind"] == "rejected"

        sent = api.post("/api/v1/transactions", json={"envelope": alice.sign_envelope(tx).to_envelope()})
        assert sent.status_code == 200
        assert sent.json()["status"] == "FAILED"
        assert sent.json()["error_kind"] == "rejected"

    def test_inspect_garbage_artifact(self, api):
        response = api.post("/api/v1/artifacts/inspect", json={"artifact": "garbage"})
        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_ARTIFACT"


class TestHttpLedgerClient:
    """The session protocol running against a node."""

    def test_full_session(self, remote_session, prove, alice, bob):
        game = remote_session.get_game(42)
        assert (game.player1, game.player2) == (alice.address, bob.address)

        proof, public_output = prove()
        remote_session.submit_proof(alice, 42, proof, public_output, claimed_cost=4)
        remote_session.submit_proof(bob, 42, proof, public_output, claimed_cost=6)

        assert remote_session.resolve_game(bob, 42) == Outcome.PLAYER1_WON
        assert remote_session.get_game(42).resolved

    def test_treasure_hash(self, remote_session):
        assert remote_session.get_treasure_hash(42) == bytes(commit(3, 5, 42))

    def test_gate_rejection_over_http(self, remote_session, prove, alice):
        proof, _ = prove()
        with pytest.raises(GateRejectedError) as exc:
            remote_session.submit_proof(alice, 42, proof, bytes(32), claimed_cost=1)
        assert exc.value.code == GameErrorCode.PUBLIC_INPUT_MISMATCH

    def test_find_missing_game(self, remote):
        assert GameClient(remote, remote.game_contract_id).find_game(99) is None

    def test_unknown_account(self, remote):
        with pytest.raises(AccountNotFoundError):
            remote.get_account("GNOBODY")

    def test_only_game_reads(self, remote, node):
        with pytest.raises(InvalidArgumentError):
            remote.read(remote.game_contract_id, "get_admin")
        with pytest.raises(InvalidArgumentError):
            remote.read(node.deployment.hub_id, "points", "GNOBODY")

    def test_artifact_preview(self, api, remote_staked, alice, relay):
        assembler = SessionAuthorizationAssembler(remote_staked, remote_staked.game_contract_id)
        prepared = assembler.prepare(alice, 7, 50, x=1, y=2, nullifier=7, placeholder=relay.address)

        data = api.post("/api/v1/artifacts/inspect", json={"artifact": prepared.artifact}).json()

        assert data["session_id"] == 7
        assert data["initiator_points"] == 50
        assert data["signature_valid"] is True
        assert data["expired"] is False

    def test_unreachable_node(self):
        ledger = HttpLedgerClient(base_url="http://127.0.0.1:9", timeout=1.0)
        with pytest.raises(TransportError):
            ledger.latest_ledger()
        ledger.close()
