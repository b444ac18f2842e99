"""
Pytest fixtures for AetherGrid tests.
"""

import pytest

from ..commitment import commit
from ..engine.contract import Deployment, deploy
from ..ledger import InMemoryLedger, Keypair, KeypairSigner
from ..prover import PrivateInputs, ReferenceProofSystem, TRANSCRIPT_MODE, public_output_bytes
from ..session import GameClient, SessionAuthorizationAssembler

PASSPHRASE = "AetherGrid Test Network"
FUNDING = 100_000
STARTING_POINTS = 1_000


def make_signer(seed: int) -> KeypairSigner:
    return KeypairSigner(Keypair.from_seed(bytes([seed]) * 32), PASSPHRASE)


class FakeClock:
    """Manual clock; sleep() advances it."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def ledger() -> InMemoryLedger:
    """A fresh local ledger."""
    return InMemoryLedger(network_passphrase=PASSPHRASE)


@pytest.fixture
def admin(ledger) -> KeypairSigner:
    signer = make_signer(1)
    ledger.fund(signer.address, FUNDING)
    return signer


@pytest.fixture
def alice(ledger) -> KeypairSigner:
    signer = make_signer(2)
    ledger.fund(signer.address, FUNDING)
    return signer


@pytest.fixture
def bob(ledger) -> KeypairSigner:
    signer = make_signer(3)
    ledger.fund(signer.address, FUNDING)
    return signer


@pytest.fixture
def carol(ledger) -> KeypairSigner:
    signer = make_signer(4)
    ledger.fund(signer.address, FUNDING)
    return signer


@pytest.fixture
def relay(ledger) -> KeypairSigner:
    """Funded placeholder counterparty for Step A."""
    signer = make_signer(5)
    ledger.fund(signer.address, FUNDING)
    return signer


@pytest.fixture
def deployment(ledger, admin) -> Deployment:
    return deploy(ledger, admin.address)


@pytest.fixture
def client(ledger, deployment) -> GameClient:
    return GameClient(ledger, deployment.game_id)


@pytest.fixture
def staked(client, deployment, admin, alice, bob, carol):
    """Grant every player hub points."""
    for player in (alice, bob, carol):
        client.invoke(admin, "grant_points", player.address, STARTING_POINTS, contract_id=deployment.hub_id)
    return STARTING_POINTS


@pytest.fixture
def assembler(ledger, deployment) -> SessionAuthorizationAssembler:
    return SessionAuthorizationAssembler(ledger, deployment.game_id)


@pytest.fixture
def start_session(assembler, staked, alice, bob, relay):
    """Run Steps A to C; returns the CosignedSession that was broadcast."""

    def _start(session_id=42, x=3, y=5, points=100, initiator=None, responder=None):
        initiator = initiator or alice
        responder = responder or bob
        prepared = assembler.prepare(
            initiator, session_id, points, x=x, y=y, nullifier=session_id, placeholder=relay.address
        )
        cosigned = assembler.import_and_cosign(
            prepared.artifact, responder, points, x=x, y=y, nullifier=session_id
        )
        assembler.finalize(cosigned, responder)
        return cosigned

    return _start


@pytest.fixture
def prove():
    """In-process reference proof for (x, y, nullifier)."""
    backend = ReferenceProofSystem()

    def _prove(x=3, y=5, nullifier=42, mode=TRANSCRIPT_MODE):
        treasure_hash = commit(x, y, nullifier)
        witness = backend.execute(PrivateInputs(x=x, y=y, nullifier=nullifier), bytes(treasure_hash))
        proof, outputs = backend.prove(witness, mode)
        return proof, public_output_bytes(outputs)

    return _prove


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()
