"""
Ledger Service - The node behind the REST API.

Owns one InMemoryLedger with an AetherGrid deployment on it. Every method
takes and returns wire-friendly values: envelopes in, plain objects out.
Domain errors propagate; the app turns them into ErrorResponses.
"""

from __future__ import annotations
from typing import Any

import structlog

from ..config import AETHERGRID_NETWORK_PASSPHRASE
from ..engine.contract import Deployment, deploy
from ..engine.state import Game, Outcome
from ..ledger.keys import Keypair
from ..ledger.network import Account, InMemoryLedger, SimulationResult, TransactionResponse
from ..ledger.transaction import Transaction
from ..prover.backend import ProofVerifier
from ..session.artifact import inspect_artifact

log = structlog.get_logger()

ADMIN_FUNDING = 1_000_000


def encode_result(value: Any) -> Any:
    """Contract return values as JSON."""
    if isinstance(value, Outcome):
        return value.value
    if isinstance(value, Game):
        return value.to_dict()
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return value


class LedgerService:
    """
    Service layer for the ledger node.

    Stateless apart from the ledger it hosts.
    """

    def __init__(
        self,
        ledger: InMemoryLedger | None = None,
        admin: Keypair | None = None,
        verifier: ProofVerifier | None = None,
    ):
        self.ledger = ledger or InMemoryLedger(network_passphrase=AETHERGRID_NETWORK_PASSPHRASE)
        self.admin = admin or Keypair.random()
        self.ledger.fund(self.admin.address, ADMIN_FUNDING)
        self.deployment: Deployment = deploy(self.ledger, self.admin.address, verifier)
        log.info("ledger_service_started", game_id=self.deployment.game_id)

    def info(self) -> dict:
        return {
            "latest_ledger": self.ledger.latest_ledger(),
            "network_passphrase": self.ledger.network_passphrase,
            "game_contract_id": self.deployment.game_id,
            "hub_contract_id": self.deployment.hub_id,
            "verifier_contract_id": self.deployment.verifier_id,
        }

    def get_account(self, address: str) -> Account:
        return self.ledger.get_account(address)

    def get_game(self, session_id: int) -> Game:
        return self.ledger.read(self.deployment.game_id, "get_game", session_id)

    def get_treasure_hash(self, session_id: int) -> bytes:
        return self.ledger.read(self.deployment.game_id, "get_treasure_hash", session_id)

    def simulate(self, envelope: str) -> SimulationResult:
        return self.ledger.simulate(Transaction.from_envelope(envelope))

    def send(self, envelope: str) -> TransactionResponse:
        tx = Transaction.from_envelope(envelope)
        response = self.ledger.send(tx)
        log.info("transaction_received", hash=response.hash, status=response.status.value)
        return response

    def inspect_artifact(self, artifact: str) -> dict:
        return inspect_artifact(
            artifact,
            network_passphrase=self.ledger.network_passphrase,
            latest_ledger=self.ledger.latest_ledger(),
        )
