"""
Game Client - Caller side of the game contract.

Single-signer calls (proof submission, resolution, administration) all go
the same way: build with the signer as source, simulate, sign the signer's
own authorization stubs, sign the envelope, broadcast.

Failures surface as TransactionFailedError subclasses whether they were
caught in simulation or at broadcast:
- a named gate rejection          GateRejectedError(code)
- the verifier rejected the proof ProofRejectedError
- a missing or bad authorization  AuthorizationError
"""

from __future__ import annotations
from typing import Any

import structlog

from ..config import ProtocolConfig
from ..errors import (
    AccountNotFoundError,
    AuthorizationError,
    ContractError,
    GameErrorCode,
    GateRejectedError,
    ProofRejectedError,
    SimulationError,
    VerificationError,
)
from ..engine.state import Game, Outcome
from ..ledger.auth import Invocation, Signer
from ..ledger.network import LedgerClient, TransactionResponse
from ..ledger.transaction import build_transaction

log = structlog.get_logger()


class GameClient:
    """
    Usage:
        client = GameClient(ledger, game_id)
        client.submit_proof(alice, 42, ready.proof, ready.public_output, energy_used=7)
        outcome = client.resolve_game(anyone, 42)
        game = client.get_game(42)
    """

    def __init__(self, ledger: LedgerClient, contract_id: str, config: ProtocolConfig | None = None):
        self.ledger = ledger
        self.contract_id = contract_id
        self.config = config or ProtocolConfig()

    # =========================================================================
    # Transactions
    # =========================================================================

    def invoke(
        self,
        signer: Signer,
        function: str,
        *args,
        contract_id: str | None = None,
        ttl_minutes: int | None = None,
    ) -> TransactionResponse:
        """
        Run one single-signer invocation to completion.

        Raises:
            GateRejectedError: a named contract error, in simulation or at broadcast
            ProofRejectedError: the verifier rejected the proof
            AuthorizationError: another address must authorize this call
            SimulationError: anything else simulation refused
            TransactionFailedError: any other broadcast failure
        """
        invocation = Invocation(contract_id or self.contract_id, function, args)
        try:
            account = self.ledger.get_account(signer.address)
        except AccountNotFoundError as e:
            raise SimulationError(f"Source {signer.address} is not a funded account", cause=e) from e
        tx = build_transaction(signer.address, account.sequence + 1, invocation, fee=self.config.base_fee)

        try:
            simulation = self.ledger.simulate(tx)
        except SimulationError as e:
            if isinstance(e.cause, ContractError):
                raise GateRejectedError(e.cause.code) from e
            if isinstance(e.cause, VerificationError):
                raise ProofRejectedError(f"Proof rejected: {e.cause}") from e
            raise

        minutes = ttl_minutes if ttl_minutes is not None else self.config.auth_ttl_minutes
        expiration = simulation.latest_ledger + self.config.ledgers_for_minutes(minutes)
        auth = []
        for stub in simulation.auth:
            if stub.address != signer.address:
                raise AuthorizationError(f"{function} requires authorization from {stub.address}")
            auth.append(signer.sign_authorization(stub, expiration))

        tx = tx.assemble(simulation).with_auth(auth)
        response = self.ledger.send(signer.sign_envelope(tx))
        response.raise_for_status()
        return response

    def submit_proof(
        self,
        signer: Signer,
        session_id: int,
        proof: bytes,
        public_commitment: bytes,
        claimed_cost: int,
    ) -> TransactionResponse:
        """
        Submit a proof for the signer's own seat in a session.

        `claimed_cost` is recorded as given; the proof does not bind it.
        """
        response = self.invoke(
            signer,
            "submit_zk_proof",
            session_id,
            signer.address,
            bytes(proof),
            bytes(public_commitment),
            claimed_cost,
        )
        log.info("proof_submitted", session_id=session_id, player=signer.address, tx_hash=response.hash)
        return response

    def resolve_game(self, signer: Signer, session_id: int) -> Outcome:
        """Permissionless; any funded account can resolve any session."""
        response = self.invoke(signer, "resolve_game", session_id)
        outcome = Outcome(response.result)
        log.info("resolve_submitted", session_id=session_id, outcome=outcome.value)
        return outcome

    # =========================================================================
    # Reads
    # =========================================================================

    def read(self, function: str, *args, contract_id: str | None = None) -> Any:
        return self.ledger.read(contract_id or self.contract_id, function, *args)

    def get_game(self, session_id: int) -> Game:
        """Raises ContractError(GameNotFound) for an unknown session."""
        return self.read("get_game", session_id)

    def find_game(self, session_id: int) -> Game | None:
        """Like get_game, but None for an unknown session."""
        try:
            return self.get_game(session_id)
        except ContractError as e:
            if e.code == GameErrorCode.GAME_NOT_FOUND:
                return None
            raise

    def get_treasure_hash(self, session_id: int) -> bytes:
        return self.read("get_treasure_hash", session_id)

    # =========================================================================
    # Administration
    # =========================================================================

    def get_admin(self) -> str:
        return self.read("get_admin")

    def set_admin(self, admin: Signer, new_admin: str) -> TransactionResponse:
        return self.invoke(admin, "set_admin", new_admin)

    def get_hub(self) -> str:
        return self.read("get_hub")

    def set_hub(self, admin: Signer, new_hub: str) -> TransactionResponse:
        return self.invoke(admin, "set_hub", new_hub)

    def get_verifier(self) -> str:
        return self.read("get_verifier")

    def set_verifier(self, admin: Signer, new_verifier: str) -> TransactionResponse:
        return self.invoke(admin, "set_verifier", new_verifier)
