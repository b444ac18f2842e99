"""
Session Authorization Assembler - Two parties, one start_game transaction.

start_game needs both players' authorization, but the players never share
keys or a live channel. The protocol runs in three strict steps:

1. Prepare (initiator): build start_game with a placeholder counterparty,
   simulate, sign only the initiator's entry, export it as an artifact.
2. Import & co-sign (responder): verify the artifact, rebuild with both
   real players, simulate, splice the imported entry over its fresh stub,
   sign the responder's own stub.
3. Finalize (responder): sign the envelope and broadcast, with no
   re-simulation in between.

A simulation always returns fresh unsigned stubs. Once entries are signed
they live in an immutable SignedAuthorizationSet that is re-injected into
any later build; nothing after step 2 rebuilds authorization from a
simulation alone.
"""

from __future__ import annotations
from dataclasses import dataclass, replace

import structlog

from ..commitment import Commitment, HashPrimitive, commit, nullifier_for
from ..config import ProtocolConfig
from ..errors import (
    AccountNotFoundError,
    ArtifactError,
    AuthorizationError,
    ProtocolError,
    SelfPlayError,
    SimulationError,
    StepOrderError,
)
from ..ledger.auth import Invocation, SignedAuthorizationSet, Signer
from ..ledger.network import LedgerClient
from ..ledger.transaction import Transaction, build_transaction
from .artifact import START_GAME, encode_artifact, parse_artifact, verify_artifact

log = structlog.get_logger()


# =============================================================================
# Step outputs
# =============================================================================

@dataclass(frozen=True)
class PreparedSession:
    """
    Step A output. Everything here is safe to hand to the responder.

    Holds the artifact plus the plaintext parameters needed to rebuild:
    not the treasure hash and not the coordinates.
    """
    session_id: int
    initiator: str
    initiator_points: int
    artifact: str
    expiration_ledger: int


@dataclass(frozen=True)
class CosignedSession:
    """Step B output: a fully authorized, not yet enveloped, transaction."""
    session_id: int
    player1: str
    player2: str
    treasure_hash: bytes
    transaction: Transaction
    signed: SignedAuthorizationSet

    @property
    def envelope(self) -> str:
        return self.transaction.to_envelope()


@dataclass(frozen=True)
class FinalizedSession:
    """Step C output."""
    session_id: int
    tx_hash: str
    ledger: int


def required_signers(tx: Transaction) -> tuple[str, ...]:
    """Addresses whose authorization entries on `tx` are still unsigned."""
    return tx.unsigned_addresses


# =============================================================================
# Assembler
# =============================================================================

class SessionAuthorizationAssembler:
    """
    Runs the three session-creation steps against one game contract.

    Usage:
        assembler = SessionAuthorizationAssembler(ledger, game_id)

        # Initiator
        prepared = assembler.prepare(alice, 42, 100, x=3, y=5, nullifier=42,
                                     placeholder=relay.address)

        # Responder, on another machine
        cosigned = assembler.import_and_cosign(prepared.artifact, bob, 100,
                                               x=3, y=5, nullifier=42)
        assembler.finalize(cosigned, bob)
    """

    def __init__(
        self,
        ledger: LedgerClient,
        contract_id: str,
        config: ProtocolConfig | None = None,
        hasher: HashPrimitive | None = None,
    ):
        self.ledger = ledger
        self.contract_id = contract_id
        self.config = config or ProtocolConfig()
        self.hasher = hasher

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def session_nullifier(self, session_id: int, player1: str, player2: str) -> int:
        """The nullifier both players feed to prepare and import_and_cosign."""
        return nullifier_for(self.config.nullifier_scheme, session_id, player1, player2)

    def _start_game(
        self,
        session_id: int,
        player1: str,
        player2: str,
        player1_points: int,
        player2_points: int,
        treasure_hash: Commitment,
    ) -> Invocation:
        return Invocation(
            contract_id=self.contract_id,
            function=START_GAME,
            args=(session_id, player1, player2, player1_points, player2_points, bytes(treasure_hash)),
        )

    def _build(self, source: str, invocation: Invocation) -> Transaction:
        try:
            account = self.ledger.get_account(source)
        except AccountNotFoundError as e:
            raise SimulationError(f"Source {source} is not a funded account", cause=e) from e
        return build_transaction(source, account.sequence + 1, invocation, fee=self.config.base_fee)

    def _expiration(self, latest_ledger: int, ttl_minutes: int | None) -> int:
        minutes = ttl_minutes if ttl_minutes is not None else self.config.multi_sig_auth_ttl_minutes
        return latest_ledger + self.config.ledgers_for_minutes(minutes)

    # -------------------------------------------------------------------------
    # Step A
    # -------------------------------------------------------------------------

    def prepare(
        self,
        initiator: Signer,
        session_id: int,
        initiator_points: int,
        x: int,
        y: int,
        nullifier: int,
        placeholder: str,
        placeholder_points: int = 0,
        ttl_minutes: int | None = None,
    ) -> PreparedSession:
        """
        Sign the initiator's half of start_game.

        `placeholder` stands in for the unknown counterparty: it pays for
        and appears as player2 in the simulation only. It must be a real
        funded account other than the initiator.

        Raises:
            ProtocolError: placeholder is the initiator
            SimulationError: the placeholder is unfunded or the stake is not covered
        """
        if placeholder == initiator.address:
            raise ProtocolError("The placeholder must be a different account than the initiator")

        treasure_hash = commit(x, y, nullifier, self.hasher)
        invocation = self._start_game(
            session_id,
            initiator.address,
            placeholder,
            initiator_points,
            placeholder_points,
            treasure_hash,
        )
        simulation = self.ledger.simulate(self._build(placeholder, invocation))

        stub = next((e for e in simulation.auth if e.address == initiator.address), None)
        if stub is None:
            raise ProtocolError(f"No authorization entry found for initiator {initiator.address}")

        expiration = self._expiration(simulation.latest_ledger, ttl_minutes)
        signed = initiator.sign_authorization(stub, expiration)

        log.info(
            "start_game_prepared",
            session_id=session_id,
            initiator=initiator.address,
            expiration_ledger=expiration,
        )
        return PreparedSession(
            session_id=session_id,
            initiator=initiator.address,
            initiator_points=initiator_points,
            artifact=encode_artifact(signed, self.ledger.network_passphrase),
            expiration_ledger=expiration,
        )

    # -------------------------------------------------------------------------
    # Step B
    # -------------------------------------------------------------------------

    def import_and_cosign(
        self,
        artifact: str,
        responder: Signer,
        responder_points: int,
        x: int,
        y: int,
        nullifier: int,
        ttl_minutes: int | None = None,
    ) -> CosignedSession:
        """
        Verify the initiator's artifact and produce a fully authorized transaction.

        Raises:
            ArtifactError: malformed, wrong contract, wrong network, bad signature
            SelfPlayError: the responder is the initiator
            AuthorizationExpiredError: the initiator must run Step A again
            SimulationError: stakes or fees are not covered
        """
        preview = parse_artifact(artifact)
        if responder.address == preview.initiator:
            raise SelfPlayError(responder.address)
        if preview.contract_id != self.contract_id:
            raise ArtifactError(
                f"Artifact authorizes contract {preview.contract_id}, not {self.contract_id}"
            )
        verify_artifact(preview, self.ledger.network_passphrase, self.ledger.latest_ledger())

        treasure_hash = commit(x, y, nullifier, self.hasher)
        invocation = self._start_game(
            preview.session_id,
            preview.initiator,
            responder.address,
            preview.initiator_points,
            responder_points,
            treasure_hash,
        )
        tx = self._build(responder.address, invocation)
        simulation = self.ledger.simulate(tx)

        signed = SignedAuthorizationSet((preview.entry,))
        expiration = self._expiration(simulation.latest_ledger, ttl_minutes)
        for stub in simulation.auth:
            if stub.matches(preview.entry):
                continue
            if stub.address != responder.address:
                raise ArtifactError(f"Unexpected authorization required from {stub.address}")
            signed = signed.with_entry(responder.sign_authorization(stub, expiration))

        try:
            auth = signed.inject(simulation.auth)
        except ValueError as e:
            raise ArtifactError(f"Imported authorization does not match the rebuilt call: {e}") from e

        tx = tx.assemble(simulation).with_auth(auth)
        log.info(
            "start_game_cosigned",
            session_id=preview.session_id,
            player1=preview.initiator,
            player2=responder.address,
        )
        return CosignedSession(
            session_id=preview.session_id,
            player1=preview.initiator,
            player2=responder.address,
            treasure_hash=bytes(treasure_hash),
            transaction=tx,
            signed=signed,
        )

    # -------------------------------------------------------------------------
    # Step C
    # -------------------------------------------------------------------------

    def refresh_footprint(self, cosigned: CosignedSession) -> CosignedSession:
        """
        Re-simulate for a fresh footprint and fee, keeping the signatures.

        The simulation's stubs are discarded in favour of the signed set.
        """
        simulation = self.ledger.simulate(cosigned.transaction)
        try:
            auth = cosigned.signed.inject(simulation.auth)
        except ValueError as e:
            raise AuthorizationError(f"Signed set no longer matches the transaction: {e}") from e
        tx = cosigned.transaction.assemble(simulation).with_auth(auth)
        log.info("start_game_footprint_refreshed", session_id=cosigned.session_id)
        return replace(cosigned, transaction=tx)

    def finalize(self, cosigned: CosignedSession, responder: Signer) -> FinalizedSession:
        """
        Sign the envelope and broadcast. Does not simulate.

        Raises:
            ProtocolError: the signer is not the transaction source
            StepOrderError: the session was never co-signed
            AuthorizationError: some entries are unsigned, or the ledger
                rejected an authorization
            TransactionFailedError: any other broadcast failure; no session exists
        """
        tx = cosigned.transaction
        if responder.address != tx.source:
            raise ProtocolError(f"Envelope must be signed by the source {tx.source}")
        if not {cosigned.player1, cosigned.player2} <= set(cosigned.signed.addresses):
            raise StepOrderError("Finalize needs both players in the signed set; run import_and_cosign first")
        pending = required_signers(tx)
        if pending:
            raise AuthorizationError(
                f"Unsigned authorization entries for {', '.join(pending)}; "
                "the signed set was not re-injected"
            )

        response = self.ledger.send(responder.sign_envelope(tx))
        response.raise_for_status()
        log.info(
            "start_game_finalized",
            session_id=cosigned.session_id,
            tx_hash=response.hash,
            ledger=response.ledger,
        )
        return FinalizedSession(
            session_id=cosigned.session_id,
            tx_hash=response.hash,
            ledger=response.ledger,
        )
