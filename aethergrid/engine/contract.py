"""
Game Contract - The on-ledger half of AetherGrid.

Functions:
    start_game        Dual-authorized session creation
    submit_zk_proof   Gate, verify, record energy
    resolve_game      Permissionless, idempotent resolution
    get_game          Read the session record
    get_treasure_hash Read the stored commitment

Administration (admin-authorized setters):
    get_admin / set_admin, get_hub / set_hub, get_verifier / set_verifier

Every failure raises and aborts the enclosing transaction, so storage is
either fully updated or untouched.
"""

from __future__ import annotations
from dataclasses import dataclass

import structlog

from ..errors import ContractError, GameErrorCode, InvalidArgumentError
from ..ledger.keys import is_address
from ..ledger.hub import GameHub
from ..ledger.network import Env, InMemoryLedger
from ..prover.backend import ProofVerifier
from .gateway import check_submission, record_submission
from .resolution import resolve
from .state import Game, Outcome
from .verifier import VerifierContract

log = structlog.get_logger()

U32_MAX = 2**32 - 1
I128_MIN = -(2**127)
I128_MAX = 2**127 - 1


def _check_u32(value, name: str):
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= U32_MAX:
        raise InvalidArgumentError(f"{name} must be a u32")


def _check_i128(value, name: str):
    if isinstance(value, bool) or not isinstance(value, int) or not I128_MIN <= value <= I128_MAX:
        raise InvalidArgumentError(f"{name} must be an i128")


def _check_address(value, name: str):
    if not is_address(value):
        raise InvalidArgumentError(f"{name} must be an address")


def _check_bytes32(value, name: str):
    if not isinstance(value, (bytes, bytearray)) or len(value) != 32:
        raise InvalidArgumentError(f"{name} must be 32 bytes")


class GameContract:
    EXPORTS = (
        "start_game",
        "submit_zk_proof",
        "resolve_game",
        "get_game",
        "get_treasure_hash",
        "get_admin",
        "set_admin",
        "get_hub",
        "set_hub",
        "get_verifier",
        "set_verifier",
    )

    def __constructor__(self, env: Env, admin: str, game_hub: str, verifier: str):
        env.storage.set(("Admin",), admin)
        env.storage.set(("GameHub",), game_hub)
        env.storage.set(("Verifier",), verifier)

    # =========================================================================
    # Session lifecycle
    # =========================================================================

    def start_game(
        self,
        env: Env,
        session_id: int,
        player1: str,
        player2: str,
        player1_points: int,
        player2_points: int,
        treasure_hash: bytes,
    ):
        """
        Create a session. Each player authorizes (session_id, own points),
        so either half can be signed without knowing the other.
        """
        _check_u32(session_id, "session_id")
        _check_address(player1, "player1")
        _check_address(player2, "player2")
        _check_i128(player1_points, "player1_points")
        _check_i128(player2_points, "player2_points")
        _check_bytes32(treasure_hash, "treasure_hash")
        if player1 == player2:
            raise InvalidArgumentError("Cannot play against yourself: player1 and player2 must differ")

        env.require_auth_for_args(player1, (session_id, player1_points))
        env.require_auth_for_args(player2, (session_id, player2_points))

        key = ("Game", session_id)
        if env.storage.has(key):
            raise InvalidArgumentError(f"session {session_id} already exists")

        env.invoke(
            env.storage.get(("GameHub",)),
            "start_game",
            env.contract_id,
            session_id,
            player1,
            player2,
            player1_points,
            player2_points,
        )

        env.storage.set(key, Game(
            player1=player1,
            player2=player2,
            player1_points=player1_points,
            player2_points=player2_points,
            treasure_hash=bytes(treasure_hash),
        ))
        log.info("game_started", session_id=session_id, ledger=env.ledger_sequence)

    def submit_zk_proof(
        self,
        env: Env,
        session_id: int,
        player: str,
        proof: bytes,
        public_inputs: bytes,
        energy_used: int,
    ):
        _check_u32(session_id, "session_id")
        _check_address(player, "player")
        _check_u32(energy_used, "energy_used")
        if not isinstance(proof, (bytes, bytearray)) or not isinstance(public_inputs, (bytes, bytearray)):
            raise InvalidArgumentError("proof and public_inputs must be bytes")
        env.require_auth(player)

        key = ("Game", session_id)
        game = check_submission(env.storage.get(key), player, public_inputs)

        # Raises on an invalid proof, which rolls back the transaction.
        env.invoke(env.storage.get(("Verifier",)), "verify_proof", bytes(proof), bytes(public_inputs))

        env.storage.set(key, record_submission(game, player, energy_used))
        log.info("proof_accepted", session_id=session_id, player=player, energy_used=energy_used)

    def resolve_game(self, env: Env, session_id: int) -> Outcome:
        """Anyone may call this; the result depends only on stored state."""
        key = ("Game", session_id)
        outcome_key = ("Outcome", session_id)
        resolution = resolve(env.storage.get(key), env.storage.get(outcome_key))

        if resolution.first:
            env.storage.set(key, resolution.game)
            env.storage.set(outcome_key, resolution.outcome)
            env.invoke(
                env.storage.get(("GameHub",)),
                "end_game",
                env.contract_id,
                session_id,
                resolution.outcome.player1_won,
            )
            log.info("game_resolved", session_id=session_id, outcome=resolution.outcome.value)
        return resolution.outcome

    # =========================================================================
    # Reads
    # =========================================================================

    def get_game(self, env: Env, session_id: int) -> Game:
        game = env.storage.get(("Game", session_id))
        if game is None:
            raise ContractError(GameErrorCode.GAME_NOT_FOUND)
        return game

    def get_treasure_hash(self, env: Env, session_id: int) -> bytes:
        return self.get_game(env, session_id).treasure_hash

    # =========================================================================
    # Administration
    # =========================================================================

    def get_admin(self, env: Env) -> str:
        return env.storage.get(("Admin",))

    def set_admin(self, env: Env, new_admin: str):
        env.require_auth(self.get_admin(env))
        _check_address(new_admin, "new_admin")
        env.storage.set(("Admin",), new_admin)

    def get_hub(self, env: Env) -> str:
        return env.storage.get(("GameHub",))

    def set_hub(self, env: Env, new_hub: str):
        env.require_auth(self.get_admin(env))
        _check_address(new_hub, "new_hub")
        env.storage.set(("GameHub",), new_hub)

    def get_verifier(self, env: Env) -> str:
        return env.storage.get(("Verifier",))

    def set_verifier(self, env: Env, new_verifier: str):
        env.require_auth(self.get_admin(env))
        _check_address(new_verifier, "new_verifier")
        env.storage.set(("Verifier",), new_verifier)


# =============================================================================
# Deployment
# =============================================================================

@dataclass(frozen=True)
class Deployment:
    """Contract ids of one AetherGrid installation."""
    game_id: str
    hub_id: str
    verifier_id: str


def deploy(ledger: InMemoryLedger, admin: str, verifier: ProofVerifier | None = None) -> Deployment:
    """Deploy hub, verifier and game contracts onto a local ledger."""
    hub_id = ledger.deploy(GameHub(), admin)
    verifier_id = ledger.deploy(VerifierContract(verifier))
    game_id = ledger.deploy(GameContract(), admin, hub_id, verifier_id)
    return Deployment(game_id=game_id, hub_id=hub_id, verifier_id=verifier_id)
