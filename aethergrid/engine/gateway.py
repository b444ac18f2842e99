"""
Proof Submission Gate - Ordered admission checks for submit_zk_proof.

Each check is a distinct, named failure and they run in this order:
1. The session exists                     GameNotFound
2. The caller is one of its players       NotPlayer
3. It is not resolved yet                 GameAlreadyResolved
4. The caller has not submitted yet       AlreadySubmitted
5. public_inputs == treasure_hash         PublicInputMismatch

Verification of the proof itself comes after all five and is the
contract's job. The commitment is compared as raw bytes; nothing here
interprets it as a number.

energy_used is recorded as supplied. It is not bound by the proof, so a
player can only misreport their own cost.
"""

from __future__ import annotations
import hmac

from ..errors import ContractError, GameErrorCode, InvalidArgumentError
from .state import Game

U32_MAX = 2**32 - 1


def check_submission(game: Game | None, player: str, public_inputs: bytes) -> Game:
    """
    Run the gate. Returns the game when every check passes.

    Raises:
        ContractError: the first failing check's code
    """
    if game is None:
        raise ContractError(GameErrorCode.GAME_NOT_FOUND)
    if not game.is_player(player):
        raise ContractError(GameErrorCode.NOT_PLAYER)
    if game.resolved:
        raise ContractError(GameErrorCode.GAME_ALREADY_RESOLVED)
    if game.has_submitted(player):
        raise ContractError(GameErrorCode.ALREADY_SUBMITTED)
    if not hmac.compare_digest(bytes(public_inputs), game.treasure_hash):
        raise ContractError(GameErrorCode.PUBLIC_INPUT_MISMATCH)
    return game


def record_submission(game: Game, player: str, energy_used: int) -> Game:
    """Record energy_used for a player that passed the gate and verification."""
    if isinstance(energy_used, bool) or not isinstance(energy_used, int):
        raise InvalidArgumentError("energy_used must be a u32")
    if not 0 <= energy_used <= U32_MAX:
        raise InvalidArgumentError("energy_used must be a u32")
    return game.with_energy(player, energy_used)
