"""
Resolution Engine - Open -> Closed, once.

Winner determination is a pure function of the two recorded energies. Lower
energy wins; equal energies are BothFoundTreasure, which scores for player 1.

Resolving a closed game returns the outcome recorded by the first
resolution and changes nothing.
"""

from __future__ import annotations
from dataclasses import dataclass

from ..errors import ContractError, GameErrorCode
from .state import Game, Outcome


def compute_outcome(player1_energy: int | None, player2_energy: int | None) -> Outcome:
    """
    Raises:
        ContractError: NeitherPlayerSubmitted when both energies are None
    """
    if player1_energy is None and player2_energy is None:
        raise ContractError(GameErrorCode.NEITHER_PLAYER_SUBMITTED)
    if player2_energy is None:
        return Outcome.PLAYER1_WON
    if player1_energy is None:
        return Outcome.PLAYER2_WON
    if player1_energy < player2_energy:
        return Outcome.PLAYER1_WON
    if player2_energy < player1_energy:
        return Outcome.PLAYER2_WON
    return Outcome.BOTH_FOUND_TREASURE


@dataclass(frozen=True)
class Resolution:
    game: Game
    outcome: Outcome
    first: bool  # True only for the call that closed the game


def resolve(game: Game | None, recorded: Outcome | None = None) -> Resolution:
    """
    Close a game, or replay the outcome of a closed one.

    Args:
        game: The stored game, or None if it does not exist
        recorded: The outcome stored by the first resolution, if any

    Raises:
        ContractError: GameNotFound or NeitherPlayerSubmitted
    """
    if game is None:
        raise ContractError(GameErrorCode.GAME_NOT_FOUND)
    if game.resolved:
        if recorded is None:
            # Closed games always have an outcome on record.
            raise ValueError("resolved game has no recorded outcome")
        return Resolution(game=game, outcome=recorded, first=False)

    outcome = compute_outcome(game.player1_energy, game.player2_energy)
    return Resolution(game=game.closed(), outcome=outcome, first=True)
