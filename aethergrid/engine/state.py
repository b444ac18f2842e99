"""
Game State - The authoritative per-session record.

Design principles:
- Immutable: every transition returns a new Game
- Write-once fields: treasure_hash, stakes and players never change; each
  energy goes None -> value once; resolved goes False -> True once
- Serializable: to_dict/from_dict for the node API and snapshots
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from enum import Enum


class Outcome(str, Enum):
    """Result of a resolved session. Never stored inside Game."""
    PLAYER1_WON = "Player1Won"
    PLAYER2_WON = "Player2Won"
    BOTH_FOUND_TREASURE = "BothFoundTreasure"
    NEITHER_FOUND = "NeitherFound"

    @property
    def player1_won(self) -> bool:
        """Who collects the pot. A tie scores for player 1."""
        return self in (Outcome.PLAYER1_WON, Outcome.BOTH_FOUND_TREASURE)


class GamePhase(Enum):
    """Externally observable resolution state."""
    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class Game:
    player1: str
    player2: str
    player1_points: int
    player2_points: int
    treasure_hash: bytes
    player1_energy: int | None = None
    player2_energy: int | None = None
    resolved: bool = False

    @property
    def phase(self) -> GamePhase:
        return GamePhase.CLOSED if self.resolved else GamePhase.OPEN

    def is_player(self, address: str) -> bool:
        return address in (self.player1, self.player2)

    def energy_of(self, player: str) -> int | None:
        if player == self.player1:
            return self.player1_energy
        if player == self.player2:
            return self.player2_energy
        raise ValueError(f"{player} is not a player in this game")

    def has_submitted(self, player: str) -> bool:
        return self.energy_of(player) is not None

    @property
    def submissions(self) -> int:
        return (self.player1_energy is not None) + (self.player2_energy is not None)

    def with_energy(self, player: str, energy: int) -> Game:
        """Record a player's energy. Refuses to overwrite."""
        if self.has_submitted(player):
            raise ValueError(f"{player} already has a recorded energy")
        if player == self.player1:
            return replace(self, player1_energy=energy)
        return replace(self, player2_energy=energy)

    def closed(self) -> Game:
        return replace(self, resolved=True)

    def to_dict(self) -> dict:
        return {
            "player1": self.player1,
            "player2": self.player2,
            "player1_points": self.player1_points,
            "player2_points": self.player2_points,
            "player1_energy": self.player1_energy,
            "player2_energy": self.player2_energy,
            "resolved": self.resolved,
            "treasure_hash": self.treasure_hash.hex(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> Game:
        return cls(
            player1=data["player1"],
            player2=data["player2"],
            player1_points=int(data["player1_points"]),
            player2_points=int(data["player2_points"]),
            treasure_hash=bytes.fromhex(data["treasure_hash"]),
            player1_energy=data.get("player1_energy"),
            player2_energy=data.get("player2_energy"),
            resolved=bool(data.get("resolved", False)),
        )
