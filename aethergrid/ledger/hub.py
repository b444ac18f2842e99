"""
Game Hub - Points escrow shared by every game contract.

A game contract reports each session to the hub:
- start_game debits both players' available points into the session pot
- end_game pays the whole pot to the winner

Only the game contract that opened a session can end it. Players get points
from the hub admin.
"""

from __future__ import annotations

from ..errors import InsufficientPointsError, InvalidArgumentError
from .network import Env


class GameHub:
    EXPORTS = (
        "grant_points",
        "points",
        "start_game",
        "end_game",
        "get_session",
        "get_admin",
    )

    def __constructor__(self, env: Env, admin: str):
        env.storage.set(("Admin",), admin)

    def get_admin(self, env: Env) -> str:
        return env.storage.get(("Admin",))

    def grant_points(self, env: Env, player: str, amount: int) -> int:
        """Admin-only: add `amount` to a player's available points."""
        env.require_auth(self.get_admin(env))
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidArgumentError("amount must be a positive integer")
        balance = env.storage.get(("Points", player), 0) + amount
        env.storage.set(("Points", player), balance)
        return balance

    def points(self, env: Env, player: str) -> int:
        return env.storage.get(("Points", player), 0)

    def start_game(
        self,
        env: Env,
        game_id: str,
        session_id: int,
        player1: str,
        player2: str,
        player1_points: int,
        player2_points: int,
    ):
        env.require_auth(game_id)
        key = ("Session", game_id, session_id)
        if env.storage.has(key):
            raise InvalidArgumentError(f"session {session_id} already registered")

        for player, stake in ((player1, player1_points), (player2, player2_points)):
            if stake < 0:
                raise InvalidArgumentError("stake must not be negative")
            available = env.storage.get(("Points", player), 0)
            if available < stake:
                raise InsufficientPointsError(player, available, stake)
            env.storage.set(("Points", player), available - stake)

        env.storage.set(key, {
            "player1": player1,
            "player2": player2,
            "player1_points": player1_points,
            "player2_points": player2_points,
            "ended": False,
        })

    def end_game(self, env: Env, game_id: str, session_id: int, player1_won: bool):
        env.require_auth(game_id)
        key = ("Session", game_id, session_id)
        session = env.storage.get(key)
        if session is None:
            raise InvalidArgumentError(f"session {session_id} was never started")
        if session["ended"]:
            raise InvalidArgumentError(f"session {session_id} already ended")

        winner = session["player1"] if player1_won else session["player2"]
        pot = session["player1_points"] + session["player2_points"]
        env.storage.set(("Points", winner), env.storage.get(("Points", winner), 0) + pot)
        env.storage.set(key, {**session, "ended": True})

    def get_session(self, env: Env, game_id: str, session_id: int) -> dict | None:
        return env.storage.get(("Session", game_id, session_id))
