"""
Session Sync - Bounded polling and the session protocol state machine.

Each client learns about changes it did not cause (the counterparty's
broadcast, a proof landing, resolution) by polling the ledger:
- Fixed interval, bounded total wait, then PollTimeoutError ("check manually")
- Transport errors are retried up to a ceiling of consecutive failures
- Polling only reads, so a restarted client just polls again

SessionProtocol tracks where a session stands:

    Prepared -> Cosigned -> Finalized -> ProofPending -> Resolved

The two off-ledger phases are recorded from the artifacts a client actually
produced or received; the rest are derived from ledger reads alone. Phases
only move forward.
"""

from __future__ import annotations
from enum import IntEnum
from typing import Callable, TypeVar
import time

import structlog

from ..config import ProtocolConfig
from ..engine.state import Game
from ..errors import InvalidArgumentError, PollTimeoutError, TransportError
from .client import GameClient

log = structlog.get_logger()

T = TypeVar("T")


class SessionPhase(IntEnum):
    NEW = 0
    PREPARED = 1
    COSIGNED = 2
    FINALIZED = 3
    PROOF_PENDING = 4
    RESOLVED = 5


def phase_from_game(game: Game | None) -> SessionPhase | None:
    """The ledger-derived phase, or None when the session is not on the ledger."""
    if game is None:
        return None
    if game.resolved:
        return SessionPhase.RESOLVED
    if game.submissions:
        return SessionPhase.PROOF_PENDING
    return SessionPhase.FINALIZED


class SessionProtocol:
    """Monotonic phase tracker for one session, from one client's view."""

    def __init__(self, session_id: int, phase: SessionPhase = SessionPhase.NEW):
        self.session_id = session_id
        self._phase = phase

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    def _advance(self, phase: SessionPhase) -> SessionPhase:
        if phase > self._phase:
            log.info(
                "session_phase_changed",
                session_id=self.session_id,
                old=self._phase.name,
                new=phase.name,
            )
            self._phase = phase
        return self._phase

    def record_prepared(self) -> SessionPhase:
        return self._advance(SessionPhase.PREPARED)

    def record_cosigned(self) -> SessionPhase:
        return self._advance(SessionPhase.COSIGNED)

    def observe(self, game: Game | None) -> SessionPhase:
        """Fold in a ledger read. A missing session never moves the phase back."""
        phase = phase_from_game(game)
        if phase is None:
            return self._phase
        return self._advance(phase)


def poll_until(
    fetch: Callable[[], T],
    predicate: Callable[[T], bool],
    what: str,
    interval: float = 5.0,
    max_wait: float = 300.0,
    retry_ceiling: int = 3,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
    on_retry: Callable[[TransportError, int], None] | None = None,
) -> T:
    """
    Call `fetch` every `interval` seconds until `predicate` holds.

    Raises:
        PollTimeoutError: `max_wait` elapsed without the predicate holding
        TransportError: more than `retry_ceiling` consecutive transport failures
    """
    started = clock()
    failures = 0
    while True:
        try:
            value = fetch()
        except TransportError as e:
            failures += 1
            if failures > retry_ceiling:
                log.warning("poll_gave_up", what=what, failures=failures)
                raise
            log.info("poll_retrying", what=what, attempt=failures, error=str(e))
            if on_retry:
                on_retry(e, failures)
        else:
            failures = 0
            if predicate(value):
                return value

        elapsed = clock() - started
        if elapsed + interval > max_wait:
            log.info("poll_timed_out", what=what, waited=elapsed)
            raise PollTimeoutError(what, elapsed)
        sleep(interval)


class SessionWatcher:
    """
    Polls one session and keeps its SessionProtocol current.

    Usage:
        watcher = SessionWatcher(client, 42)
        game = watcher.wait_for_game()
        game = watcher.wait_for_resolution()
    """

    def __init__(
        self,
        client: GameClient,
        session_id: int,
        protocol: SessionProtocol | None = None,
        config: ProtocolConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.session_id = session_id
        self.protocol = protocol or SessionProtocol(session_id)
        self.config = config or client.config
        self._clock = clock
        self._sleep = sleep

    def current(self) -> Game | None:
        """One read; updates the protocol phase."""
        game = self.client.find_game(self.session_id)
        self.protocol.observe(game)
        return game

    def wait_for(self, predicate: Callable[[Game | None], bool], what: str) -> Game | None:
        return poll_until(
            self.current,
            predicate,
            what,
            interval=self.config.poll_interval_seconds,
            max_wait=self.config.max_wait_seconds,
            retry_ceiling=self.config.transport_retry_ceiling,
            clock=self._clock,
            sleep=self._sleep,
        )

    def wait_for_game(self) -> Game:
        """Wait for the counterparty's start_game to land."""
        return self.wait_for(lambda g: g is not None, f"session {self.session_id} to start")

    def wait_for_submission(self, player: str) -> Game:
        """
        Wait for `player`'s proof to land, or for resolution.

        Raises:
            InvalidArgumentError: `player` is not seated in the session
        """

        def submitted(game: Game | None) -> bool:
            if game is None:
                return False
            if not game.is_player(player):
                raise InvalidArgumentError(f"{player} is not a player in session {self.session_id}")
            return game.resolved or game.has_submitted(player)

        return self.wait_for(submitted, f"a proof from {player} in session {self.session_id}")

    def wait_for_resolution(self) -> Game:
        return self.wait_for(
            lambda g: g is not None and g.resolved,
            f"session {self.session_id} to resolve",
        )
