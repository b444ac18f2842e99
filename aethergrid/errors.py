"""
Errors - One hierarchy for every failure the protocol can surface.

Taxonomy:
1. Protocol sequencing errors (wrong step, expired authorization, self-play)
   are detected locally before any network call.
2. Gate rejections are the six named contract errors. Each aborts the whole
   invocation and leaves the session unchanged.
3. Verification failures abort the submission exactly like a gate rejection.
4. Transport errors are the only class a caller retries, and only up to a
   ceiling.
"""

from __future__ import annotations
from enum import IntEnum


class GameErrorCode(IntEnum):
    """Contract error codes, stable on the wire."""
    GAME_NOT_FOUND = 1
    NOT_PLAYER = 2
    ALREADY_SUBMITTED = 3
    NEITHER_PLAYER_SUBMITTED = 4
    GAME_ALREADY_RESOLVED = 5
    PUBLIC_INPUT_MISMATCH = 6

    @property
    def label(self) -> str:
        return {
            GameErrorCode.GAME_NOT_FOUND: "GameNotFound",
            GameErrorCode.NOT_PLAYER: "NotPlayer",
            GameErrorCode.ALREADY_SUBMITTED: "AlreadySubmitted",
            GameErrorCode.NEITHER_PLAYER_SUBMITTED: "NeitherPlayerSubmitted",
            GameErrorCode.GAME_ALREADY_RESOLVED: "GameAlreadyResolved",
            GameErrorCode.PUBLIC_INPUT_MISMATCH: "PublicInputMismatch",
        }[self]


# Messages shown to a player for each gate rejection.
GATE_MESSAGES = {
    GameErrorCode.GAME_NOT_FOUND: "no session exists with that id",
    GameErrorCode.NOT_PLAYER: "you are not a player in this session",
    GameErrorCode.ALREADY_SUBMITTED: "you already submitted a proof for this session",
    GameErrorCode.NEITHER_PLAYER_SUBMITTED: "neither player has submitted a proof yet",
    GameErrorCode.GAME_ALREADY_RESOLVED: "this session has already been resolved",
    GameErrorCode.PUBLIC_INPUT_MISMATCH: (
        "the proof's public commitment does not match this session's treasure hash"
    ),
}


class AetherGridError(Exception):
    """Base class for all AetherGrid errors."""


# =============================================================================
# Input validation
# =============================================================================

class FieldElementError(AetherGridError, ValueError):
    """A commitment input is not a valid field element."""


class InvalidArgumentError(AetherGridError, ValueError):
    """A contract argument does not fit its declared type."""


# =============================================================================
# Protocol sequencing
# =============================================================================

class ProtocolError(AetherGridError):
    """A session-protocol step was attempted out of order or with bad inputs."""


class SelfPlayError(ProtocolError):
    """The responder is the same identity as the initiator."""

    def __init__(self, address: str):
        self.address = address
        super().__init__("Cannot play against yourself.")


class AuthorizationExpiredError(ProtocolError):
    """A signed authorization entry is past its expiration ledger."""

    def __init__(self, expiration_ledger: int, current_ledger: int):
        self.expiration_ledger = expiration_ledger
        self.current_ledger = current_ledger
        super().__init__(
            f"Authorization expired at ledger {expiration_ledger} "
            f"(current ledger {current_ledger}); the initiator must prepare again"
        )


class ArtifactError(ProtocolError):
    """A transferred artifact could not be parsed or verified."""


class StepOrderError(ProtocolError):
    """A protocol step ran before the step it depends on."""


# =============================================================================
# Ledger execution
# =============================================================================

class ContractError(AetherGridError):
    """Raised by the game contract; aborts the enclosing transaction."""

    def __init__(self, code: GameErrorCode):
        self.code = GameErrorCode(code)
        super().__init__(f"Error(Contract, #{int(self.code)}) {self.code.label}")


class VerificationError(AetherGridError):
    """The proof verifier rejected a proof."""


class AccountNotFoundError(AetherGridError, LookupError):
    """No account exists at the given address."""

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"Account {address} does not exist")


class InsufficientPointsError(AetherGridError):
    """A player's available points do not cover the stake."""

    def __init__(self, player: str, available: int, required: int):
        self.player = player
        self.available = available
        self.required = required
        super().__init__(
            f"{player} has {available} points available, {required} required"
        )


class SimulationError(AetherGridError):
    """A transaction could not be simulated (bad source, funds, contract error)."""

    def __init__(self, message: str, cause: Exception | None = None):
        self.cause = cause
        super().__init__(message)


class TransactionFailedError(AetherGridError):
    """A broadcast transaction failed; nothing was recorded."""

    def __init__(self, message: str, tx_hash: str | None = None):
        self.tx_hash = tx_hash
        super().__init__(message)


class GateRejectedError(TransactionFailedError):
    """The transaction failed with one of the named contract errors."""

    def __init__(self, code: GameErrorCode, tx_hash: str | None = None):
        self.code = GameErrorCode(code)
        super().__init__(f"Transaction failed: {self.code.label}", tx_hash=tx_hash)


class ProofRejectedError(TransactionFailedError):
    """The transaction failed because the verifier rejected the proof."""


class AuthorizationError(TransactionFailedError):
    """A required authorization was missing, unsigned, expired or replayed."""


# =============================================================================
# Transport
# =============================================================================

class TransportError(AetherGridError):
    """The ledger could not be reached or answered ambiguously."""


class PollTimeoutError(AetherGridError):
    """Polling hit its maximum wait without observing the expected state."""

    def __init__(self, what: str, waited_seconds: float):
        self.what = what
        self.waited_seconds = waited_seconds
        super().__init__(
            f"Gave up waiting for {what} after {waited_seconds:.0f}s; check manually"
        )


def describe_error(exc: BaseException) -> str:
    """Render the user-facing message for an error."""
    if isinstance(exc, (GateRejectedError, ContractError)):
        return GATE_MESSAGES[exc.code]
    if isinstance(exc, ProofRejectedError):
        return "the proof was rejected; nothing was recorded"
    if isinstance(exc, TransportError):
        return "ledger unreachable, retrying"
    if isinstance(exc, PollTimeoutError):
        return "no update yet, check manually"
    return str(exc)
