"""
Engine Module - The game contract and its state machine.

The gate admits proof submissions in a fixed order, the verifier contract
checks the proof, and the resolution engine closes a session exactly once.
"""

from .state import Game, GamePhase, Outcome
from .gateway import check_submission, record_submission
from .resolution import Resolution, compute_outcome, resolve
from .verifier import VerifierContract
from .contract import GameContract, Deployment, deploy

__all__ = [
    "Game",
    "GamePhase",
    "Outcome",
    "check_submission",
    "record_submission",
    "Resolution",
    "compute_outcome",
    "resolve",
    "VerifierContract",
    "GameContract",
    "Deployment",
    "deploy",
]
