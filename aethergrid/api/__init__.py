"""
API Module - REST interface for a ledger node.

Exposes the local ledger to remote player clients:
1. Ledger and account reads for building transactions
2. Session reads for polling
3. Simulation and broadcast of transaction envelopes
4. Read-only previews of Step A artifacts

HttpLedgerClient is the matching client; it plugs into the session
protocol wherever an InMemoryLedger would.
"""

from .schemas import (
    # Requests
    EnvelopeRequest,
    ArtifactRequest,
    # Responses
    AccountResponse,
    ArtifactPreviewResponse,
    ErrorResponse,
    GameResponse,
    HealthResponse,
    LedgerInfoResponse,
    SimulationResponse,
    TransactionResultResponse,
    TreasureHashResponse,
    # Enums
    ErrorCode,
)
from .service import LedgerService
from .app import create_app
from .http_client import HttpLedgerClient

__all__ = [
    # Requests
    "EnvelopeRequest",
    "ArtifactRequest",
    # Responses
    "AccountResponse",
    "ArtifactPreviewResponse",
    "ErrorResponse",
    "GameResponse",
    "HealthResponse",
    "LedgerInfoResponse",
    "SimulationResponse",
    "TransactionResultResponse",
    "TreasureHashResponse",
    # Enums
    "ErrorCode",
    # Service
    "LedgerService",
    "create_app",
    "HttpLedgerClient",
]
