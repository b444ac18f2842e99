"""
Pydantic Schemas for the ledger-node API.

These models are the wire contract between a remote player client and a
node hosting the local ledger. Byte values travel as 0x-prefixed hex.

Error Codes:
- ACCOUNT_NOT_FOUND: No account at the address
- GAME_NOT_FOUND: No session with that id
- SIMULATION_FAILED: The transaction could not be simulated
- INVALID_ENVELOPE: The transaction envelope could not be parsed
- INVALID_ARTIFACT: The Step A artifact could not be parsed
- VALIDATION_ERROR: A parameter is malformed
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


# =============================================================================
# Enums
# =============================================================================

class ErrorCode(str, Enum):
    """Structured error codes."""
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
    GAME_NOT_FOUND = "GAME_NOT_FOUND"
    SIMULATION_FAILED = "SIMULATION_FAILED"
    INVALID_ENVELOPE = "INVALID_ENVELOPE"
    INVALID_ARTIFACT = "INVALID_ARTIFACT"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class TransactionStatusValue(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


# =============================================================================
# Requests
# =============================================================================

class EnvelopeRequest(BaseModel):
    """A base64 transaction envelope."""
    envelope: str = Field(..., min_length=1, description="Transaction envelope from Transaction.to_envelope()")


class ArtifactRequest(BaseModel):
    """A Step A authorization artifact."""
    artifact: str = Field(..., min_length=1)


# =============================================================================
# Responses
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str = Field(..., description="Human-readable error message")
    error_code: ErrorCode = Field(..., description="Machine-readable error code")
    details: Optional[dict[str, Any]] = Field(None, description="Additional error context")
    api_version: str = Field("v1", description="API version")


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    service: str
    version: str


class LedgerInfoResponse(BaseModel):
    latest_ledger: int
    network_passphrase: str
    game_contract_id: str
    hub_contract_id: str
    verifier_contract_id: str


class AccountResponse(BaseModel):
    address: str
    sequence: int
    balance: int


class GameResponse(BaseModel):
    """The session record as stored by the game contract."""
    session_id: int
    player1: str
    player2: str
    player1_points: int
    player2_points: int
    player1_energy: Optional[int] = None
    player2_energy: Optional[int] = None
    resolved: bool = False
    treasure_hash: str = Field(..., description="32 bytes, hex")


class TreasureHashResponse(BaseModel):
    session_id: int
    treasure_hash: str = Field(..., description="32 bytes, hex")


class SimulationResponse(BaseModel):
    result: Any = None
    auth: list[dict[str, Any]] = Field(default_factory=list, description="Unsigned authorization stubs")
    footprint: list[str] = Field(default_factory=list)
    min_fee: int
    latest_ledger: int


class TransactionResultResponse(BaseModel):
    status: TransactionStatusValue
    hash: str
    ledger: Optional[int] = None
    result: Any = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    error_code: Optional[int] = None


class ArtifactPreviewResponse(BaseModel):
    """Read-only view of a Step A artifact."""
    session_id: int
    initiator: str
    initiator_points: int
    contract_id: str
    expiration_ledger: int
    network: str
    signature_valid: Optional[bool] = None
    expired: Optional[bool] = None
