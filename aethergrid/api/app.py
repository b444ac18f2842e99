"""
FastAPI Application - REST API for a ledger node.

Endpoints:
    GET    /health                                   Health check
    GET    /api/v1/ledger                            Latest ledger and contract ids
    GET    /api/v1/accounts/{address}                Account sequence and balance
    GET    /api/v1/games/{session_id}                Session record
    GET    /api/v1/games/{session_id}/treasure-hash  Stored commitment
    POST   /api/v1/transactions/simulate             Simulate an envelope
    POST   /api/v1/transactions                      Broadcast an envelope
    POST   /api/v1/artifacts/inspect                 Preview a Step A artifact

A broadcast that the ledger rejects is still a 200 with status FAILED;
error responses are reserved for requests the node could not process.
"""

from typing import Annotated, Optional, Union

from fastapi import FastAPI, Path
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import ALLOWED_ORIGINS
from ..errors import AccountNotFoundError, ArtifactError, ContractError, GameErrorCode, SimulationError
from ..ledger.network import classify_failure
from .schemas import (
    AccountResponse,
    ArtifactPreviewResponse,
    ArtifactRequest,
    EnvelopeRequest,
    ErrorCode,
    ErrorResponse,
    GameResponse,
    HealthResponse,
    LedgerInfoResponse,
    SimulationResponse,
    TransactionResultResponse,
    TreasureHashResponse,
)
from .service import LedgerService, encode_result

SessionId = Annotated[int, Path(ge=0, le=2**32 - 1, description="u32 session id")]


def create_app(service: Optional[LedgerService] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        service: Optional LedgerService instance (creates new if not provided)

    Returns:
        FastAPI application instance
    """
    app = FastAPI(
        title="AetherGrid Ledger Node",
        description="""
Local ledger node for AetherGrid sessions.

## Flow

1. The initiator prepares and signs its half of `start_game`
2. The responder previews the artifact, co-signs, and broadcasts
3. Both players poll `GET /games/{session_id}` and submit proofs
4. Anyone broadcasts `resolve_game`

## Error Codes

| Code | Description |
|------|-------------|
| `ACCOUNT_NOT_FOUND` | No account at the address |
| `GAME_NOT_FOUND` | No session with that id |
| `SIMULATION_FAILED` | The transaction could not be simulated |
| `INVALID_ENVELOPE` | The envelope could not be parsed |
| `INVALID_ARTIFACT` | The artifact could not be parsed |
        """,
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    ledger_service = service or LedgerService()

    # =========================================================================
    # Error helpers
    # =========================================================================

    def make_error_response(
        error_code: ErrorCode,
        message: str,
        status_code: int = 400,
        details: Optional[dict] = None,
    ) -> JSONResponse:
        """Create a standardized error response."""
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(
                error=message,
                error_code=error_code,
                details=details,
            ).model_dump(),
        )

    def game_error(session_id: int, e: ContractError) -> JSONResponse:
        if e.code == GameErrorCode.GAME_NOT_FOUND:
            return make_error_response(
                ErrorCode.GAME_NOT_FOUND,
                f"Session {session_id} not found",
                status_code=404,
            )
        return make_error_response(ErrorCode.INTERNAL_ERROR, str(e), status_code=500)

    # =========================================================================
    # Health & ledger
    # =========================================================================

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(status="ok", service="aethergrid-ledger", version=__version__)

    @app.get(
        "/api/v1/ledger",
        response_model=LedgerInfoResponse,
        tags=["Ledger"],
        summary="Latest ledger sequence and deployed contracts",
    )
    async def ledger_info() -> LedgerInfoResponse:
        return LedgerInfoResponse(**ledger_service.info())

    @app.get(
        "/api/v1/accounts/{address}",
        response_model=AccountResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Ledger"],
        summary="Account sequence number and fee balance",
    )
    async def get_account(address: str) -> Union[AccountResponse, JSONResponse]:
        try:
            account = ledger_service.get_account(address)
        except AccountNotFoundError as e:
            return make_error_response(ErrorCode.ACCOUNT_NOT_FOUND, str(e), status_code=404)
        return AccountResponse(address=account.address, sequence=account.sequence, balance=account.balance)

    # =========================================================================
    # Games
    # =========================================================================

    @app.get(
        "/api/v1/games/{session_id}",
        response_model=GameResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Games"],
        summary="Read a session record",
    )
    async def get_game(session_id: SessionId) -> Union[GameResponse, JSONResponse]:
        try:
            game = ledger_service.get_game(session_id)
        except ContractError as e:
            return game_error(session_id, e)
        return GameResponse(session_id=session_id, **game.to_dict())

    @app.get(
        "/api/v1/games/{session_id}/treasure-hash",
        response_model=TreasureHashResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Games"],
        summary="Read a session's stored commitment",
    )
    async def get_treasure_hash(session_id: SessionId) -> Union[TreasureHashResponse, JSONResponse]:
        try:
            treasure_hash = ledger_service.get_treasure_hash(session_id)
        except ContractError as e:
            return game_error(session_id, e)
        return TreasureHashResponse(session_id=session_id, treasure_hash=treasure_hash.hex())

    # =========================================================================
    # Transactions
    # =========================================================================

    @app.post(
        "/api/v1/transactions/simulate",
        response_model=SimulationResponse,
        responses={400: {"model": ErrorResponse}},
        tags=["Transactions"],
        summary="Simulate a transaction and return its required authorizations",
    )
    async def simulate(body: EnvelopeRequest) -> Union[SimulationResponse, JSONResponse]:
        try:
            simulation = ledger_service.simulate(body.envelope)
        except ValueError as e:
            return make_error_response(ErrorCode.INVALID_ENVELOPE, str(e))
        except SimulationError as e:
            details = None
            if e.cause is not None:
                kind, code = classify_failure(e.cause)
                details = {"kind": kind.value, "code": code, "cause": str(e.cause)}
            return make_error_response(ErrorCode.SIMULATION_FAILED, str(e), details=details)

        return SimulationResponse(
            result=encode_result(simulation.result),
            auth=[entry.to_dict() for entry in simulation.auth],
            footprint=sorted(simulation.footprint),
            min_fee=simulation.min_fee,
            latest_ledger=simulation.latest_ledger,
        )

    @app.post(
        "/api/v1/transactions",
        response_model=TransactionResultResponse,
        responses={400: {"model": ErrorResponse}},
        tags=["Transactions"],
        summary="Broadcast a signed transaction",
    )
    async def send_transaction(body: EnvelopeRequest) -> Union[TransactionResultResponse, JSONResponse]:
        try:
            response = ledger_service.send(body.envelope)
        except ValueError as e:
            return make_error_response(ErrorCode.INVALID_ENVELOPE, str(e))

        return TransactionResultResponse(
            status=response.status.value,
            hash=response.hash,
            ledger=response.ledger,
            result=encode_result(response.result),
            error=response.error,
            error_kind=response.error_kind.value if response.error_kind else None,
            error_code=response.error_code,
        )

    # =========================================================================
    # Artifacts
    # =========================================================================

    @app.post(
        "/api/v1/artifacts/inspect",
        response_model=ArtifactPreviewResponse,
        responses={400: {"model": ErrorResponse}},
        tags=["Artifacts"],
        summary="Preview a Step A authorization artifact",
    )
    async def inspect(body: ArtifactRequest) -> Union[ArtifactPreviewResponse, JSONResponse]:
        """Read-only: shows what the artifact authorizes and whether it is still usable."""
        try:
            preview = ledger_service.inspect_artifact(body.artifact)
        except ArtifactError as e:
            return make_error_response(ErrorCode.INVALID_ARTIFACT, str(e))
        return ArtifactPreviewResponse(**preview)

    return app


# For running directly: uvicorn aethergrid.api.app:app
app = create_app()
