"""
HTTP Ledger Client - LedgerClient over a remote ledger node.

Implements the same calls as InMemoryLedger, so the assembler, game client
and watcher run unchanged against a node. Network failures and 5xx answers
become TransportError, the one error class polling retries.
"""

from __future__ import annotations
from typing import Any

import httpx
import structlog

from ..config import AETHERGRID_LEDGER_URL
from ..engine.state import Game
from ..errors import (
    AccountNotFoundError,
    AuthorizationError,
    ContractError,
    GameErrorCode,
    InvalidArgumentError,
    SimulationError,
    TransportError,
    VerificationError,
)
from ..ledger.auth import AuthorizationEntry
from ..ledger.network import (
    Account,
    FailureKind,
    SimulationResult,
    TransactionResponse,
    TransactionStatus,
)
from ..ledger.transaction import Transaction

log = structlog.get_logger()


def _cause_from_details(details: dict | None) -> Exception | None:
    """Rebuild the in-ledger failure behind a SIMULATION_FAILED response."""
    if not details:
        return None
    kind = details.get("kind")
    message = details.get("cause", "")
    if kind == FailureKind.CONTRACT.value and details.get("code") is not None:
        return ContractError(GameErrorCode(details["code"]))
    if kind == FailureKind.VERIFICATION.value:
        return VerificationError(message)
    if kind == FailureKind.AUTHORIZATION.value:
        return AuthorizationError(message)
    return None


class HttpLedgerClient:
    """
    Usage:
        with HttpLedgerClient("http://localhost:8000") as ledger:
            assembler = SessionAuthorizationAssembler(ledger, ledger.game_contract_id)
    """

    def __init__(
        self,
        base_url: str = AETHERGRID_LEDGER_URL,
        client: httpx.Client | None = None,
        timeout: float = 30.0,
    ):
        self._http = client or httpx.Client(base_url=base_url, timeout=timeout)
        self._owns_client = client is None
        self._info: dict | None = None

    # -------------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------------

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = self._http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            log.warning("ledger_node_unreachable", path=path, error=str(e))
            raise TransportError(f"Ledger node unreachable: {e}") from e
        if response.status_code >= 500:
            raise TransportError(f"Ledger node error {response.status_code} on {path}")
        return response

    def _ledger_info(self, refresh: bool = False) -> dict:
        if self._info is None or refresh:
            self._info = self._request("GET", "/api/v1/ledger").json()
        return self._info

    @property
    def network_passphrase(self) -> str:
        return self._ledger_info()["network_passphrase"]

    @property
    def game_contract_id(self) -> str:
        return self._ledger_info()["game_contract_id"]

    def close(self):
        if self._owns_client:
            self._http.close()

    def __enter__(self) -> HttpLedgerClient:
        return self

    def __exit__(self, *exc):
        self.close()

    # -------------------------------------------------------------------------
    # LedgerClient
    # -------------------------------------------------------------------------

    def latest_ledger(self) -> int:
        return int(self._ledger_info(refresh=True)["latest_ledger"])

    def get_account(self, address: str) -> Account:
        response = self._request("GET", f"/api/v1/accounts/{address}")
        if response.status_code == 404:
            raise AccountNotFoundError(address)
        data = response.json()
        return Account(address=data["address"], sequence=data["sequence"], balance=data["balance"])

    def simulate(self, tx: Transaction) -> SimulationResult:
        response = self._request(
            "POST", "/api/v1/transactions/simulate", json={"envelope": tx.to_envelope()}
        )
        data = response.json()
        if response.status_code != 200:
            cause = _cause_from_details(data.get("details"))
            raise SimulationError(data.get("error", "Simulation failed"), cause=cause)
        return SimulationResult(
            result=data.get("result"),
            auth=tuple(AuthorizationEntry.from_dict(e) for e in data["auth"]),
            footprint=frozenset(data["footprint"]),
            min_fee=int(data["min_fee"]),
            latest_ledger=int(data["latest_ledger"]),
        )

    def send(self, tx: Transaction) -> TransactionResponse:
        response = self._request("POST", "/api/v1/transactions", json={"envelope": tx.to_envelope()})
        data = response.json()
        if response.status_code != 200:
            raise InvalidArgumentError(data.get("error", "Transaction rejected by node"))
        return TransactionResponse(
            status=TransactionStatus(data["status"]),
            hash=data["hash"],
            ledger=data.get("ledger"),
            result=data.get("result"),
            error=data.get("error"),
            error_kind=FailureKind(data["error_kind"]) if data.get("error_kind") else None,
            error_code=data.get("error_code"),
        )

    def read(self, contract_id: str, function: str, *args) -> Any:
        """Only the game reads the node exposes are available remotely."""
        if contract_id != self.game_contract_id:
            raise InvalidArgumentError(f"Node does not serve reads for contract {contract_id}")
        if function not in ("get_game", "get_treasure_hash") or len(args) != 1:
            raise InvalidArgumentError(f"{function} is not readable through the node API")

        session_id = args[0]
        path = f"/api/v1/games/{session_id}"
        if function == "get_treasure_hash":
            path += "/treasure-hash"
        response = self._request("GET", path)
        if response.status_code == 404:
            raise ContractError(GameErrorCode.GAME_NOT_FOUND)
        data = response.json()
        if function == "get_treasure_hash":
            return bytes.fromhex(data["treasure_hash"])
        return Game.from_dict(data)
