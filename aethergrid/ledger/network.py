"""
In-Memory Ledger - A local ledger with the same observable contract as the
real network.

The ledger:
1. Holds accounts (sequence number, fee balance) and deployed contracts
2. Simulates a transaction in recording mode, returning the authorizations
   the contracts asked for as fresh unsigned stubs
3. Applies a transaction in enforcing mode: every required authorization
   must be present, signed, unexpired and carry an unused nonce
4. Applies each transaction against a deep copy of state and commits only
   on success, so a failed transaction leaves nothing behind
5. Closes one ledger per applied transaction

Contracts are plain objects. The ledger calls `contract.<function>(env, *args)`
for names listed in `contract.EXPORTS`; the Env gives them storage, the
caller's identity and require_auth.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol
import copy
import inspect
import secrets
import threading

import structlog

from ..config import AETHERGRID_NETWORK_PASSPHRASE
from ..errors import (
    AetherGridError,
    AccountNotFoundError,
    AuthorizationError,
    ContractError,
    GameErrorCode,
    GateRejectedError,
    InvalidArgumentError,
    ProofRejectedError,
    SimulationError,
    TransactionFailedError,
    VerificationError,
)
from .auth import AuthorizationEntry, Invocation
from .keys import contract_address, verify_signature
from .transaction import Transaction

log = structlog.get_logger()

BASE_FEE = 100
FEE_PER_FOOTPRINT_ENTRY = 10


# =============================================================================
# Results
# =============================================================================

@dataclass
class Account:
    address: str
    sequence: int = 0
    balance: int = 0


@dataclass(frozen=True)
class SimulationResult:
    """What a recording-mode run learned about a transaction."""
    result: Any
    auth: tuple[AuthorizationEntry, ...]
    footprint: frozenset[str]
    min_fee: int
    latest_ledger: int


class TransactionStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class FailureKind(str, Enum):
    """Why a transaction failed."""
    ENVELOPE = "envelope"  # source, sequence, fee or envelope signature
    AUTHORIZATION = "authorization"  # missing, unsigned, expired or replayed entry
    CONTRACT = "contract"  # a named contract error
    VERIFICATION = "verification"  # the proof verifier rejected the proof
    FOOTPRINT = "footprint"  # touched storage outside the declared footprint
    REJECTED = "rejected"  # any other contract-level rejection


@dataclass(frozen=True)
class TransactionResponse:
    status: TransactionStatus
    hash: str
    ledger: int | None = None
    result: Any = None
    error: str | None = None
    error_kind: FailureKind | None = None
    error_code: int | None = None

    @property
    def successful(self) -> bool:
        return self.status == TransactionStatus.SUCCESS

    def raise_for_status(self):
        """Raise the TransactionFailedError subclass matching a FAILED response."""
        if self.successful:
            return
        message = self.error or "transaction failed"
        if self.error_kind == FailureKind.CONTRACT and self.error_code in set(GameErrorCode):
            raise GateRejectedError(GameErrorCode(self.error_code), tx_hash=self.hash)
        if self.error_kind == FailureKind.VERIFICATION:
            raise ProofRejectedError(f"Proof rejected: {message}", tx_hash=self.hash)
        if self.error_kind == FailureKind.AUTHORIZATION:
            raise AuthorizationError(message, tx_hash=self.hash)
        raise TransactionFailedError(message, tx_hash=self.hash)


def classify_failure(exc: Exception) -> tuple[FailureKind, int | None]:
    if isinstance(exc, ContractError):
        return FailureKind.CONTRACT, int(exc.code)
    if isinstance(exc, VerificationError):
        return FailureKind.VERIFICATION, None
    if isinstance(exc, AuthorizationError):
        return FailureKind.AUTHORIZATION, None
    return FailureKind.REJECTED, None


class LedgerClient(Protocol):
    """
    What the session protocol needs from a ledger.

    Implemented by InMemoryLedger and by the HTTP client for a remote node.
    """
    network_passphrase: str

    def latest_ledger(self) -> int:
        ...

    def get_account(self, address: str) -> Account:
        ...

    def simulate(self, tx: Transaction) -> SimulationResult:
        ...

    def send(self, tx: Transaction) -> TransactionResponse:
        ...

    def read(self, contract_id: str, function: str, *args) -> Any:
        ...


# =============================================================================
# Contract environment
# =============================================================================

class _AuthMode(Enum):
    RECORDING = "recording"
    ENFORCING = "enforcing"
    READ_ONLY = "read_only"


class _AuthContext:
    """Collects (simulation) or checks (application) required authorizations."""

    def __init__(
        self,
        mode: _AuthMode,
        entries: tuple[AuthorizationEntry, ...] = (),
        network_passphrase: str = "",
        ledger_sequence: int = 0,
        used_nonces: set | None = None,
    ):
        self.mode = mode
        self.entries = entries
        self.network_passphrase = network_passphrase
        self.ledger_sequence = ledger_sequence
        self.used_nonces = used_nonces if used_nonces is not None else set()
        self.recorded: list[tuple[str, Invocation]] = []
        self._consumed: set[int] = set()

    def require(self, address: str, invocation: Invocation):
        if self.mode == _AuthMode.READ_ONLY:
            raise AuthorizationError("read-only calls cannot require authorization")
        if self.mode == _AuthMode.RECORDING:
            if (address, invocation) not in self.recorded:
                self.recorded.append((address, invocation))
            return

        wanted = invocation.fingerprint()
        for i, entry in enumerate(self.entries):
            if i in self._consumed or entry.address != address:
                continue
            if entry.invocation.fingerprint() != wanted:
                continue
            if not entry.signed:
                raise AuthorizationError(
                    f"authorization for {address} on {invocation.function} is not signed"
                )
            if not entry.verify(self.network_passphrase):
                raise AuthorizationError(
                    f"authorization for {address} on {invocation.function} has a bad signature"
                )
            if entry.expiration_ledger < self.ledger_sequence:
                raise AuthorizationError(
                    f"authorization for {address} expired at ledger "
                    f"{entry.expiration_ledger} (applying ledger {self.ledger_sequence})"
                )
            if (address, entry.nonce) in self.used_nonces:
                raise AuthorizationError(f"authorization nonce for {address} was already used")
            self.used_nonces.add((address, entry.nonce))
            self._consumed.add(i)
            return

        raise AuthorizationError(
            f"missing authorization for {address} on {invocation.function}"
        )


@dataclass
class _State:
    accounts: dict[str, Account] = field(default_factory=dict)
    storage: dict[str, dict] = field(default_factory=dict)
    nonces: set = field(default_factory=set)


class ContractStorage:
    """One contract's key/value storage, recording every key it touches."""

    def __init__(self, contract_id: str, data: dict, touched: set[str]):
        self._contract_id = contract_id
        self._data = data
        self._touched = touched

    def _touch(self, key: tuple):
        self._touched.add(footprint_key(self._contract_id, key))

    def has(self, key: tuple) -> bool:
        self._touch(key)
        return key in self._data

    def get(self, key: tuple, default=None):
        self._touch(key)
        return self._data.get(key, default)

    def set(self, key: tuple, value):
        self._touch(key)
        self._data[key] = value

    def remove(self, key: tuple):
        self._touch(key)
        self._data.pop(key, None)


def footprint_key(contract_id: str, key: tuple) -> str:
    return contract_id + ":" + "/".join(str(part) for part in key)


class Env:
    """The view of the ledger a contract function runs against."""

    def __init__(
        self,
        ledger: InMemoryLedger,
        state: _State,
        contract_id: str,
        function: str,
        args: tuple,
        caller: str | None,
        auth: _AuthContext,
        touched: set[str],
        ledger_sequence: int,
    ):
        self._ledger = ledger
        self._state = state
        self._auth = auth
        self._touched = touched
        self.contract_id = contract_id
        self.function = function
        self.args = args
        self.caller = caller
        self.ledger_sequence = ledger_sequence
        self.storage = ContractStorage(
            contract_id, state.storage.setdefault(contract_id, {}), touched
        )

    def require_auth(self, address: str):
        """Require `address` to have authorized this call with its full arguments."""
        self.require_auth_for_args(address, self.args)

    def require_auth_for_args(self, address: str, args):
        """Require `address` to have authorized this function with `args`."""
        if address == self.caller:
            # The invoking contract authorizes its own sub-calls.
            return
        self._auth.require(address, Invocation(self.contract_id, self.function, tuple(args)))

    def invoke(self, contract_id: str, function: str, *args):
        """Call another contract with this contract as the caller."""
        return self._ledger._call(
            self._state,
            contract_id,
            function,
            args,
            caller=self.contract_id,
            auth=self._auth,
            touched=self._touched,
            ledger_sequence=self.ledger_sequence,
        )


# =============================================================================
# Ledger
# =============================================================================

class InMemoryLedger:
    """
    A single-node ledger.

    Usage:
        ledger = InMemoryLedger()
        ledger.fund(alice.address, 10_000)
        game_id = ledger.deploy(GameContract(), admin, hub_id, verifier_id)

        sim = ledger.simulate(tx)
        response = ledger.send(signed_tx)
    """

    def __init__(
        self,
        network_passphrase: str = AETHERGRID_NETWORK_PASSPHRASE,
        base_fee: int = BASE_FEE,
        start_ledger: int = 1,
    ):
        self.network_passphrase = network_passphrase
        self.base_fee = base_fee
        self._latest = start_ledger
        self._state = _State()
        self._contracts: dict[str, Any] = {}
        self._lock = threading.RLock()

    # -------------------------------------------------------------------------
    # Ledger clock & accounts
    # -------------------------------------------------------------------------

    def latest_ledger(self) -> int:
        with self._lock:
            return self._latest

    def close_ledgers(self, count: int = 1) -> int:
        """Advance the ledger sequence without applying anything."""
        with self._lock:
            self._latest += count
            return self._latest

    def fund(self, address: str, amount: int) -> Account:
        """Create the account if needed and add `amount` to its fee balance."""
        with self._lock:
            account = self._state.accounts.setdefault(address, Account(address=address))
            account.balance += amount
            return copy.copy(account)

    def get_account(self, address: str) -> Account:
        with self._lock:
            account = self._state.accounts.get(address)
            if account is None:
                raise AccountNotFoundError(address)
            return copy.copy(account)

    # -------------------------------------------------------------------------
    # Contracts
    # -------------------------------------------------------------------------

    def deploy(self, contract, *constructor_args, salt: bytes | None = None) -> str:
        """Register a contract and run its constructor. Returns the contract id."""
        with self._lock:
            if salt is None:
                salt = f"{type(contract).__name__}:{len(self._contracts)}".encode()
            contract_id = contract_address(salt)
            if contract_id in self._contracts:
                raise InvalidArgumentError(f"contract {contract_id} already deployed")
            self._contracts[contract_id] = contract
            constructor = getattr(contract, "__constructor__", None)
            if constructor is not None:
                env = Env(
                    self,
                    self._state,
                    contract_id,
                    "__constructor__",
                    constructor_args,
                    caller=None,
                    auth=_AuthContext(_AuthMode.RECORDING),
                    touched=set(),
                    ledger_sequence=self._latest,
                )
                constructor(env, *constructor_args)
            log.info("contract_deployed", contract_id=contract_id, kind=type(contract).__name__)
            return contract_id

    def _call(
        self,
        state: _State,
        contract_id: str,
        function: str,
        args: tuple,
        caller: str | None,
        auth: _AuthContext,
        touched: set[str],
        ledger_sequence: int,
    ):
        contract = self._contracts.get(contract_id)
        if contract is None:
            raise InvalidArgumentError(f"no contract deployed at {contract_id}")
        if function not in getattr(contract, "EXPORTS", ()):
            raise InvalidArgumentError(f"contract {contract_id} has no function {function!r}")
        method = getattr(contract, function)
        try:
            inspect.signature(method).bind(None, *args)
        except TypeError as e:
            raise InvalidArgumentError(f"bad arguments for {function}: {e}") from e
        env = Env(self, state, contract_id, function, tuple(args), caller, auth, touched, ledger_sequence)
        return method(env, *args)

    # -------------------------------------------------------------------------
    # Simulate / send / read
    # -------------------------------------------------------------------------

    def simulate(self, tx: Transaction) -> SimulationResult:
        """
        Run a transaction in recording mode against a throwaway copy of state.

        Raises:
            SimulationError: if the source cannot pay or the invocation fails
        """
        with self._lock:
            account = self._state.accounts.get(tx.source)
            if account is None:
                raise SimulationError(f"source account {tx.source} does not exist")
            if account.balance < self.base_fee:
                raise SimulationError(f"source account {tx.source} cannot pay the base fee")

            working = copy.deepcopy(self._state)
            auth = _AuthContext(_AuthMode.RECORDING)
            touched: set[str] = set()
            invocation = tx.invocation
            try:
                result = self._call(
                    working,
                    invocation.contract_id,
                    invocation.function,
                    invocation.args,
                    caller=None,
                    auth=auth,
                    touched=touched,
                    ledger_sequence=self._latest + 1,
                )
            except AetherGridError as e:
                log.info("simulation_failed", function=invocation.function, error=str(e))
                raise SimulationError(f"Simulation failed: {e}", cause=e) from e

            stubs = tuple(
                AuthorizationEntry(address=address, nonce=secrets.randbits(63), invocation=inv)
                for address, inv in auth.recorded
            )
            log.debug(
                "simulated",
                function=invocation.function,
                auth_entries=len(stubs),
                footprint=len(touched),
            )
            return SimulationResult(
                result=copy.deepcopy(result),
                auth=stubs,
                footprint=frozenset(touched),
                min_fee=self.base_fee + FEE_PER_FOOTPRINT_ENTRY * len(touched),
                latest_ledger=self._latest,
            )

    def send(self, tx: Transaction) -> TransactionResponse:
        """
        Apply a signed transaction atomically and close a ledger.

        Never raises for a rejected transaction; the response says FAILED and
        state is untouched.
        """
        with self._lock:
            tx_hash = tx.hash(self.network_passphrase)
            function = tx.invocation.function

            def failed(kind: FailureKind, message: str, code: int | None = None):
                log.warning(
                    "transaction_failed",
                    hash=tx_hash,
                    function=function,
                    kind=kind.value,
                    code=code,
                    error=message,
                )
                return TransactionResponse(
                    status=TransactionStatus.FAILED,
                    hash=tx_hash,
                    error=message,
                    error_kind=kind,
                    error_code=code,
                )

            account = self._state.accounts.get(tx.source)
            if account is None:
                return failed(FailureKind.ENVELOPE, f"source account {tx.source} does not exist")
            if tx.signature is None or not verify_signature(
                tx.source, tx.hash_bytes(self.network_passphrase), tx.signature
            ):
                return failed(FailureKind.ENVELOPE, "missing or invalid envelope signature")
            if tx.sequence != account.sequence + 1:
                return failed(
                    FailureKind.ENVELOPE,
                    f"bad sequence {tx.sequence}, expected {account.sequence + 1}",
                )
            if tx.fee < self.base_fee or account.balance < tx.fee:
                return failed(FailureKind.ENVELOPE, "insufficient fee")

            working = copy.deepcopy(self._state)
            sequence = self._latest + 1
            auth = _AuthContext(
                _AuthMode.ENFORCING,
                entries=tx.auth,
                network_passphrase=self.network_passphrase,
                ledger_sequence=sequence,
                used_nonces=working.nonces,
            )
            touched: set[str] = set()
            try:
                result = self._call(
                    working,
                    tx.invocation.contract_id,
                    function,
                    tx.invocation.args,
                    caller=None,
                    auth=auth,
                    touched=touched,
                    ledger_sequence=sequence,
                )
            except AetherGridError as e:
                kind, code = classify_failure(e)
                return failed(kind, str(e), code)

            outside = touched - tx.footprint
            if outside:
                return failed(
                    FailureKind.FOOTPRINT,
                    f"storage outside declared footprint: {', '.join(sorted(outside))}",
                )

            payer = working.accounts[tx.source]
            payer.sequence += 1
            payer.balance -= tx.fee

            self._state = working
            self._latest = sequence
            log.info("transaction_applied", hash=tx_hash, function=function, ledger=sequence)
            return TransactionResponse(
                status=TransactionStatus.SUCCESS,
                hash=tx_hash,
                ledger=sequence,
                result=copy.deepcopy(result),
            )

    def read(self, contract_id: str, function: str, *args) -> Any:
        """
        Call a read-only function. Contract errors propagate to the caller.
        """
        with self._lock:
            working = copy.deepcopy(self._state)
            result = self._call(
                working,
                contract_id,
                function,
                args,
                caller=None,
                auth=_AuthContext(_AuthMode.READ_ONLY),
                touched=set(),
                ledger_sequence=self._latest,
            )
            return copy.deepcopy(result)
