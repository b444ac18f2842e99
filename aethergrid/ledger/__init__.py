"""
Ledger Module - Accounts, authorization entries, transactions and a local
ledger that runs the game contracts.
"""

from .keys import Keypair, contract_address, is_address, is_account_address, verify_signature
from .auth import (
    Invocation,
    AuthorizationEntry,
    SignedAuthorizationSet,
    Signer,
    KeypairSigner,
    sign_entry,
)
from .transaction import Transaction, build_transaction
from .network import (
    Account,
    Env,
    FailureKind,
    InMemoryLedger,
    LedgerClient,
    SimulationResult,
    TransactionResponse,
    TransactionStatus,
)
from .hub import GameHub

__all__ = [
    "Keypair",
    "contract_address",
    "is_address",
    "is_account_address",
    "verify_signature",
    "Invocation",
    "AuthorizationEntry",
    "SignedAuthorizationSet",
    "Signer",
    "KeypairSigner",
    "sign_entry",
    "Transaction",
    "build_transaction",
    "Account",
    "Env",
    "FailureKind",
    "InMemoryLedger",
    "LedgerClient",
    "SimulationResult",
    "TransactionResponse",
    "TransactionStatus",
    "GameHub",
]
