"""
Configuration - Environment-driven settings.

Every value can be overridden with an environment variable so the same code
runs against a local ledger in tests and a remote ledger node in development.
"""

from __future__ import annotations
from dataclasses import dataclass
import os

from .commitment.codec import NullifierScheme

# Environment configuration
AETHERGRID_ENV = os.getenv("AETHERGRID_ENV", "development")
AETHERGRID_CACHE_DIR = os.getenv("AETHERGRID_CACHE_DIR", None)
AETHERGRID_NETWORK_PASSPHRASE = os.getenv(
    "AETHERGRID_NETWORK_PASSPHRASE", "AetherGrid Local Network ; 2026"
)
AETHERGRID_LEDGER_URL = os.getenv("AETHERGRID_LEDGER_URL", "http://localhost:8000")
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")

# Authorization windows, in minutes
MULTI_SIG_AUTH_TTL_MINUTES = 60
DEFAULT_AUTH_TTL_MINUTES = 5

# 5-second ledger close
LEDGER_CLOSE_SECONDS = 5


@dataclass(frozen=True)
class ProtocolConfig:
    """
    Tunables for the session protocol.

    The proof transcript mode is not here: it is the fixed
    prover.backend.TRANSCRIPT_MODE shared with the verifier.
    """
    network_passphrase: str = AETHERGRID_NETWORK_PASSPHRASE
    multi_sig_auth_ttl_minutes: int = MULTI_SIG_AUTH_TTL_MINUTES
    auth_ttl_minutes: int = DEFAULT_AUTH_TTL_MINUTES
    ledger_close_seconds: int = LEDGER_CLOSE_SECONDS
    poll_interval_seconds: float = 5.0
    max_wait_seconds: float = 300.0
    transport_retry_ceiling: int = 3
    nullifier_scheme: NullifierScheme = NullifierScheme.SESSION_BINDING
    base_fee: int = 100

    @classmethod
    def from_env(cls) -> ProtocolConfig:
        """Build a config from AETHERGRID_* environment variables."""
        return cls(
            network_passphrase=AETHERGRID_NETWORK_PASSPHRASE,
            multi_sig_auth_ttl_minutes=int(
                os.getenv("AETHERGRID_MULTI_SIG_AUTH_TTL_MINUTES", MULTI_SIG_AUTH_TTL_MINUTES)
            ),
            auth_ttl_minutes=int(
                os.getenv("AETHERGRID_AUTH_TTL_MINUTES", DEFAULT_AUTH_TTL_MINUTES)
            ),
            ledger_close_seconds=int(
                os.getenv("AETHERGRID_LEDGER_CLOSE_SECONDS", LEDGER_CLOSE_SECONDS)
            ),
            poll_interval_seconds=float(os.getenv("AETHERGRID_POLL_INTERVAL", 5.0)),
            max_wait_seconds=float(os.getenv("AETHERGRID_MAX_WAIT", 300.0)),
            transport_retry_ceiling=int(os.getenv("AETHERGRID_RETRY_CEILING", 3)),
            nullifier_scheme=NullifierScheme(
                os.getenv("AETHERGRID_NULLIFIER_SCHEME", NullifierScheme.SESSION_BINDING.value)
            ),
        )

    def ledgers_for_minutes(self, minutes: int) -> int:
        """Number of ledgers that close in the given number of minutes."""
        seconds = minutes * 60
        return -(-seconds // self.ledger_close_seconds)
