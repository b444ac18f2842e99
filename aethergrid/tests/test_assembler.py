"""
Tests for the session authorization assembler.

Tests:
- End-to-end Steps A to C
- Artifact contents and verification
- Self-play, expiry and contract checks before any signing
- Splice invariant: a discarding re-simulation cannot be broadcast
"""

import base64
from dataclasses import replace

import pytest

from ..commitment import NullifierScheme, commit, derive_nullifier
from ..config import ProtocolConfig
from ..errors import (
    ArtifactError,
    AuthorizationError,
    AuthorizationExpiredError,
    ProtocolError,
    SelfPlayError,
    SimulationError,
    StepOrderError,
    TransactionFailedError,
)
from ..ledger import FailureKind, SignedAuthorizationSet, TransactionStatus
from ..session import (
    SessionAuthorizationAssembler,
    encode_artifact,
    inspect_artifact,
    parse_artifact,
    required_signers,
    verify_artifact,
)
from .conftest import PASSPHRASE, STARTING_POINTS


@pytest.fixture
def prepared(assembler, staked, alice, relay):
    """Step A for session 42 at (3, 5)."""
    return assembler.prepare(alice, 42, 100, x=3, y=5, nullifier=42, placeholder=relay.address)


@pytest.fixture
def cosigned(assembler, prepared, bob):
    """Step B by bob."""
    return assembler.import_and_cosign(prepared.artifact, bob, 100, x=3, y=5, nullifier=42)


class TestEndToEnd:
    """The three steps produce one jointly authorized session."""

    def test_session_42(self, assembler, client, prepared, bob, alice):
        treasure_hash = commit(3, 5, 42)

        preview = parse_artifact(prepared.artifact)
        assert preview.session_id == 42
        assert preview.initiator == alice.address
        assert preview.initiator_points == 100

        cosigned = assembler.import_and_cosign(prepared.artifact, bob, 100, x=3, y=5, nullifier=42)
        assert required_signers(cosigned.transaction) == ()
        assert set(cosigned.signed.addresses) == {alice.address, bob.address}

        finalized = assembler.finalize(cosigned, bob)
        assert finalized.session_id == 42

        game = client.get_game(42)
        assert game.player1 == alice.address
        assert game.player2 == bob.address
        assert game.treasure_hash == bytes(treasure_hash)
        assert not game.resolved
        assert game.player1_energy is None and game.player2_energy is None

    def test_stakes_move_to_hub(self, client, deployment, cosigned, assembler, alice, bob):
        assembler.finalize(cosigned, bob)
        for player in (alice, bob):
            points = client.read("points", player.address, contract_id=deployment.hub_id)
            assert points == STARTING_POINTS - 100

    def test_initiator_entry_spliced_verbatim(self, prepared, cosigned, alice):
        """The imported entry is carried unchanged, nonce and signature included."""
        imported = parse_artifact(prepared.artifact).entry
        spliced = [e for e in cosigned.transaction.auth if e.address == alice.address]
        assert spliced == [imported]


class TestPrepare:
    """Step A."""

    def test_artifact_hides_commitment(self, prepared):
        """The artifact carries no treasure hash."""
        decoded = base64.urlsafe_b64decode(prepared.artifact.encode())
        assert commit(3, 5, 42).hex().encode() not in decoded

    def test_artifact_verifies(self, ledger, prepared):
        preview = parse_artifact(prepared.artifact)
        verify_artifact(preview, PASSPHRASE, ledger.latest_ledger())

    def test_expiration_from_ttl(self, ledger, prepared):
        """60 minutes of 5-second ledgers."""
        assert prepared.expiration_ledger == ledger.latest_ledger() + 720

    def test_placeholder_must_differ(self, assembler, staked, alice):
        with pytest.raises(ProtocolError):
            assembler.prepare(alice, 42, 100, x=3, y=5, nullifier=42, placeholder=alice.address)

    def test_insufficient_points(self, assembler, staked, alice, relay):
        with pytest.raises(SimulationError):
            assembler.prepare(alice, 42, STARTING_POINTS + 1, x=3, y=5, nullifier=42, placeholder=relay.address)

    def test_out_of_field_coordinates(self, assembler, staked, alice, relay):
        with pytest.raises(ValueError):
            assembler.prepare(alice, 42, 100, x=-3, y=5, nullifier=42, placeholder=relay.address)


class TestImportAndCosign:
    """Step B."""

    def test_self_play_rejected_before_signing(self, ledger, assembler, client, prepared, alice):
        latest = ledger.latest_ledger()
        with pytest.raises(SelfPlayError):
            assembler.import_and_cosign(prepared.artifact, alice, 100, x=3, y=5, nullifier=42)
        assert ledger.latest_ledger() == latest
        assert client.find_game(42) is None

    def test_expired_artifact(self, ledger, assembler, staked, alice, bob, relay):
        """Past its expiration ledger the initiator must prepare again."""
        prepared = assembler.prepare(
            alice, 42, 100, x=3, y=5, nullifier=42, placeholder=relay.address, ttl_minutes=1
        )
        ledger.close_ledgers(prepared.expiration_ledger - ledger.latest_ledger())

        with pytest.raises(AuthorizationExpiredError):
            assembler.import_and_cosign(prepared.artifact, bob, 100, x=3, y=5, nullifier=42)

    def test_garbage_artifact(self, assembler, bob):
        with pytest.raises(ArtifactError):
            assembler.import_and_cosign("not-an-artifact", bob, 100, x=3, y=5, nullifier=42)

    def test_wrong_contract(self, ledger, deployment, prepared, bob):
        other = SessionAuthorizationAssembler(ledger, deployment.hub_id)
        with pytest.raises(ArtifactError):
            other.import_and_cosign(prepared.artifact, bob, 100, x=3, y=5, nullifier=42)

    def test_wrong_network(self, ledger, prepared):
        preview = parse_artifact(prepared.artifact)
        with pytest.raises(ArtifactError):
            verify_artifact(preview, "Some Other Network", ledger.latest_ledger())

    def test_responder_stake_not_covered(self, assembler, prepared, bob):
        with pytest.raises(SimulationError):
            assembler.import_and_cosign(prepared.artifact, bob, STARTING_POINTS + 1, x=3, y=5, nullifier=42)

    def test_tampered_stake_rejected(self, assembler, prepared, bob):
        """Changing the authorized stake invalidates the initiator's signature."""
        forged = parse_artifact(prepared.artifact).entry
        tampered = replace(forged, invocation=replace(forged.invocation, args=(42, 1)))

        with pytest.raises(ArtifactError):
            assembler.import_and_cosign(encode_artifact(tampered, PASSPHRASE), bob, 100, x=3, y=5, nullifier=42)


class TestFinalize:
    """Step C and the splice invariant."""

    def test_unguarded_resimulation_fails_broadcast(self, ledger, client, cosigned, bob):
        """Fresh stubs replace the signed entries and the ledger refuses them."""
        tx = cosigned.transaction
        unguarded = tx.assemble(ledger.simulate(tx))

        response = ledger.send(bob.sign_envelope(unguarded))

        assert response.status == TransactionStatus.FAILED
        assert response.error_kind == FailureKind.AUTHORIZATION
        with pytest.raises(AuthorizationError):
            response.raise_for_status()
        assert client.find_game(42) is None

    def test_finalize_refuses_unsigned_entries(self, ledger, assembler, cosigned, bob):
        tx = cosigned.transaction
        unguarded = replace(cosigned, transaction=tx.assemble(ledger.simulate(tx)))
        with pytest.raises(AuthorizationError):
            assembler.finalize(unguarded, bob)

    def test_refresh_footprint_keeps_signatures(self, assembler, client, cosigned, bob):
        refreshed = assembler.refresh_footprint(cosigned)
        assert required_signers(refreshed.transaction) == ()
        assembler.finalize(refreshed, bob)
        assert client.get_game(42).player2 == bob.address

    def test_only_source_signs_envelope(self, assembler, cosigned, alice):
        with pytest.raises(ProtocolError):
            assembler.finalize(cosigned, alice)

    def test_finalize_needs_cosigned_set(self, assembler, cosigned, bob):
        bare = replace(cosigned, signed=SignedAuthorizationSet())
        with pytest.raises(StepOrderError):
            assembler.finalize(bare, bob)

    def test_second_broadcast_fails(self, assembler, client, cosigned, bob):
        """Broadcasting the same session twice creates nothing new."""
        assembler.finalize(cosigned, bob)
        with pytest.raises(TransactionFailedError):
            assembler.finalize(cosigned, bob)
        assert client.get_game(42).player1_energy is None


class TestInspect:
    """Read-only artifact previews."""

    def test_preview(self, ledger, prepared, alice):
        preview = inspect_artifact(prepared.artifact, PASSPHRASE, ledger.latest_ledger())
        assert preview["session_id"] == 42
        assert preview["initiator"] == alice.address
        assert preview["signature_valid"] is True
        assert preview["expired"] is False

    def test_preview_reports_expiry(self, ledger, prepared):
        ledger.close_ledgers(prepared.expiration_ledger)
        preview = inspect_artifact(prepared.artifact, PASSPHRASE, ledger.latest_ledger())
        assert preview["expired"] is True

    def test_preview_without_network(self, prepared):
        preview = inspect_artifact(prepared.artifact)
        assert "signature_valid" not in preview


class TestSessionNullifier:
    """The configured scheme decides the nullifier both players use."""

    def test_default_binds_players(self, assembler, alice, bob):
        assert assembler.session_nullifier(42, alice.address, bob.address) == derive_nullifier(
            42, alice.address, bob.address
        )

    def test_session_id_scheme(self, ledger, deployment, alice, bob):
        config = ProtocolConfig(nullifier_scheme=NullifierScheme.SESSION_ID)
        assembler = SessionAuthorizationAssembler(ledger, deployment.game_id, config=config)
        assert assembler.session_nullifier(42, alice.address, bob.address) == 42

    def test_session_with_bound_nullifier(self, assembler, client, staked, alice, bob, relay):
        nullifier = assembler.session_nullifier(7, alice.address, bob.address)
        prepared = assembler.prepare(alice, 7, 100, x=3, y=5, nullifier=nullifier, placeholder=relay.address)
        cosigned = assembler.import_and_cosign(prepared.artifact, bob, 100, x=3, y=5, nullifier=nullifier)
        assembler.finalize(cosigned, bob)

        assert client.get_treasure_hash(7) == bytes(commit(3, 5, nullifier))
