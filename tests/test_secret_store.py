import pytest
from cryptography.fernet import Fernet

from gatepass.ledger.models import TicketState, TicketTier
from gatepass.security.identity import Identity, StaticIdentityProvider
from gatepass.security.proofs.errors import (
    TicketAlreadyExistsError,
    TicketNotFoundError,
    UnauthorizedError,
    VerificationUnavailableError,
)
from gatepass.security.secret_store import SecretStore


def test_provision_persists_sealed_secret(secret_store, ledger, provision):
    secret = provision("TKT-1")

    assert len(secret) >= 16
    ticket = ledger.get_ticket("TKT-1")
    assert ticket.state == TicketState.VALID
    assert secret not in ticket.sealed_secret


def test_provision_twice_fails(provision):
    provision("TKT-1")
    with pytest.raises(TicketAlreadyExistsError):
        provision("TKT-1")


def test_fetch_for_display_owner(secret_store, provision):
    secret = provision("TKT-1", owner_id="alice")
    assert secret_store.fetch_for_display("TKT-1", Identity(user_id="alice")) == secret


def test_fetch_for_display_other_identity_fails_closed(secret_store, provision):
    provision("TKT-1", owner_id="alice")
    with pytest.raises(UnauthorizedError):
        secret_store.fetch_for_display("TKT-1", Identity(user_id="bob"))


def test_fetch_unknown_ticket(secret_store):
    with pytest.raises(TicketNotFoundError):
        secret_store.fetch_for_display("TKT-404", Identity(user_id="alice"))
    with pytest.raises(TicketNotFoundError):
        secret_store.fetch_for_verification("TKT-404")


def test_fetch_for_verification(secret_store, provision):
    secret = provision("TKT-1")
    assert secret_store.fetch_for_verification("TKT-1") == secret


def test_wrong_storage_key_is_unavailable(ledger, provision):
    provision("TKT-1")
    other_store = SecretStore(ledger, Fernet(Fernet.generate_key()))
    with pytest.raises(VerificationUnavailableError):
        other_store.fetch_for_verification("TKT-1")


def test_issue_generates_ticket_id(secret_store):
    ticket = secret_store.issue(event_id="EVT-1", tier=TicketTier.PREMIUM, owner_id="alice")
    assert ticket.ticket_id.startswith("TKT-")
    assert ticket.tier == TicketTier.PREMIUM
    assert ticket.owner_id == "alice"


def test_static_identity_provider():
    provider = StaticIdentityProvider({"token-a": "alice"})
    assert provider.resolve("token-a") == Identity(user_id="alice")
    with pytest.raises(UnauthorizedError):
        provider.resolve("token-b")
    with pytest.raises(UnauthorizedError):
        provider.resolve(None)
