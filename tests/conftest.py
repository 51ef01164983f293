import pytest
from cryptography.fernet import Fernet

from gatepass.gate.verifier import ProofVerifier
from gatepass.ledger.memory import InMemoryLedger
from gatepass.ledger.models import TicketTier
from gatepass.ledger.sql import SqlLedger
from gatepass.security.clock import ClockGuard
from gatepass.security.secret_store import SecretStore

WINDOW_SECONDS = 30


class FakeClock:
    def __init__(self, now: float) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def at_window(self, index: int, offset: float = 5.0) -> float:
        self.now = index * WINDOW_SECONDS + offset
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    clock = FakeClock(0.0)
    clock.at_window(100)
    return clock


@pytest.fixture
def fernet() -> Fernet:
    return Fernet(Fernet.generate_key())


@pytest.fixture(params=["memory", "sql"])
def ledger(request):
    if request.param == "memory":
        return InMemoryLedger()
    return SqlLedger.from_url("sqlite://")


@pytest.fixture
def secret_store(ledger, fernet) -> SecretStore:
    return SecretStore(ledger, fernet)


@pytest.fixture
def verifier(ledger, secret_store, clock) -> ProofVerifier:
    return ProofVerifier(ledger, secret_store, ClockGuard(window_seconds=WINDOW_SECONDS, clock=clock))


@pytest.fixture
def provision(secret_store):
    def _provision(ticket_id: str, tier: TicketTier = TicketTier.GENERAL, owner_id: str = "alice") -> bytes:
        return secret_store.provision(
            ticket_id,
            event_id="EVT-1",
            tier=tier,
            owner_id=owner_id,
            holder_display_name=owner_id.title(),
        )

    return _provision
