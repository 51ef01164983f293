import pytest

from gatepass.gate.tickets import void_ticket
from gatepass.ledger.models import TicketState
from gatepass.security.proofs.errors import IllegalStateTransitionError, TicketNotFoundError


def test_void_valid_ticket(ledger, provision):
    provision("T1")
    assert void_ticket(ledger, "T1").state == TicketState.VOID


def test_void_used_ticket(ledger, provision):
    provision("T1")
    ledger.compare_and_set_state("T1", TicketState.VALID, TicketState.USED, admitted_by="gate-1")
    ticket = void_ticket(ledger, "T1")
    assert ticket.state == TicketState.VOID
    assert ticket.admitted_by == "gate-1"


def test_void_is_terminal(ledger, provision):
    provision("T1")
    void_ticket(ledger, "T1")
    with pytest.raises(IllegalStateTransitionError):
        void_ticket(ledger, "T1")


def test_void_unknown(ledger):
    with pytest.raises(TicketNotFoundError):
        void_ticket(ledger, "T404")
