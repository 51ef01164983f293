from datetime import datetime, timezone

import pytest

from gatepass.ledger.models import AdmissionAttempt, Outcome, Ticket, TicketState, TicketTier
from gatepass.security.proofs.errors import (
    IllegalStateTransitionError,
    TicketAlreadyExistsError,
    TicketNotFoundError,
)

ADMITTED_AT = datetime(2025, 2, 15, 14, 3, 2, tzinfo=timezone.utc)


def _ticket(ticket_id: str = "TKT-1") -> Ticket:
    return Ticket(
        ticket_id=ticket_id,
        event_id="EVT-1",
        tier=TicketTier.VIP,
        owner_id="alice",
        holder_display_name="Alice",
        sealed_secret=b"sealed",
    )


def _attempt(ticket_id: str = "TKT-1", outcome: Outcome = Outcome.ADMIT) -> AdmissionAttempt:
    return AdmissionAttempt(
        ticket_id=ticket_id,
        presented_proof="12345678",
        window_index=100,
        outcome=outcome,
        scanner_id="gate-2",
    )


def test_insert_and_get(ledger):
    ledger.insert_ticket(_ticket())
    ticket = ledger.get_ticket("TKT-1")
    assert ticket.tier == TicketTier.VIP
    assert ticket.state == TicketState.VALID
    assert ticket.sealed_secret == b"sealed"
    assert ticket.issued_at.tzinfo is not None


def test_one_row_per_ticket_id(ledger):
    ledger.insert_ticket(_ticket())
    with pytest.raises(TicketAlreadyExistsError):
        ledger.insert_ticket(_ticket())


def test_get_unknown_ticket(ledger):
    with pytest.raises(TicketNotFoundError):
        ledger.get_ticket("TKT-404")


def test_compare_and_set_admits_once(ledger):
    ledger.insert_ticket(_ticket())

    assert ledger.compare_and_set_state(
        "TKT-1", TicketState.VALID, TicketState.USED, admitted_at=ADMITTED_AT, admitted_by="gate-2", attempt=_attempt()
    )
    assert not ledger.compare_and_set_state(
        "TKT-1", TicketState.VALID, TicketState.USED, admitted_at=ADMITTED_AT, admitted_by="gate-3", attempt=_attempt()
    )

    ticket = ledger.get_ticket("TKT-1")
    assert ticket.state == TicketState.USED
    assert ticket.admitted_by == "gate-2"
    assert ticket.admitted_at == ADMITTED_AT
    # The losing call must not have written its attempt
    assert len(ledger.list_attempts("TKT-1")) == 1


def test_compare_and_set_unknown_ticket(ledger):
    with pytest.raises(TicketNotFoundError):
        ledger.compare_and_set_state("TKT-404", TicketState.VALID, TicketState.USED)


@pytest.mark.parametrize(
    "expected, new",
    [
        (TicketState.USED, TicketState.VALID),
        (TicketState.VOID, TicketState.VALID),
        (TicketState.VOID, TicketState.USED),
        (TicketState.VALID, TicketState.VALID),
    ],
)
def test_illegal_transitions_are_refused(ledger, expected, new):
    ledger.insert_ticket(_ticket())
    with pytest.raises(IllegalStateTransitionError):
        ledger.compare_and_set_state("TKT-1", expected, new)


def test_void_after_use_keeps_admission_details(ledger):
    ledger.insert_ticket(_ticket())
    ledger.compare_and_set_state("TKT-1", TicketState.VALID, TicketState.USED, admitted_at=ADMITTED_AT, admitted_by="gate-2")
    assert ledger.compare_and_set_state("TKT-1", TicketState.USED, TicketState.VOID)

    ticket = ledger.get_ticket("TKT-1")
    assert ticket.state == TicketState.VOID
    assert ticket.admitted_by == "gate-2"


def test_attempts_are_appended_in_order_per_ticket(ledger):
    ledger.append_attempt(_attempt("TKT-1", Outcome.INVALID_PROOF))
    ledger.append_attempt(_attempt("TKT-2", Outcome.NOT_FOUND))
    ledger.append_attempt(_attempt("TKT-1", Outcome.ALREADY_USED))

    outcomes = [attempt.outcome for attempt in ledger.list_attempts("TKT-1")]
    assert outcomes == [Outcome.INVALID_PROOF, Outcome.ALREADY_USED]
    assert ledger.list_attempts("TKT-3") == []
