from gatepass.ledger.base import AdmissionLedger
from gatepass.ledger.models import Ticket, TicketState
from gatepass.logging_utils import get_logger
from gatepass.security.proofs.errors import IllegalStateTransitionError

logger = get_logger(__name__)

MAX_VOID_ATTEMPTS = 3


def void_ticket(ledger: AdmissionLedger, ticket_id: str) -> Ticket:
    """
    Voids a ticket, whether or not it has already been admitted.

    Goes through the same compare-and-set as admission, so a void racing an
    admission either lands after it (used -> void) or beats it (valid -> void).

    Raises:
        TicketNotFoundError: If the ticket id is unknown.
        IllegalStateTransitionError: If the ticket is already void.
    """
    for _ in range(MAX_VOID_ATTEMPTS):
        ticket = ledger.get_ticket(ticket_id)
        if ticket.state == TicketState.VOID:
            raise IllegalStateTransitionError(ticket_id, ticket.state, TicketState.VOID)
        if ledger.compare_and_set_state(ticket_id, expected=ticket.state, new=TicketState.VOID):
            logger.info(f"Voided ticket {ticket_id} (was {ticket.state.value})")
            return ledger.get_ticket(ticket_id)

    raise IllegalStateTransitionError(ticket_id, ledger.get_ticket(ticket_id).state, TicketState.VOID)
