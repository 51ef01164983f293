import threading
from datetime import datetime

from gatepass.ledger.base import AdmissionLedger
from gatepass.ledger.models import AdmissionAttempt, Ticket, TicketState, is_legal_transition
from gatepass.logging_utils import get_logger
from gatepass.security.proofs.errors import (
    IllegalStateTransitionError,
    TicketAlreadyExistsError,
    TicketNotFoundError,
)

logger = get_logger(__name__)


class InMemoryLedger(AdmissionLedger):
    """
    Process-local ledger. Linearizable because every read and write of ticket
    state happens under one lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tickets: dict[str, Ticket] = {}
        self._attempts: list[AdmissionAttempt] = []

    def insert_ticket(self, ticket: Ticket) -> None:
        with self._lock:
            if ticket.ticket_id in self._tickets:
                raise TicketAlreadyExistsError(ticket.ticket_id)
            self._tickets[ticket.ticket_id] = ticket

    def get_ticket(self, ticket_id: str) -> Ticket:
        with self._lock:
            ticket = self._tickets.get(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(ticket_id)
        return ticket

    def compare_and_set_state(
        self,
        ticket_id: str,
        expected: TicketState,
        new: TicketState,
        admitted_at: datetime | None = None,
        admitted_by: str | None = None,
        attempt: AdmissionAttempt | None = None,
    ) -> bool:
        if not is_legal_transition(expected, new):
            raise IllegalStateTransitionError(ticket_id, expected, new)

        with self._lock:
            ticket = self._tickets.get(ticket_id)
            if ticket is None:
                raise TicketNotFoundError(ticket_id)
            if ticket.state != expected:
                return False

            update: dict = {"state": new}
            if new == TicketState.USED:
                update["admitted_at"] = admitted_at
                update["admitted_by"] = admitted_by
            self._tickets[ticket_id] = ticket.model_copy(update=update)
            if attempt is not None:
                self._attempts.append(attempt)

        logger.debug(f"Ticket {ticket_id} moved {expected.value} -> {new.value}")
        return True

    def append_attempt(self, attempt: AdmissionAttempt) -> None:
        with self._lock:
            self._attempts.append(attempt)

    def list_attempts(self, ticket_id: str) -> list[AdmissionAttempt]:
        with self._lock:
            return [attempt for attempt in self._attempts if attempt.ticket_id == ticket_id]
