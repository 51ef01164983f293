"""
Admission ledger boundary.

The ledger is the single authoritative owner of ticket state. It needs three
primitives from its store: a point read, a conditional compare-and-set write,
and an append-only write.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from gatepass.ledger.models import AdmissionAttempt, Ticket, TicketState


class AdmissionLedger(ABC):
    @abstractmethod
    def insert_ticket(self, ticket: Ticket) -> None:
        """
        Inserts a new ticket row.

        Raises:
            TicketAlreadyExistsError: If a row with the same ticket id exists.
        """

    @abstractmethod
    def get_ticket(self, ticket_id: str) -> Ticket:
        """
        Point lookup of a ticket.

        Raises:
            TicketNotFoundError: If the ticket id is unknown.
        """

    @abstractmethod
    def compare_and_set_state(
        self,
        ticket_id: str,
        expected: TicketState,
        new: TicketState,
        admitted_at: datetime | None = None,
        admitted_by: str | None = None,
        attempt: AdmissionAttempt | None = None,
    ) -> bool:
        """
        Atomically moves a ticket from `expected` to `new`.

        `admitted_at`/`admitted_by` and `attempt` are written in the same atomic
        operation as the state change, and only if it succeeds.

        Returns:
            bool: True if this call performed the transition, False if the ticket was
            no longer in `expected` state.

        Raises:
            TicketNotFoundError: If the ticket id is unknown.
            IllegalStateTransitionError: If `expected -> new` is never allowed.
        """

    @abstractmethod
    def append_attempt(self, attempt: AdmissionAttempt) -> None:
        """Appends an audit record. Records are never updated or deleted."""

    @abstractmethod
    def list_attempts(self, ticket_id: str) -> list[AdmissionAttempt]:
        """Returns the audit trail for a ticket, oldest first."""
