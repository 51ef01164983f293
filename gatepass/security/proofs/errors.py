from datetime import datetime

from gatepass.ledger.models import Outcome, TicketState


class GatePassError(Exception):
    """Base class for gatepass exceptions."""
    pass


class TicketDecisionError(GatePassError):
    """A terminal verification failure. Carries the outcome recorded for the scan."""

    outcome: Outcome

    def __init__(self, ticket_id: str, message: str):
        self.ticket_id = ticket_id
        super().__init__(message)


class TicketNotFoundError(TicketDecisionError):
    """Raised when a ticket id is unknown to the ledger."""

    outcome = Outcome.NOT_FOUND

    def __init__(self, ticket_id: str):
        super().__init__(ticket_id, f"Ticket {ticket_id} not found.")


class TicketAlreadyUsedError(TicketDecisionError):
    """Raised when a ticket has already been admitted."""

    outcome = Outcome.ALREADY_USED

    def __init__(self, ticket_id: str, admitted_at: datetime | None = None, admitted_by: str | None = None):
        self.admitted_at = admitted_at
        self.admitted_by = admitted_by
        super().__init__(ticket_id, f"Ticket {ticket_id} has already been used.")


class TicketVoidError(TicketDecisionError):
    """Raised when a ticket has been voided."""

    outcome = Outcome.VOID

    def __init__(self, ticket_id: str):
        super().__init__(ticket_id, f"Ticket {ticket_id} is void.")


class InvalidProofError(TicketDecisionError):
    """Raised when a presented proof matches none of the acceptable windows."""

    outcome = Outcome.INVALID_PROOF

    def __init__(self, ticket_id: str):
        super().__init__(ticket_id, f"Invalid proof presented for ticket {ticket_id}.")


class TicketAlreadyExistsError(GatePassError):
    """Raised when provisioning a ticket id that already has a row."""

    def __init__(self, ticket_id: str):
        self.ticket_id = ticket_id
        super().__init__(f"Ticket {ticket_id} already exists.")


class IllegalStateTransitionError(GatePassError):
    def __init__(self, ticket_id: str, current: TicketState, new: TicketState):
        self.ticket_id = ticket_id
        self.current = current
        self.new = new
        super().__init__(f"Ticket {ticket_id} cannot move from {current.value} to {new.value}.")


class UnauthorizedError(GatePassError):
    """Raised when an identity asks for a secret it does not own."""

    def __init__(self, ticket_id: str | None, user_id: str | None):
        self.ticket_id = ticket_id
        self.user_id = user_id
        super().__init__(f"Identity {user_id} is not authorized for ticket {ticket_id}.")


class MalformedPayloadError(GatePassError):
    def __init__(self, message: str):
        super().__init__(message)


class VerificationUnavailableError(GatePassError):
    """Transient infrastructure failure. The only retryable error, no outcome may be assumed."""

    def __init__(self, message: str):
        super().__init__(message)
