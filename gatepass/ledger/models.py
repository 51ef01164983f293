import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TicketTier(str, Enum):
    GENERAL = "general"
    PREMIUM = "premium"
    VIP = "vip"


class TicketState(str, Enum):
    VALID = "valid"
    USED = "used"
    VOID = "void"


# valid -> used is the only non-void transition, void is terminal
LEGAL_TRANSITIONS: dict[TicketState, frozenset[TicketState]] = {
    TicketState.VALID: frozenset({TicketState.USED, TicketState.VOID}),
    TicketState.USED: frozenset({TicketState.VOID}),
    TicketState.VOID: frozenset(),
}


def is_legal_transition(current: TicketState, new: TicketState) -> bool:
    return new in LEGAL_TRANSITIONS[current]


class Outcome(str, Enum):
    ADMIT = "admit"
    NOT_FOUND = "not_found"
    ALREADY_USED = "already_used"
    VOID = "void"
    INVALID_PROOF = "invalid_proof"


class Ticket(BaseModel):
    """
    A ticket row in the admission ledger.

    Attributes:
        ticket_id (str): Globally unique, immutable identifier.
        event_id (str): The event this ticket admits to.
        tier (TicketTier): Closed tier enumeration, fixed at issuance.
        owner_id (str): Identity allowed to fetch the secret for display.
        holder_display_name (str): Name shown to the gate on admission.
        sealed_secret (bytes): The per-ticket secret, encrypted at rest.
        state (TicketState): valid, used or void.
        issued_at (datetime): When the ticket was provisioned.
        admitted_at (datetime | None): Set once, on valid -> used.
        admitted_by (str | None): Scanner that admitted the ticket.
    """

    model_config = ConfigDict(frozen=True)

    ticket_id: str
    event_id: str
    tier: TicketTier
    owner_id: str
    holder_display_name: str = ""
    sealed_secret: bytes = Field(repr=False)
    state: TicketState = TicketState.VALID
    issued_at: datetime = Field(default_factory=utcnow)
    admitted_at: datetime | None = None
    admitted_by: str | None = None


class AdmissionAttempt(BaseModel):
    """Append-only audit record, one per admission decision."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    attempt_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    ticket_id: str
    presented_proof: str
    window_index: int
    outcome: Outcome
    scanner_id: str
    timestamp: datetime = Field(default_factory=utcnow)


def new_ticket_id() -> str:
    return f"TKT-{uuid.uuid4().hex.upper()}"
