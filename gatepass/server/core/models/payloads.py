from datetime import datetime

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel

from gatepass.ledger.models import Outcome, TicketState, TicketTier
from gatepass.security.proofs.operations import decode_qr_payload


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ScanRequest(CamelModel):
    """
    A single scan submitted by a gate scanner.

    Either `ticket_id` + `presented_proof`, or the raw `qr_data` read off the holder's screen.
    """

    scanner_id: str
    ticket_id: str | None = None
    presented_proof: str | None = None
    qr_data: str | None = None

    @model_validator(mode="after")
    def _has_ticket_and_proof(self) -> "ScanRequest":
        if self.qr_data is None and (self.ticket_id is None or self.presented_proof is None):
            raise ValueError("Provide qrData, or both ticketId and presentedProof")
        return self

    def resolve(self) -> tuple[str, str]:
        """
        Returns (ticket_id, presented_proof).

        Raises:
            MalformedPayloadError: If qr_data is present but not a gatepass payload.
        """
        if self.qr_data is not None:
            return decode_qr_payload(self.qr_data)
        assert self.ticket_id is not None and self.presented_proof is not None
        return self.ticket_id, self.presented_proof


class ScanResponse(CamelModel):
    outcome: Outcome
    ticket_id: str | None = None
    tier: TicketTier | None = None
    holder_display_name: str | None = None
    admitted_at: datetime | None = None
    admitted_by: str | None = None
    message: str


class IssueTicketRequest(CamelModel):
    event_id: str
    tier: TicketTier
    owner_id: str
    holder_display_name: str = ""


class TicketResponse(CamelModel):
    ticket_id: str
    event_id: str
    tier: TicketTier
    state: TicketState
    admitted_at: datetime | None = None
    admitted_by: str | None = None


class SecretResponse(CamelModel):
    ticket_id: str
    secret: str
    window_seconds: int
    digits: int
