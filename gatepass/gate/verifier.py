import asyncio
from datetime import datetime, timezone

from pydantic import BaseModel

from gatepass import constants as gcst
from gatepass.ledger.base import AdmissionLedger
from gatepass.ledger.models import AdmissionAttempt, Outcome, TicketState, TicketTier
from gatepass.logging_utils import get_logger
from gatepass.security.clock import ClockGuard
from gatepass.security.proofs import operations
from gatepass.security.proofs.errors import (
    InvalidProofError,
    TicketAlreadyUsedError,
    TicketDecisionError,
    TicketVoidError,
    VerificationUnavailableError,
)
from gatepass.security.secret_store import SecretStore

logger = get_logger(__name__)

# Longest presented proof and ticket id kept in the audit trail
MAX_RECORDED_PROOF_LENGTH = 64
MAX_RECORDED_TICKET_ID_LENGTH = 64


class VerificationResult(BaseModel):
    outcome: Outcome
    ticket_id: str
    tier: TicketTier | None = None
    holder_display_name: str | None = None
    admitted_at: datetime | None = None
    admitted_by: str | None = None

    @property
    def admitted(self) -> bool:
        return self.outcome == Outcome.ADMIT


class ProofVerifier:
    """
    The gate-side decision point.

    Decides ADMIT / ALREADY-USED / VOID / INVALID for a presented proof and makes
    admission happen at most once per ticket, however many scanners present copies
    of the same code at the same time.

    Attributes:
        ledger (AdmissionLedger): Authoritative ticket state and audit trail.
        secret_store (SecretStore): Source of the per-ticket secret.
        clock_guard (ClockGuard): Server clock and the tolerated window range.
        digits (int): Proof length.
    """

    def __init__(
        self,
        ledger: AdmissionLedger,
        secret_store: SecretStore,
        clock_guard: ClockGuard | None = None,
        digits: int = gcst.PROOF_DIGITS,
    ) -> None:
        self.ledger = ledger
        self.secret_store = secret_store
        self.clock_guard = clock_guard or ClockGuard()
        self.digits = digits

    def verify(self, ticket_id: str, presented_proof: str, scanner_id: str, now: float | None = None) -> VerificationResult:
        """
        Verifies a scanned proof and admits the ticket if it is valid.

        Every decision, including every rejection, is appended to the ledger's audit
        trail before this returns.

        Args:
            ticket_id (str): Ticket id read from the scanned code.
            presented_proof (str): Proof read from the scanned code.
            scanner_id (str): The scanner submitting the attempt.
            now (float | None): Verifier time, defaults to the clock guard's clock.

        Returns:
            VerificationResult: The decision.

        Raises:
            VerificationUnavailableError: If the ledger or secret store failed. No
            decision was made and none may be assumed.
        """
        now = self.clock_guard.now() if now is None else now
        current_window = self.clock_guard.current_window(now)
        attempt_at = datetime.fromtimestamp(now, tz=timezone.utc)

        try:
            result = self._admit(ticket_id, presented_proof, scanner_id, now, current_window, attempt_at)
        except TicketDecisionError as e:
            result = self._rejection(e)
            self._record_rejection(ticket_id, presented_proof, scanner_id, result.outcome, current_window, attempt_at)
            logger.warning(f"Rejected ticket {ticket_id} at scanner {scanner_id}: {result.outcome.value}")
            return result

        logger.info(f"Admitted ticket {ticket_id} ({result.tier.value}) at scanner {scanner_id}")
        return result

    def reject_unreadable(self, raw_payload: str, scanner_id: str, now: float | None = None) -> VerificationResult:
        """
        Records a scanned code that could not be read as a ticket payload.

        There is no ticket id to file the attempt under, so the raw payload stands in
        for it. The decision is always `invalid_proof`.
        """
        now = self.clock_guard.now() if now is None else now
        ticket_id = raw_payload[:MAX_RECORDED_TICKET_ID_LENGTH]
        self._record_rejection(
            ticket_id,
            raw_payload,
            scanner_id,
            Outcome.INVALID_PROOF,
            self.clock_guard.current_window(now),
            datetime.fromtimestamp(now, tz=timezone.utc),
        )
        logger.warning(f"Rejected unreadable code at scanner {scanner_id}")
        return VerificationResult(outcome=Outcome.INVALID_PROOF, ticket_id=ticket_id)

    def _admit(
        self,
        ticket_id: str,
        presented_proof: str,
        scanner_id: str,
        now: float,
        current_window: int,
        attempt_at: datetime,
    ) -> VerificationResult:
        ticket = self.ledger.get_ticket(ticket_id)

        if ticket.state == TicketState.USED:
            raise TicketAlreadyUsedError(ticket_id, ticket.admitted_at, ticket.admitted_by)
        if ticket.state == TicketState.VOID:
            raise TicketVoidError(ticket_id)

        secret = self.secret_store.fetch_for_verification(ticket_id)
        expected_proofs = [
            operations.derive_proof(secret, index, self.digits) for index in self.clock_guard.acceptable_windows(now)
        ]
        if not operations.matches_any(expected_proofs, presented_proof):
            raise InvalidProofError(ticket_id)

        admitted = self.ledger.compare_and_set_state(
            ticket_id,
            expected=TicketState.VALID,
            new=TicketState.USED,
            admitted_at=attempt_at,
            admitted_by=scanner_id,
            attempt=AdmissionAttempt(
                ticket_id=ticket_id,
                presented_proof=presented_proof[:MAX_RECORDED_PROOF_LENGTH],
                window_index=current_window,
                outcome=Outcome.ADMIT,
                scanner_id=scanner_id,
                timestamp=attempt_at,
            ),
        )
        if not admitted:
            # Lost the race to a concurrent scan of the same code
            winner = self.ledger.get_ticket(ticket_id)
            raise TicketAlreadyUsedError(ticket_id, winner.admitted_at, winner.admitted_by)

        return VerificationResult(
            outcome=Outcome.ADMIT,
            ticket_id=ticket_id,
            tier=ticket.tier,
            holder_display_name=ticket.holder_display_name,
            admitted_at=attempt_at,
            admitted_by=scanner_id,
        )

    def _record_rejection(
        self,
        ticket_id: str,
        presented_proof: str,
        scanner_id: str,
        outcome: Outcome,
        window: int,
        attempt_at: datetime,
    ) -> None:
        self.ledger.append_attempt(
            AdmissionAttempt(
                ticket_id=ticket_id[:MAX_RECORDED_TICKET_ID_LENGTH],
                presented_proof=presented_proof[:MAX_RECORDED_PROOF_LENGTH],
                window_index=window,
                outcome=outcome,
                scanner_id=scanner_id,
                timestamp=attempt_at,
            )
        )

    def _rejection(self, error: TicketDecisionError) -> VerificationResult:
        if isinstance(error, TicketAlreadyUsedError):
            return VerificationResult(
                outcome=error.outcome,
                ticket_id=error.ticket_id,
                admitted_at=error.admitted_at,
                admitted_by=error.admitted_by,
            )
        return VerificationResult(outcome=error.outcome, ticket_id=error.ticket_id)


async def verify_with_timeout(
    verifier: ProofVerifier,
    ticket_id: str,
    presented_proof: str,
    scanner_id: str,
    timeout: float = gcst.VERIFICATION_TIMEOUT_SECONDS,
) -> VerificationResult:
    """
    Runs a verification in a worker thread, bounded by `timeout`.

    Raises:
        VerificationUnavailableError: On timeout. The verification may still complete
        in the background; the caller must not assume either outcome.
    """
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(verifier.verify, ticket_id, presented_proof, scanner_id),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.error(f"Verification of ticket {ticket_id} timed out after {timeout}s")
        raise VerificationUnavailableError(f"Verification timed out after {timeout}s")
