from cryptography.fernet import Fernet, InvalidToken

from gatepass.ledger.base import AdmissionLedger
from gatepass.ledger.models import Ticket, TicketTier, new_ticket_id
from gatepass.logging_utils import get_logger
from gatepass.security.identity import Identity
from gatepass.security.proofs import operations
from gatepass.security.proofs.errors import UnauthorizedError, VerificationUnavailableError

logger = get_logger(__name__)


class SecretStore:
    """
    Holds per-ticket secrets and hands them out to the two parties entitled to them:
    the ticket owner's device (for display) and the verifier.

    Secrets are sealed with Fernet before they reach the ledger.
    """

    def __init__(self, ledger: AdmissionLedger, fernet: Fernet) -> None:
        self.ledger = ledger
        self._fernet = fernet

    def provision(
        self,
        ticket_id: str,
        *,
        event_id: str,
        tier: TicketTier,
        owner_id: str,
        holder_display_name: str = "",
    ) -> bytes:
        """
        Generates and persists the secret for a newly purchased ticket.

        Args:
            ticket_id (str): The new ticket's id.
            event_id (str): The event the ticket admits to.
            tier (TicketTier): Ticket tier.
            owner_id (str): Identity of the purchaser.
            holder_display_name (str): Name shown at the gate.

        Returns:
            bytes: The plain secret, for the initial provisioning of the holder's device.

        Raises:
            TicketAlreadyExistsError: If the ticket id has already been provisioned.
        """
        secret = operations.generate_secret()
        ticket = Ticket(
            ticket_id=ticket_id,
            event_id=event_id,
            tier=tier,
            owner_id=owner_id,
            holder_display_name=holder_display_name,
            sealed_secret=self._fernet.encrypt(secret),
        )
        self.ledger.insert_ticket(ticket)
        logger.info(f"Provisioned ticket {ticket_id} ({tier.value}) for event {event_id}")
        return secret

    def issue(self, *, event_id: str, tier: TicketTier, owner_id: str, holder_display_name: str = "") -> Ticket:
        ticket_id = new_ticket_id()
        self.provision(
            ticket_id,
            event_id=event_id,
            tier=tier,
            owner_id=owner_id,
            holder_display_name=holder_display_name,
        )
        return self.ledger.get_ticket(ticket_id)

    def fetch_for_display(self, ticket_id: str, identity: Identity) -> bytes:
        ticket = self.ledger.get_ticket(ticket_id)
        if ticket.owner_id != identity.user_id:
            logger.warning(f"Identity {identity.user_id} asked for the secret of ticket {ticket_id} it does not own")
            raise UnauthorizedError(ticket_id, identity.user_id)
        return self._unseal(ticket)

    def fetch_for_verification(self, ticket_id: str) -> bytes:
        # Verifier only. Holder-facing routes go through fetch_for_display.
        return self._unseal(self.ledger.get_ticket(ticket_id))

    def _unseal(self, ticket: Ticket) -> bytes:
        try:
            return self._fernet.decrypt(ticket.sealed_secret)
        except InvalidToken:
            logger.error(f"Could not unseal the secret for ticket {ticket.ticket_id}, is STORAGE_ENCRYPTION_KEY right?")
            raise VerificationUnavailableError("Ticket secret could not be unsealed")
