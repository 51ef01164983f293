import json
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from gatepass import constants as gcst
from gatepass.gate.verdicts import VERDICTS, ScanVerdict, describe_outcome
from gatepass.ledger.models import Outcome
from gatepass.logging_utils import get_logger
from gatepass.security import signatures
from gatepass.security.nonce_management import generate_nonce
from gatepass.security.proofs.errors import VerificationUnavailableError
from gatepass.server.core.models.payloads import ScanResponse

logger = get_logger(__name__)

# Server and scanner clocks may disagree by up to this much
RETRY_CLOCK_SLACK = timedelta(seconds=gcst.PROOF_WINDOW_SECONDS)


class ScannerResponse(ScanResponse):
    """A verifier response together with how this scanner obtained it."""

    scanner_id: str | None = None
    retried: bool = False
    first_sent_at: datetime | None = None

    @property
    def admitted_by_own_retry(self) -> bool:
        """
        True when the ticket was admitted by this scanner during this submission.

        A request that timed out server side can still have admitted the ticket, and the
        retry then sees that admission as already used.
        """
        if not self.retried or self.outcome != Outcome.ALREADY_USED:
            return False
        if self.scanner_id is None or self.admitted_by != self.scanner_id:
            return False
        if self.admitted_at is None or self.first_sent_at is None:
            return False
        admitted_at = self.admitted_at if self.admitted_at.tzinfo else self.admitted_at.replace(tzinfo=timezone.utc)
        return admitted_at >= self.first_sent_at - RETRY_CLOCK_SLACK


def signed_headers(scanner_id: str, scanner_key: bytes, body: bytes, headers: dict[str, Any] | None = None) -> dict[str, Any]:
    """
    Adds the scanner authentication headers for a request body.

    A fresh nonce is generated per call, so a retried request gets a new nonce too.
    """
    headers = dict(headers or {})
    nonce = generate_nonce()
    headers[gcst.SCANNER_ID_HEADER] = scanner_id
    headers[gcst.NONCE_HEADER] = nonce
    headers[gcst.SIGNATURE_HEADER] = signatures.sign_message(
        scanner_key, signatures.construct_signed_message(nonce, body)
    )
    return headers


async def _post_scan_once(
    httpx_client: httpx.AsyncClient,
    server_address: str,
    scanner_id: str,
    scanner_key: bytes,
    payload: dict[str, Any],
    timeout: float,
) -> ScanResponse:
    body = json.dumps(payload).encode()
    headers = signed_headers(scanner_id, scanner_key, body, {"content-type": "application/json"})
    try:
        response = await httpx_client.post(
            url=f"{server_address}/{gcst.SCAN_ENDPOINT}",
            content=body,
            headers=headers,
            timeout=timeout,
        )
    except (httpx.TimeoutException, httpx.TransportError) as e:
        logger.warning(f"Scan request failed to reach the verifier: {e}")
        raise VerificationUnavailableError(f"Verifier unreachable: {e}") from e

    if response.status_code == 503:
        raise VerificationUnavailableError(response.text)
    response.raise_for_status()
    return ScanResponse.model_validate(response.json())


async def submit_scan(
    httpx_client: httpx.AsyncClient,
    server_address: str,
    scanner_id: str,
    scanner_key: bytes,
    ticket_id: str | None = None,
    presented_proof: str | None = None,
    qr_data: str | None = None,
    timeout: float = gcst.VERIFICATION_TIMEOUT_SECONDS,
    attempts: int = 3,
    backoff: float = 0.5,
) -> ScannerResponse:
    """
    Submits a scan to the verifier.

    Only VerificationUnavailable is retried, with exponential backoff. After the last
    attempt the error is raised and the gate must treat the ticket as unverified: no
    outcome is cached or assumed locally.

    Args:
        httpx_client (httpx.AsyncClient): Shared HTTP client.
        server_address (str): Base URL of the verifier, e.g. http://localhost:8000.
        scanner_id (str): This scanner's id.
        scanner_key (bytes): This scanner's shared signing key.
        ticket_id (str | None): Ticket id, when not sending qr_data.
        presented_proof (str | None): Proof, when not sending qr_data.
        qr_data (str | None): Raw scanned QR payload.
        timeout (float): Per-request timeout in seconds.
        attempts (int): Maximum number of attempts.
        backoff (float): Base of the exponential backoff between attempts, in seconds.

    Returns:
        ScannerResponse: The verifier's decision, marked when it took more than one attempt.

    Raises:
        VerificationUnavailableError: If every attempt failed transiently.
        httpx.HTTPStatusError: For non-retryable HTTP errors (bad signature and so on).
    """
    payload: dict[str, Any] = {"scannerId": scanner_id}
    if qr_data is not None:
        payload["qrData"] = qr_data
    else:
        payload["ticketId"] = ticket_id
        payload["presentedProof"] = presented_proof

    first_sent_at = datetime.now(timezone.utc)
    attempts_made = 0

    @retry(
        retry=retry_if_exception_type(VerificationUnavailableError),
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=backoff, min=backoff, max=4),
        reraise=True,
    )
    async def post_with_retries() -> ScanResponse:
        nonlocal attempts_made
        attempts_made += 1
        return await _post_scan_once(httpx_client, server_address, scanner_id, scanner_key, payload, timeout)

    response = await post_with_retries()
    return ScannerResponse(
        **response.model_dump(),
        scanner_id=scanner_id,
        retried=attempts_made > 1,
        first_sent_at=first_sent_at,
    )


def describe_result(response: ScanResponse) -> tuple[ScanVerdict, str]:
    """Maps a verifier response to what the gate screen shows."""
    if isinstance(response, ScannerResponse) and response.admitted_by_own_retry:
        logger.info(f"Ticket {response.ticket_id} was admitted by this scanner on an earlier attempt")
        return ScanVerdict.ADMIT, "Admitted (confirmed after retry)"
    verdict = VERDICTS[response.outcome]
    message = describe_outcome(
        response.outcome,
        admitted_at=response.admitted_at,
        admitted_by=response.admitted_by,
        holder_display_name=response.holder_display_name,
    )
    return verdict, message
