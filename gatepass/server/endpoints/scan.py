from fastapi import APIRouter, Depends, HTTPException
from starlette.concurrency import run_in_threadpool

from gatepass.gate.verdicts import describe_outcome
from gatepass.gate.verifier import verify_with_timeout
from gatepass.logging_utils import get_logger
from gatepass.security.proofs.errors import MalformedPayloadError, VerificationUnavailableError
from gatepass.server.core.models.config import Config
from gatepass.server.core.models.payloads import ScanRequest, ScanResponse
from gatepass.server.dependencies import get_config, verify_staff_signature

logger = get_logger(__name__)


async def scan_ticket(
    payload: ScanRequest,
    authenticated_scanner_id: str = Depends(verify_staff_signature),
    config: Config = Depends(get_config),
) -> ScanResponse:
    if payload.scanner_id != authenticated_scanner_id:
        raise HTTPException(status_code=403, detail="scannerId does not match the signing scanner")

    try:
        ticket_id, presented_proof = payload.resolve()
    except MalformedPayloadError as e:
        logger.warning(f"Unreadable code from scanner {payload.scanner_id}: {e}")
        try:
            result = await run_in_threadpool(config.verifier.reject_unreadable, payload.qr_data, payload.scanner_id)
        except VerificationUnavailableError as unavailable:
            raise HTTPException(status_code=503, detail=f"Verification unavailable: {unavailable}")
        return ScanResponse(outcome=result.outcome, message=str(e))

    try:
        result = await verify_with_timeout(
            config.verifier,
            ticket_id,
            presented_proof,
            payload.scanner_id,
            timeout=config.verification_timeout,
        )
    except VerificationUnavailableError as e:
        raise HTTPException(status_code=503, detail=f"Verification unavailable: {e}")

    return ScanResponse(
        outcome=result.outcome,
        ticket_id=result.ticket_id,
        tier=result.tier,
        holder_display_name=result.holder_display_name,
        admitted_at=result.admitted_at,
        admitted_by=result.admitted_by,
        message=describe_outcome(result.outcome, result.admitted_at, result.admitted_by, result.holder_display_name),
    )


def factory_router() -> APIRouter:
    router = APIRouter(tags=["Scanning"])
    router.add_api_route(
        "/scan",
        scan_ticket,
        methods=["POST"],
        response_model=ScanResponse,
        response_model_exclude_none=True,
    )
    return router
