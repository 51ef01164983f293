from fastapi import APIRouter, Depends, HTTPException
from starlette.concurrency import run_in_threadpool

from gatepass.gate.tickets import void_ticket
from gatepass.ledger.models import AdmissionAttempt, Ticket
from gatepass.security.proofs.errors import (
    IllegalStateTransitionError,
    TicketNotFoundError,
    VerificationUnavailableError,
)
from gatepass.server.core.models.config import Config
from gatepass.server.core.models.payloads import IssueTicketRequest, TicketResponse
from gatepass.server.dependencies import get_config, verify_staff_signature


def _ticket_response(ticket: Ticket) -> TicketResponse:
    return TicketResponse(
        ticket_id=ticket.ticket_id,
        event_id=ticket.event_id,
        tier=ticket.tier,
        state=ticket.state,
        admitted_at=ticket.admitted_at,
        admitted_by=ticket.admitted_by,
    )


async def issue_ticket(payload: IssueTicketRequest, config: Config = Depends(get_config)) -> TicketResponse:
    try:
        ticket = await run_in_threadpool(
            config.secret_store.issue,
            event_id=payload.event_id,
            tier=payload.tier,
            owner_id=payload.owner_id,
            holder_display_name=payload.holder_display_name,
        )
    except VerificationUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return _ticket_response(ticket)


async def void(ticket_id: str, config: Config = Depends(get_config)) -> TicketResponse:
    try:
        ticket = await run_in_threadpool(void_ticket, config.ledger, ticket_id)
    except TicketNotFoundError:
        raise HTTPException(status_code=404, detail="Ticket not found")
    except IllegalStateTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except VerificationUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return _ticket_response(ticket)


async def list_attempts(ticket_id: str, config: Config = Depends(get_config)) -> list[AdmissionAttempt]:
    try:
        return await run_in_threadpool(config.ledger.list_attempts, ticket_id)
    except VerificationUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))


def factory_router() -> APIRouter:
    router = APIRouter(tags=["Tickets"], dependencies=[Depends(verify_staff_signature)])
    router.add_api_route("/tickets", issue_ticket, methods=["POST"], response_model=TicketResponse, status_code=201)
    router.add_api_route("/tickets/{ticket_id}/void", void, methods=["POST"], response_model=TicketResponse)
    router.add_api_route("/tickets/{ticket_id}/attempts", list_attempts, methods=["GET"], response_model=list[AdmissionAttempt])
    return router
