import base64

from fastapi import APIRouter, Depends, HTTPException
from starlette.concurrency import run_in_threadpool

from gatepass.security.identity import Identity
from gatepass.security.proofs.errors import TicketNotFoundError, UnauthorizedError, VerificationUnavailableError
from gatepass.server.core.models.config import Config
from gatepass.server.core.models.payloads import SecretResponse
from gatepass.server.dependencies import get_config, get_holder_identity


async def get_ticket_secret(
    ticket_id: str,
    identity: Identity = Depends(get_holder_identity),
    config: Config = Depends(get_config),
) -> SecretResponse:
    try:
        secret = await run_in_threadpool(config.secret_store.fetch_for_display, ticket_id, identity)
    except TicketNotFoundError:
        raise HTTPException(status_code=404, detail="Ticket not found")
    except UnauthorizedError:
        raise HTTPException(status_code=403, detail="Not your ticket")
    except VerificationUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))

    return SecretResponse(
        ticket_id=ticket_id,
        secret=base64.b64encode(secret).decode(),
        window_seconds=config.window_seconds,
        digits=config.digits,
    )


def factory_router() -> APIRouter:
    router = APIRouter(tags=["Holder"])
    router.add_api_route("/tickets/{ticket_id}/secret", get_ticket_secret, methods=["GET"], response_model=SecretResponse)
    return router
