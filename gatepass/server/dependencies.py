from fastapi import Depends, Header, HTTPException, Request

from gatepass import constants as gcst
from gatepass.logging_utils import get_logger
from gatepass.security import signatures
from gatepass.security.identity import Identity
from gatepass.security.proofs.errors import UnauthorizedError
from gatepass.server.core import configuration
from gatepass.server.core.models.config import Config

logger = get_logger(__name__)


def get_config() -> Config:
    return configuration.factory_config()


async def verify_staff_signature(request: Request, config: Config = Depends(get_config)) -> str:
    """
    Authenticates a gate scanner or box-office client by its HMAC request signature.

    Returns:
        str: The authenticated scanner id.
    """
    scanner_id = request.headers.get(gcst.SCANNER_ID_HEADER)
    if not scanner_id:
        logger.debug("Scanner id header missing")
        raise HTTPException(status_code=400, detail="Scanner id header missing")

    nonce = request.headers.get(gcst.NONCE_HEADER)
    if not nonce:
        raise HTTPException(status_code=400, detail="Nonce header missing")

    signature = request.headers.get(gcst.SIGNATURE_HEADER)
    if not signature:
        raise HTTPException(status_code=400, detail="Signature header missing")

    key = config.staff_keys.get(scanner_id)
    if key is None:
        logger.warning(f"Request from unknown scanner {scanner_id}")
        raise HTTPException(status_code=401, detail="Unknown scanner")

    message = signatures.construct_signed_message(nonce, await request.body())
    if not signatures.verify_signature(key, message, signature):
        logger.warning(f"Invalid signature from scanner {scanner_id}")
        raise HTTPException(status_code=401, detail="Invalid signature")

    # Only burn the nonce once the signature checks out
    if not config.nonce_manager.nonce_is_valid(nonce):
        logger.warning(f"Replayed or stale nonce from scanner {scanner_id}")
        raise HTTPException(status_code=401, detail="Nonce already used or outside the accepted window")

    return scanner_id


def get_holder_identity(authorization: str | None = Header(default=None), config: Config = Depends(get_config)) -> Identity:
    token = None
    if authorization is not None:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials:
            token = credentials.strip()
    try:
        return config.identity_provider.resolve(token)
    except UnauthorizedError:
        raise HTTPException(status_code=401, detail="Missing or invalid bearer token")
