import base64
import json

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac

from gatepass.logging_utils import get_logger

logger = get_logger(__name__)


def sign_message(key: bytes, message: str | None) -> str | None:
    if message is None:
        return None
    h = hmac.HMAC(key, hashes.SHA256())
    h.update(message.encode())
    return base64.b64encode(h.finalize()).decode()


def verify_signature(key: bytes, message: str | None, signature: str) -> bool:
    if message is None:
        return False
    try:
        h = hmac.HMAC(key, hashes.SHA256())
        h.update(message.encode())
        h.verify(base64.b64decode(signature.encode(), validate=True))
        return True
    except (InvalidSignature, ValueError):
        return False


def construct_message_from_payload(body: str | bytes | dict) -> str | None:
    try:
        if isinstance(body, dict):
            return json.dumps(body, sort_keys=True, separators=(",", ":"))
        elif isinstance(body, bytes):
            body_str = body.decode()
        else:
            assert isinstance(body, str)
            body_str = body

        if not body_str:
            return ""
        try:
            json_body = json.loads(body_str)
            return json.dumps(json_body, sort_keys=True, separators=(",", ":"))
        except json.JSONDecodeError:
            return body_str
    except (UnicodeDecodeError, AssertionError) as e:
        logger.error(f"Error constructing message from payload: {str(e)}")
        return None


def construct_signed_message(nonce: str, body: str | bytes | dict) -> str | None:
    """The string a scanner signs: the request nonce, then the canonical JSON body."""
    message = construct_message_from_payload(body)
    if message is None:
        return None
    return f"{nonce}.{message}"
