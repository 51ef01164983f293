import math
import os
import struct

from cryptography.hazmat.primitives import constant_time, hashes, hmac

from gatepass import constants as gcst
from gatepass.security.proofs.errors import MalformedPayloadError


def generate_secret(num_bytes: int = gcst.SECRET_BYTES) -> bytes:
    """
    Generates a per-ticket symmetric secret from the OS CSPRNG.

    Args:
        num_bytes (int): Secret length. Must give at least 128 bits of entropy.

    Returns:
        bytes: The new secret.
    """
    if num_bytes < 16:
        raise ValueError("Ticket secrets need at least 128 bits of entropy")
    return os.urandom(num_bytes)


def window_index(now: float, window_seconds: int = gcst.PROOF_WINDOW_SECONDS) -> int:
    """Returns floor(now / window_seconds), the index of the proof window containing `now`."""
    return math.floor(now / window_seconds)


def seconds_until_rotation(now: float, window_seconds: int = gcst.PROOF_WINDOW_SECONDS) -> float:
    return (window_index(now, window_seconds) + 1) * window_seconds - now


def _hmac_digest(secret: bytes, counter: int) -> bytes:
    h = hmac.HMAC(secret, hashes.SHA256())
    h.update(struct.pack(">q", counter))
    return h.finalize()


def derive_proof(secret: bytes, index: int, digits: int = gcst.PROOF_DIGITS) -> str:
    """
    Derives the proof for a single window.

    HMAC-SHA256 over the big-endian window index, then dynamic truncation
    to `digits` decimal digits (the RFC 4226 / RFC 6238 construction).

    Args:
        secret (bytes): The per-ticket secret.
        index (int): The window index.
        digits (int): Length of the proof code.

    Returns:
        str: Zero-padded decimal proof code.
    """
    digest = _hmac_digest(secret, index)
    offset = digest[-1] & 0x0F
    code = int.from_bytes(digest[offset : offset + 4], "big") & 0x7FFFFFFF
    return str(code % 10**digits).zfill(digits)


def current_proof(
    secret: bytes,
    now: float,
    window_seconds: int = gcst.PROOF_WINDOW_SECONDS,
    digits: int = gcst.PROOF_DIGITS,
) -> str:
    """Pure function of (secret, now): the proof shown on the holder's device right now."""
    return derive_proof(secret, window_index(now, window_seconds), digits)


def proofs_match(expected: str, presented: str) -> bool:
    return constant_time.bytes_eq(expected.encode(), presented.encode())


def matches_any(expected_proofs: list[str], presented: str) -> bool:
    """
    Compares `presented` against every expected proof without short-circuiting,
    so the time taken does not depend on which window (if any) matched.
    """
    matched = False
    for expected in expected_proofs:
        matched |= proofs_match(expected, presented)
    return matched


def encode_qr_payload(ticket_id: str, proof: str) -> str:
    """
    Builds the string rendered into the holder's QR code.

    The window index is deliberately absent, the verifier works it out from its own clock.
    """
    if gcst.QR_PAYLOAD_SEPARATOR in ticket_id:
        raise ValueError(f"Ticket id may not contain {gcst.QR_PAYLOAD_SEPARATOR!r}")
    return gcst.QR_PAYLOAD_SEPARATOR.join((gcst.QR_PAYLOAD_PREFIX, ticket_id, proof))


def decode_qr_payload(data: str) -> tuple[str, str]:
    """
    Splits scanned QR data back into (ticket_id, proof).

    Raises:
        MalformedPayloadError: If the data is not a gatepass payload.
    """
    parts = data.strip().split(gcst.QR_PAYLOAD_SEPARATOR)
    if len(parts) != 3 or parts[0] != gcst.QR_PAYLOAD_PREFIX:
        raise MalformedPayloadError("Scanned code is not a gatepass ticket")
    _, ticket_id, proof = parts
    if not ticket_id or not proof:
        raise MalformedPayloadError("Scanned code is missing the ticket id or proof")
    return ticket_id, proof
