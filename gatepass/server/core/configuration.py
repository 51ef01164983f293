import base64
import os
from functools import lru_cache

from cryptography.fernet import Fernet
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from dotenv import load_dotenv

from gatepass import constants as gcst
from gatepass.gate.verifier import ProofVerifier
from gatepass.ledger.base import AdmissionLedger
from gatepass.ledger.memory import InMemoryLedger
from gatepass.ledger.sql import SqlLedger
from gatepass.logging_utils import get_logger
from gatepass.security.clock import ClockGuard
from gatepass.security.identity import StaticIdentityProvider
from gatepass.security.nonce_management import NonceManager
from gatepass.security.secret_store import SecretStore
from gatepass.server.core.models.config import Config

logger = get_logger(__name__)

load_dotenv()


def _derive_key_from_string(input_string: str, salt: bytes = b"salt_") -> str:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=100000,
    )
    key = base64.urlsafe_b64encode(kdf.derive(input_string.encode()))
    return key.decode()


def parse_pairs(raw: str | None) -> dict[str, str]:
    """Parses `a:1,b:2` into {"a": "1", "b": "2"}."""
    pairs: dict[str, str] = {}
    if not raw:
        return pairs
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        name, sep, value = item.partition(":")
        if not sep or not name or not value:
            raise ValueError(f"Expected name:value, got {item!r}")
        pairs[name.strip()] = value.strip()
    return pairs


def _load_ledger(database_url: str | None) -> AdmissionLedger:
    if database_url is None:
        logger.warning("DATABASE_URL not set, ticket state will only live in memory!")
        return InMemoryLedger()
    return SqlLedger.from_url(database_url)


@lru_cache
def factory_config() -> Config:
    database_url = os.getenv("DATABASE_URL")
    window_seconds = int(os.getenv("PROOF_WINDOW_SECONDS", gcst.PROOF_WINDOW_SECONDS))
    digits = int(os.getenv("PROOF_DIGITS", gcst.PROOF_DIGITS))
    clock_skew_windows = int(os.getenv("CLOCK_SKEW_WINDOWS", gcst.CLOCK_SKEW_WINDOWS))
    verification_timeout = float(os.getenv("VERIFICATION_TIMEOUT_SECONDS", gcst.VERIFICATION_TIMEOUT_SECONDS))

    assert 6 <= digits <= 9, "PROOF_DIGITS must be between 6 and 9"

    storage_encryption_key = os.getenv("STORAGE_ENCRYPTION_KEY")
    if storage_encryption_key is None:
        logger.warning("STORAGE_ENCRYPTION_KEY not set, deriving the default development key")
        storage_encryption_key = _derive_key_from_string(gcst.DEFAULT_ENCRYPTION_STRING)

    staff_keys = {scanner_id: bytes.fromhex(key) for scanner_id, key in parse_pairs(os.getenv("STAFF_KEYS")).items()}
    if not staff_keys:
        logger.warning("No STAFF_KEYS configured, every signed endpoint will refuse requests")

    holder_tokens = parse_pairs(os.getenv("HOLDER_TOKENS"))

    ledger = _load_ledger(database_url)
    secret_store = SecretStore(ledger, Fernet(storage_encryption_key))
    verifier = ProofVerifier(
        ledger=ledger,
        secret_store=secret_store,
        clock_guard=ClockGuard(window_seconds=window_seconds, tolerance=clock_skew_windows),
        digits=digits,
    )

    return Config(
        ledger=ledger,
        secret_store=secret_store,
        verifier=verifier,
        identity_provider=StaticIdentityProvider(holder_tokens),
        nonce_manager=NonceManager(),
        staff_keys=staff_keys,
        verification_timeout=verification_timeout,
        window_seconds=window_seconds,
        digits=digits,
    )
