from dataclasses import dataclass

from gatepass.gate.verifier import ProofVerifier
from gatepass.ledger.base import AdmissionLedger
from gatepass.security.identity import StaticIdentityProvider
from gatepass.security.nonce_management import NonceManager
from gatepass.security.secret_store import SecretStore


@dataclass
class Config:
    ledger: AdmissionLedger
    secret_store: SecretStore
    verifier: ProofVerifier
    identity_provider: StaticIdentityProvider
    nonce_manager: NonceManager
    staff_keys: dict[str, bytes]
    verification_timeout: float
    window_seconds: int
    digits: int
