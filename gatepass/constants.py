# Proof rotation
PROOF_WINDOW_SECONDS = 30
PROOF_DIGITS = 8
CLOCK_SKEW_WINDOWS = 1
SECRET_BYTES = 32

# Verification
VERIFICATION_TIMEOUT_SECONDS = 3.0

# QR payload
QR_PAYLOAD_PREFIX = "GP1"
QR_PAYLOAD_SEPARATOR = ":"

# Scanner request headers
SCANNER_ID_HEADER = "x-scanner-id"
NONCE_HEADER = "x-nonce"
SIGNATURE_HEADER = "x-signature"

NONCE_WINDOW_NS = 60_000_000_000
NONCE_TTL_SECONDS = 60 * 2

# Endpoints
SCAN_ENDPOINT = "scan"

DEFAULT_ENCRYPTION_STRING = "gatepass-default-storage-key"
