import os
import time

from gatepass import constants as gcst


def generate_nonce() -> str:
    return f"{time.time_ns()}_{os.urandom(8).hex()}"


class NonceManager:
    def __init__(self, ttl: int = gcst.NONCE_TTL_SECONDS, window_ns: int = gcst.NONCE_WINDOW_NS) -> None:
        self._nonces: dict[str, float] = {}
        self.TTL: int = ttl
        self.window_ns = window_ns

    def add_nonce(self, nonce: str) -> None:
        self._nonces[nonce] = time.time() + self.TTL

    def nonce_is_valid(self, nonce: str) -> bool:
        # Check for collision
        if nonce in self._nonces:
            return False

        # If nonce isn't the right format, don't add it to self._nonces to prevent abuse
        try:
            timestamp_part, random_part = nonce.split("_")
            timestamp_ns = int(timestamp_part)
            int(random_part, 16)
        except ValueError:
            return False

        # Nonces, even stale ones, can only be used once.
        self.add_nonce(nonce)

        # Check for recency
        current_time_ns = time.time_ns()
        if current_time_ns - timestamp_ns > self.window_ns:
            return False  # Too old

        if timestamp_ns - current_time_ns > self.window_ns:
            return False  # From the future, would stay replayable for too long

        return True

    def cleanup_expired_nonces(self) -> None:
        current_time = time.time()
        expired_nonces: list[str] = [nonce for nonce, expiry_time in self._nonces.items() if current_time > expiry_time]
        for nonce in expired_nonces:
            del self._nonces[nonce]
