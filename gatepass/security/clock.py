import time
from typing import Callable

from gatepass import constants as gcst
from gatepass.security.proofs.operations import window_index


class ClockGuard:
    """
    Bounds how much holder-device clock drift the verifier tolerates.

    The verifier's own clock is ground truth. Proofs are accepted for the current
    window and `tolerance` windows either side of it, nothing further.
    """

    def __init__(
        self,
        window_seconds: int = gcst.PROOF_WINDOW_SECONDS,
        tolerance: int = gcst.CLOCK_SKEW_WINDOWS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        if tolerance < 0:
            raise ValueError("tolerance cannot be negative")
        self.window_seconds = window_seconds
        self.tolerance = tolerance
        self._clock = clock

    def now(self) -> float:
        return self._clock()

    def current_window(self, now: float | None = None) -> int:
        return window_index(self.now() if now is None else now, self.window_seconds)

    def acceptable_windows(self, now: float | None = None) -> list[int]:
        current = self.current_window(now)
        windows = [current]
        for offset in range(1, self.tolerance + 1):
            windows.extend((current - offset, current + offset))
        return windows

    def is_acceptable(self, index: int, now: float | None = None) -> bool:
        return abs(index - self.current_window(now)) <= self.tolerance
