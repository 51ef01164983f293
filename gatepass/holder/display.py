"""
Holder-side rotating proof display.

One asyncio task per displayed ticket: it recomputes the frame every tick,
re-renders when the window rotates, and goes away when the view is torn down.
No network calls, the secret is provisioned once beforehand.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from gatepass import constants as gcst
from gatepass.logging_utils import get_logger
from gatepass.security.proofs import operations

logger = get_logger(__name__)


@dataclass(frozen=True)
class DisplayFrame:
    ticket_id: str
    proof: str
    window_index: int
    seconds_remaining: int
    qr_payload: str


class ProofDisplay:
    def __init__(
        self,
        ticket_id: str,
        secret: bytes,
        on_rotate: Callable[[DisplayFrame], None],
        on_tick: Callable[[DisplayFrame], None] | None = None,
        window_seconds: int = gcst.PROOF_WINDOW_SECONDS,
        digits: int = gcst.PROOF_DIGITS,
        tick_seconds: float = 1.0,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.ticket_id = ticket_id
        self._secret = secret
        self.on_rotate = on_rotate
        self.on_tick = on_tick
        self.window_seconds = window_seconds
        self.digits = digits
        self.tick_seconds = tick_seconds
        self._clock = clock
        self._sleep = sleep
        self._current: DisplayFrame | None = None
        self._task: asyncio.Task | None = None

    @property
    def current(self) -> DisplayFrame | None:
        return self._current

    def frame(self, now: float | None = None) -> DisplayFrame:
        now = self._clock() if now is None else now
        proof = operations.current_proof(self._secret, now, self.window_seconds, self.digits)
        return DisplayFrame(
            ticket_id=self.ticket_id,
            proof=proof,
            window_index=operations.window_index(now, self.window_seconds),
            seconds_remaining=max(1, round(operations.seconds_until_rotation(now, self.window_seconds))),
            qr_payload=operations.encode_qr_payload(self.ticket_id, proof),
        )

    def refresh(self) -> DisplayFrame:
        """Recomputes the frame, firing on_rotate if the window has advanced since the last refresh."""
        frame = self.frame()
        if self._current is None or frame.window_index != self._current.window_index:
            self._current = frame
            self.on_rotate(frame)
        else:
            self._current = frame
        if self.on_tick is not None:
            self.on_tick(frame)
        return frame

    async def run(self) -> None:
        logger.debug(f"Starting proof display for ticket {self.ticket_id}")
        try:
            while True:
                self.refresh()
                remaining = operations.seconds_until_rotation(self._clock(), self.window_seconds)
                await self._sleep(min(self.tick_seconds, remaining))
        except asyncio.CancelledError:
            logger.debug(f"Proof display for ticket {self.ticket_id} stopped")
            raise

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
