import argparse
import asyncio
import base64

from gatepass import constants as gcst
from gatepass.holder.display import DisplayFrame, ProofDisplay
from gatepass.logging_utils import get_logger

logger = get_logger(__name__)


def _print_rotation(frame: DisplayFrame) -> None:
    logger.info(f"New code for {frame.ticket_id}: {frame.proof} (scan payload: {frame.qr_payload})")


def _print_countdown(frame: DisplayFrame) -> None:
    print(f"\r{frame.proof}  refreshes in {frame.seconds_remaining:2d}s", end="", flush=True)


async def _run(ticket_id: str, secret: bytes, window_seconds: int, digits: int) -> None:
    display = ProofDisplay(
        ticket_id=ticket_id,
        secret=secret,
        on_rotate=_print_rotation,
        on_tick=_print_countdown,
        window_seconds=window_seconds,
        digits=digits,
    )
    try:
        await display.start()
    finally:
        await display.stop()


def main():
    parser = argparse.ArgumentParser(description="Show the rotating entry code for a ticket")
    parser.add_argument("--ticket-id", type=str, required=True, help="Ticket id")
    parser.add_argument("--secret", type=str, required=True, help="Base64 ticket secret, as provisioned to this device")
    parser.add_argument("--window-seconds", type=int, default=gcst.PROOF_WINDOW_SECONDS, help="Rotation period")
    parser.add_argument("--digits", type=int, default=gcst.PROOF_DIGITS, help="Code length")

    args = parser.parse_args()
    secret = base64.b64decode(args.secret)

    try:
        asyncio.run(_run(args.ticket_id, secret, args.window_seconds, args.digits))
    except KeyboardInterrupt:
        print()


if __name__ == "__main__":
    main()
