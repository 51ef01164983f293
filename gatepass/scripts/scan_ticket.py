import argparse
import asyncio

import httpx

from gatepass.gate.verdicts import ScanVerdict
from gatepass.logging_utils import get_logger
from gatepass.scanner.client import describe_result, submit_scan
from gatepass.security.proofs.errors import VerificationUnavailableError

logger = get_logger(__name__)


async def _scan(server: str, scanner_id: str, scanner_key: bytes, qr_data: str) -> bool:
    async with httpx.AsyncClient() as httpx_client:
        try:
            response = await submit_scan(httpx_client, server, scanner_id, scanner_key, qr_data=qr_data)
        except VerificationUnavailableError as e:
            logger.error(f"Could not verify, do not admit without a decision: {e}")
            return False

    verdict, message = describe_result(response)
    if verdict == ScanVerdict.ADMIT:
        logger.info(f"{verdict.value}: {message} ({response.tier.value if response.tier else 'unknown tier'})")
    else:
        logger.warning(f"{verdict.value}: {message}")
    return verdict == ScanVerdict.ADMIT


def main():
    parser = argparse.ArgumentParser(description="Submit a scanned ticket code to the verifier")
    parser.add_argument("--server", type=str, default="http://localhost:8000", help="Verifier base URL")
    parser.add_argument("--scanner-id", type=str, required=True, help="This scanner's id")
    parser.add_argument("--scanner-key", type=str, required=True, help="This scanner's hex signing key")
    parser.add_argument("--qr-data", type=str, required=True, help="Scanned QR payload")

    args = parser.parse_args()

    admitted = asyncio.run(_scan(args.server.rstrip("/"), args.scanner_id, bytes.fromhex(args.scanner_key), args.qr_data))
    raise SystemExit(0 if admitted else 1)


if __name__ == "__main__":
    main()
