from datetime import datetime
from enum import Enum

from gatepass.ledger.models import Outcome


class ScanVerdict(str, Enum):
    ADMIT = "ADMIT"
    ALREADY_USED = "ALREADY-USED"
    INVALID = "INVALID"
    VOID = "VOID"


VERDICTS: dict[Outcome, ScanVerdict] = {
    Outcome.ADMIT: ScanVerdict.ADMIT,
    Outcome.ALREADY_USED: ScanVerdict.ALREADY_USED,
    Outcome.INVALID_PROOF: ScanVerdict.INVALID,
    Outcome.NOT_FOUND: ScanVerdict.INVALID,
    Outcome.VOID: ScanVerdict.VOID,
}


def describe_outcome(
    outcome: Outcome,
    admitted_at: datetime | None = None,
    admitted_by: str | None = None,
    holder_display_name: str | None = None,
) -> str:
    """Human readable reason shown on the scanner, e.g. "Already used at gate-2, 14:03:02"."""
    if outcome == Outcome.ADMIT:
        return f"Welcome, {holder_display_name}" if holder_display_name else "Admitted"
    if outcome == Outcome.ALREADY_USED:
        if admitted_at is not None and admitted_by is not None:
            return f"Already used at {admitted_by}, {admitted_at.strftime('%H:%M:%S')}"
        return "Already used"
    if outcome == Outcome.VOID:
        return "Ticket has been voided"
    if outcome == Outcome.NOT_FOUND:
        return "Ticket not found"
    return "Invalid or expired code"
