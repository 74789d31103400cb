"""Gateway charge status vocabulary.

The provider reports charge states with its own words ("succeeded",
"declined", ...). Everything downstream works with four outcomes only.
"""

from enum import Enum


class ChargeOutcome(Enum):
    SUCCESSFUL = "successful"
    FAILED = "failed"
    PENDING = "pending"
    UNKNOWN = "unknown"


CHARGE_STATUS_OUTCOMES = {
    "successful": ChargeOutcome.SUCCESSFUL,
    "succeeded": ChargeOutcome.SUCCESSFUL,
    "failed": ChargeOutcome.FAILED,
    "cancelled": ChargeOutcome.FAILED,
    "declined": ChargeOutcome.FAILED,
    "pending": ChargeOutcome.PENDING,
    "processing": ChargeOutcome.PENDING,
}


def classify_charge_status(status: str | None) -> ChargeOutcome:
    if not status:
        return ChargeOutcome.UNKNOWN
    return CHARGE_STATUS_OUTCOMES.get(status.strip().lower(), ChargeOutcome.UNKNOWN)
