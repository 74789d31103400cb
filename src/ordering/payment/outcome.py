"""Payment outcome classification and failure diagnostics."""

from payments.gateway.status import ChargeOutcome, classify_charge_status

__all__ = ["ChargeOutcome", "classify_charge_status", "failure_reason", "redirect_outcome"]

GENERIC_FAILURE_REASON = "Payment failed"

# Used when the gateway sends no processor response at all
STATUS_FAILURE_REASONS = {
    "cancelled": "Payment was cancelled by user",
    "declined": "Payment was declined by bank",
}

REDIRECT_OUTCOMES = {
    ChargeOutcome.SUCCESSFUL: "success",
    ChargeOutcome.FAILED: "failed",
    ChargeOutcome.PENDING: "pending",
    ChargeOutcome.UNKNOWN: "unknown",
}


def failure_reason(status: str | None, processor_response: dict | None) -> str:
    """Human-readable failure reason.

    Priority: processor message, then processor type, then processor code,
    then a fallback chosen by the raw status.
    """
    if processor_response:
        if processor_response.get("message"):
            return str(processor_response["message"])
        if processor_response.get("type"):
            return str(processor_response["type"])
        if processor_response.get("code"):
            return f"Error code: {processor_response['code']}"
        return GENERIC_FAILURE_REASON

    return STATUS_FAILURE_REASONS.get((status or "").strip().lower(), GENERIC_FAILURE_REASON)


def redirect_outcome(outcome: ChargeOutcome | None) -> str:
    return REDIRECT_OUTCOMES.get(outcome, "unknown")
