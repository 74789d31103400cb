"""Webhook signature verification: HMAC-SHA256 over the raw request body."""

import hashlib
import hmac

import structlog

logger = structlog.get_logger(__name__)


def compute_signature(payload: bytes | str, secret: str) -> str:
    body = payload.encode("utf-8") if isinstance(payload, str) else payload
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(
    payload: bytes | str,
    signature: str | None,
    secret: str | None,
    required: bool = False,
) -> bool:
    """Check a webhook signature in constant time.

    Without a configured secret the check is skipped (development mode)
    unless `required` is set, in which case every delivery is rejected.
    """
    if not secret:
        if required:
            logger.error("Webhook rejected: signature required but no webhook secret is configured")
            return False
        logger.info("Webhook signature verification skipped (webhook secret not configured)")
        return True

    if not signature:
        return False

    return hmac.compare_digest(compute_signature(payload, secret), signature)
