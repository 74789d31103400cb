"""Order correlation: which order does a gateway notification belong to?

Lookup order:
1. The charge id against the order's stored charge/transaction ids.
2. A generated reference (ORDER...) scanned for a contained order number.
   Exactly one hit is accepted; several hits count as no match.
3. The raw reference as an exact order number.
"""

import re

import structlog
from protean.utils.globals import current_domain

from ordering.order.order import Order

logger = structlog.get_logger(__name__)

REFERENCE_PREFIX = "ORDER"


class AmbiguousReference(Exception):
    pass


def clean_reference(reference: str | None) -> str:
    return re.sub(r"[^a-zA-Z0-9-]", "", reference or "")


def build_reference(order_number: str, timestamp: int) -> str:
    """Charge reference sent to the gateway: alphanumeric only."""
    return re.sub(r"[^a-zA-Z0-9]", "", f"{REFERENCE_PREFIX}{order_number}{timestamp}")


def _match_generated_reference(repository, cleaned: str) -> Order | None:
    matches = [order for order in repository.iter_all() if order.order_number and order.order_number in cleaned]
    if len(matches) > 1:
        raise AmbiguousReference(", ".join(order.order_number for order in matches))
    if matches:
        return matches[0]

    # ORDER-{order_number}-{timestamp}
    parts = cleaned.split("-")
    if len(parts) >= 3 and parts[0] == REFERENCE_PREFIX:
        return repository.find_by_order_number(parts[1])
    return None


def find_order(charge_id: str | None, reference: str | None = None, repository=None) -> Order | None:
    repository = repository or current_domain.repository_for(Order)

    order = repository.find_by_charge_id(charge_id) if charge_id else None
    if order is not None or not reference:
        return order

    cleaned = clean_reference(reference)
    if cleaned.startswith(REFERENCE_PREFIX):
        try:
            order = _match_generated_reference(repository, cleaned)
        except AmbiguousReference as exc:
            logger.warning(
                "Reference matches several orders, refusing to guess", reference=cleaned, candidates=str(exc)
            )
            return None
        if order is not None:
            return order

    return repository.find_by_order_number(reference.strip())
