"""Ordering bounded context: carts, orders and payment reconciliation.

Orders are created from shopping carts, paid through an external gateway
and moved through their lifecycle by a transition policy that treats the
gateway's payment status as authoritative.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
