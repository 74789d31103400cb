"""Order repository: lookups by gateway correlation data and guarded writes."""

import structlog
from protean.exceptions import InvalidOperationError, ObjectNotFoundError

from ordering.domain import ordering
from ordering.order.order import Order, OrderStatus, PaymentStatus

logger = structlog.get_logger(__name__)

SCAN_PAGE_SIZE = 100


class ConcurrentOrderUpdate(InvalidOperationError):
    """The order changed in storage after the caller loaded it."""


@ordering.repository(part_of=Order)
class OrderRepository:
    def find_by_order_number(self, order_number: str) -> Order | None:
        if not order_number:
            return None
        results = self._dao.query.filter(order_number=order_number).all().items
        return results[0] if results else None

    def find_by_charge_id(self, charge_id: str) -> Order | None:
        """Match a gateway charge id against either stored correlation id."""
        if not charge_id:
            return None
        for field in ("gateway_charge_id", "gateway_transaction_id"):
            results = self._dao.query.filter(**{field: charge_id}).all().items
            if results:
                return results[0]
        return None

    def iter_all(self, page_size: int = SCAN_PAGE_SIZE):
        """Yield every order, one page at a time."""
        offset = 0
        while True:
            page = self._dao.query.order_by("order_number").offset(offset).limit(page_size).all()
            yield from page.items
            if not page.has_next:
                break
            offset += page_size

    def awaiting_payment(self) -> list[Order]:
        """Pending orders whose payment is still pending or has failed."""
        candidates = self._dao.query.filter(status=OrderStatus.PENDING.value).all().items
        waiting = {PaymentStatus.PENDING.value, PaymentStatus.FAILED.value}
        return [order for order in candidates if order.payment_status in waiting]

    def save(self, order: Order) -> Order:
        """Persist `order` only if nobody else wrote it since it was loaded."""
        try:
            stored = self._dao.get(order.id)
        except ObjectNotFoundError:
            stored = None

        if stored is not None and (stored.revision or 0) != (order.revision or 0):
            logger.warning(
                "Stale order write rejected",
                order_number=order.order_number,
                loaded_revision=order.revision,
                stored_revision=stored.revision,
            )
            raise ConcurrentOrderUpdate(
                f"Order {order.order_number} was modified concurrently "
                f"(loaded revision {order.revision}, stored revision {stored.revision})"
            )

        order.revision = (order.revision or 0) + 1
        self.add(order)
        return order
