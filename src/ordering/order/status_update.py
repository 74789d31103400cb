"""Admin order status update: command and handler."""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.audit.audit_log import record_audit
from ordering.context import RequestContext
from ordering.domain import ordering
from ordering.order.order import Order, OrderStatus
from ordering.order.transitions import OrderStatusTransitions, TransitionRejected

logger = structlog.get_logger(__name__)

VALID_STATUSES = [status.value for status in OrderStatus]


@ordering.command(part_of="Order")
class UpdateOrderStatus:
    order_number = String(required=True, max_length=50)
    status = String(required=True, max_length=50)
    tenant_id = Identifier()
    actor_id = Identifier()
    actor_email = String(max_length=255)


@ordering.command_handler(part_of=Order)
class UpdateOrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_order_status(self, command) -> Order:
        new_status = command.status
        if new_status not in VALID_STATUSES:
            raise ValidationError(
                {"status": [f"Invalid order status: {new_status}. Valid statuses are: {', '.join(VALID_STATUSES)}"]}
            )

        repository = current_domain.repository_for(Order)
        order = repository.find_by_order_number(command.order_number)
        if order is None or (command.tenant_id and order.tenant_id and str(order.tenant_id) != str(command.tenant_id)):
            raise ObjectNotFoundError(f"Order {command.order_number} not found")

        actor = RequestContext(tenant_id=command.tenant_id, actor_id=command.actor_id, actor_email=command.actor_email)
        old_status = order.status
        try:
            OrderStatusTransitions(repository).transition(
                order, new_status, f"Manual update by admin {command.actor_email or command.actor_id}"
            )
        except TransitionRejected as exc:
            logger.warning(
                "Order status transition failed",
                order_number=order.order_number,
                old_status=old_status,
                new_status=new_status,
                error=exc.reason,
                admin_id=command.actor_id,
            )
            raise

        record_audit(
            "order_status_updated",
            order,
            actor=actor,
            metadata={"old_status": old_status, "new_status": new_status, "payment_status": order.payment_status},
            message=f"Order {order.order_number} status changed from {old_status} to {new_status} by admin",
        )
        logger.info(
            "Order status updated by admin",
            order_number=order.order_number,
            old_status=old_status,
            new_status=new_status,
            payment_status=order.payment_status,
            admin_email=command.actor_email,
        )
        return order
