"""Payment timeout reaper: cancel orders left waiting for payment too long.

Designed to be triggered periodically by an external scheduler (cron, K8s
CronJob) via `manage.py cancel-pending` or the maintenance API endpoint.
An order still waiting on its first payment attempt has that attempt
expired (payment_status=failed) before the policy-checked cancellation,
since a pending payment blocks cancellation.
"""

from datetime import UTC, datetime, timedelta

import structlog
from protean import handle
from protean.exceptions import InvalidOperationError, ValidationError
from protean.fields import Boolean, DateTime, Integer
from protean.utils.globals import current_domain

from ordering.audit.audit_log import record_audit
from ordering.domain import ordering
from ordering.order.order import Order, PaymentStatus
from ordering.order.transitions import OrderStatusTransitions

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_MINUTES = 30


@ordering.command(part_of="Order")
class CancelTimedOutOrders:
    """Cancel pending orders older than the payment timeout."""

    timeout_minutes = Integer(default=DEFAULT_TIMEOUT_MINUTES, min_value=1)
    dry_run = Boolean(default=False)
    as_of = DateTime()  # Optional: defaults to now


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)


def _candidate_row(order: Order) -> dict:
    return {
        "order_number": order.order_number,
        "created_at": _as_utc(order.created_at).strftime("%Y-%m-%d %H:%M:%S"),
        "payment_status": order.payment_status,
        "grand_total": f"{order.currency} {order.grand_total:,.2f}",
    }


@ordering.command_handler(part_of=Order)
class CancelTimedOutOrdersHandler:
    @handle(CancelTimedOutOrders)
    def cancel_timed_out_orders(self, command) -> dict:
        timeout_minutes = command.timeout_minutes or DEFAULT_TIMEOUT_MINUTES
        as_of = _as_utc(command.as_of or datetime.now(UTC))
        cutoff = as_of - timedelta(minutes=timeout_minutes)

        repository = current_domain.repository_for(Order)
        timed_out = [
            order
            for order in repository.awaiting_payment()
            if order.created_at and _as_utc(order.created_at) <= cutoff
        ]

        report = {
            "timeout_minutes": timeout_minutes,
            "dry_run": bool(command.dry_run),
            "candidates": [_candidate_row(order) for order in timed_out],
            "cancelled": [],
            "failed": [],
        }

        logger.info(
            "Checking for orders past payment timeout",
            cutoff=cutoff.isoformat(),
            timeout_minutes=timeout_minutes,
            candidates=len(timed_out),
        )
        if command.dry_run or not timed_out:
            return report

        transitions = OrderStatusTransitions(repository)
        reason = f"Auto-cancelled: Payment timeout ({timeout_minutes} minutes) exceeded"
        for order in timed_out:
            try:
                payment_status = order.payment_status
                if payment_status == PaymentStatus.PENDING.value:
                    order.merge_payment_metadata(failure_reason=reason, payment_failed_at=as_of)
                    transitions.handle_payment_status_change(order, PaymentStatus.FAILED)
                transitions.transition(order, "cancelled", reason)
                record_audit(
                    "order_auto_cancelled",
                    order,
                    metadata={"timeout_minutes": timeout_minutes, "payment_status": payment_status},
                    message=f"Order {order.order_number} cancelled after {timeout_minutes} minutes without payment",
                )
                report["cancelled"].append(order.order_number)
                logger.info(
                    "Order auto-cancelled due to payment timeout",
                    order_number=order.order_number,
                    timeout_minutes=timeout_minutes,
                    created_at=str(order.created_at),
                    payment_status=payment_status,
                )
            except (ValidationError, InvalidOperationError) as exc:
                report["failed"].append({"order_number": order.order_number, "error": str(exc)})
                logger.error(
                    "Failed to auto-cancel order due to payment timeout",
                    order_number=order.order_number,
                    error=str(exc),
                )

        logger.info(
            "Payment timeout sweep complete",
            cancelled=len(report["cancelled"]),
            failed=len(report["failed"]),
        )
        return report
