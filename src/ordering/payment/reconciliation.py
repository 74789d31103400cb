"""Payment reconciliation: turn a gateway notification into an order update.

Shared by the webhook and the browser redirect callback, which may arrive
in any order, more than once, or not at all. Every write goes through the
order repository's revision check; a stale write is retried from a fresh
read, so two notifications racing for the same order settle on exactly
one payment record.

Emails are claimed with a marker in the payment metadata inside the same
write that records the payment, and raised as a `PaymentNoticeDue` event
that Protean publishes only when that write commits. Each outcome is
announced at most once, and never by a delivery that lost a race.

Provider text is clipped to the width of the field it lands in.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog
from protean.utils.globals import current_domain

from notifications.templates.kinds import EmailKind
from ordering.audit.audit_log import record_audit
from ordering.order.order import Order, OrderStatus, PaymentStatus
from ordering.order.policy import REFUND_STATES
from ordering.order.repository import ConcurrentOrderUpdate
from ordering.order.transitions import OrderStatusTransitions
from ordering.payment.correlation import find_order
from ordering.payment.outcome import ChargeOutcome, classify_charge_status, failure_reason

logger = structlog.get_logger(__name__)

MAX_WRITE_ATTEMPTS = 3

SHORT_TEXT_LENGTH = 50
CODE_LENGTH = 100
REASON_LENGTH = 500

WEBHOOK = "webhook"
CALLBACK = "callback"


@dataclass(frozen=True)
class ChargeNotification:
    """What a gateway told us about one charge."""

    charge_id: str
    status: str | None
    source: str
    reference: str | None = None
    transaction_id: str | None = None
    amount: float | None = None
    payment_type: str | None = None
    processor_response: dict | None = field(default=None, hash=False)

    @property
    def outcome(self) -> ChargeOutcome:
        return classify_charge_status(self.status)


@dataclass(frozen=True)
class ReconciliationResult:
    outcome: ChargeOutcome
    order_number: str | None = None
    changed: bool = False

    @property
    def order_found(self) -> bool:
        return self.order_number is not None


@dataclass
class _Effects:
    """Side effects to run once the order write has succeeded."""

    audit: list = field(default_factory=list)


def _clip(value: str | None, length: int) -> str | None:
    return value[:length] if value else value


class PaymentReconciler:
    def __init__(self, repository=None, transitions: OrderStatusTransitions | None = None):
        self.repository = repository or current_domain.repository_for(Order)
        self.transitions = transitions or OrderStatusTransitions(self.repository)

    def reconcile(self, notification: ChargeNotification) -> ReconciliationResult:
        outcome = notification.outcome
        order = find_order(notification.charge_id, notification.reference, repository=self.repository)
        if order is None:
            logger.error(
                "Order not found for payment notification",
                source=notification.source,
                charge_id=notification.charge_id,
                reference=notification.reference,
                status=notification.status,
            )
            return ReconciliationResult(outcome=outcome)

        if outcome in (ChargeOutcome.PENDING, ChargeOutcome.UNKNOWN):
            log = logger.info if outcome == ChargeOutcome.PENDING else logger.warning
            log(
                "Payment notification with pending/unknown status, order left unchanged",
                source=notification.source,
                order_number=order.order_number,
                charge_id=notification.charge_id,
                status=notification.status,
            )
            return ReconciliationResult(outcome=outcome, order_number=order.order_number)

        apply = self._apply_success if outcome == ChargeOutcome.SUCCESSFUL else self._apply_failure
        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            try:
                effects = apply(order, notification)
                break
            except ConcurrentOrderUpdate:
                if attempt == MAX_WRITE_ATTEMPTS:
                    logger.error(
                        "Giving up on payment notification after repeated write conflicts",
                        order_number=order.order_number,
                        charge_id=notification.charge_id,
                    )
                    raise
                logger.warning(
                    "Order changed while reconciling payment, retrying",
                    order_number=order.order_number,
                    attempt=attempt,
                )
                order = self.repository.get(order.id)

        if effects is None:
            return ReconciliationResult(outcome=outcome, order_number=order.order_number)

        for event_name, metadata, message in effects.audit:
            record_audit(event_name, order, actor=None, metadata=metadata, message=message)

        return ReconciliationResult(outcome=outcome, order_number=order.order_number, changed=True)

    # ------------------------------------------------------------------
    # Outcomes
    # ------------------------------------------------------------------
    def _received_at(self, notification: ChargeNotification, now: datetime) -> dict:
        key = "webhook_received_at" if notification.source == WEBHOOK else "callback_received_at"
        return {key: now}

    def _gateway_fields(self, notification: ChargeNotification) -> dict:
        return {
            "gateway_status": _clip(notification.status, SHORT_TEXT_LENGTH),
            "payment_type": _clip(notification.payment_type, SHORT_TEXT_LENGTH),
        }

    def _record_correlation(self, order: Order, notification: ChargeNotification):
        order.gateway_charge_id = notification.charge_id
        order.gateway_transaction_id = notification.transaction_id or notification.charge_id

    def _apply_success(self, order: Order, notification: ChargeNotification) -> _Effects | None:
        if order.is_paid:
            logger.info(
                "Payment already recorded, notification ignored",
                source=notification.source,
                order_number=order.order_number,
                charge_id=notification.charge_id,
            )
            return None

        if PaymentStatus(order.payment_status) in REFUND_STATES:
            logger.warning(
                "Success notification for a refunded order ignored",
                order_number=order.order_number,
                payment_status=order.payment_status,
                charge_id=notification.charge_id,
            )
            return None

        now = datetime.now(UTC)
        self._record_correlation(order, notification)
        amount = notification.amount if notification.amount is not None else order.grand_total

        if order.status == OrderStatus.CANCELLED.value:
            order.record_payment_status(PaymentStatus.PAID)
            order.stamp_paid(now)
            order.merge_payment_metadata(
                **self._gateway_fields(notification),
                **self._received_at(notification, now),
            )
            self.repository.save(order)
            logger.warning(
                "Payment received for a cancelled order, refund required",
                order_number=order.order_number,
                charge_id=notification.charge_id,
            )
            return _Effects(
                audit=[
                    (
                        "payment_received_after_cancellation",
                        {"charge_id": notification.charge_id, "amount": amount, "source": notification.source},
                        f"Payment received for cancelled order {order.order_number}; a refund is required",
                    )
                ]
            )

        notify = order.metadata.success_notified_at is None
        order.merge_payment_metadata(
            success_notified_at=now if notify else None,
            **self._gateway_fields(notification),
            **self._received_at(notification, now),
        )
        if notify:
            order.claim_payment_notice(EmailKind.PAYMENT_SUCCESSFUL.value, charge_id=notification.charge_id)
        order.stamp_paid(now)
        self.transitions.handle_payment_status_change(order, PaymentStatus.PAID)

        return _Effects(
            audit=[
                (
                    "payment_received",
                    {
                        "charge_id": notification.charge_id,
                        "amount": amount,
                        "payment_type": notification.payment_type,
                        "source": notification.source,
                    },
                    f"Payment received for order {order.order_number} via {notification.source}",
                )
            ]
        )

    def _apply_failure(self, order: Order, notification: ChargeNotification) -> _Effects | None:
        payment = PaymentStatus(order.payment_status)
        if payment == PaymentStatus.PAID or payment in REFUND_STATES:
            logger.warning(
                "Failure notification for a paid order ignored",
                order_number=order.order_number,
                payment_status=order.payment_status,
                charge_id=notification.charge_id,
            )
            return None

        if payment == PaymentStatus.FAILED and order.metadata.failure_notified_charge_id == notification.charge_id:
            logger.info(
                "Payment failure already recorded for this charge",
                order_number=order.order_number,
                charge_id=notification.charge_id,
            )
            return None

        now = datetime.now(UTC)
        reason = _clip(failure_reason(notification.status, notification.processor_response), REASON_LENGTH)
        code = (notification.processor_response or {}).get("code")

        self._record_correlation(order, notification)
        order.merge_payment_metadata(
            payment_failed_at=now,
            failure_reason=reason,
            failure_code=_clip(str(code), CODE_LENGTH) if code else None,
            failure_notified_charge_id=notification.charge_id,
            **self._gateway_fields(notification),
            **self._received_at(notification, now),
        )
        order.claim_payment_notice(
            EmailKind.PAYMENT_FAILED.value, charge_id=notification.charge_id, failure_reason=reason
        )
        self.transitions.handle_payment_status_change(order, PaymentStatus.FAILED)

        logger.warning(
            "Order payment failed",
            source=notification.source,
            order_number=order.order_number,
            charge_id=notification.charge_id,
            status=notification.status,
            failure_reason=reason,
        )
        return _Effects(
            audit=[
                (
                    "payment_failed",
                    {"charge_id": notification.charge_id, "reason": reason, "status": notification.status},
                    f"Payment failed for order {order.order_number} via {notification.source}",
                )
            ]
        )
