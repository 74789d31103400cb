"""Tests for the order status transition policy: pure decisions, no storage."""

import pytest
from ordering.order.order import OrderStatus, PaymentStatus
from ordering.order.policy import (
    CANCEL_PAID_MESSAGE,
    PAYMENT_FAILED_MESSAGE,
    PAYMENT_PENDING_MESSAGE,
    reachable_statuses,
    validate_transition,
)

ALL_PAYMENTS = list(PaymentStatus)


class TestSameStatus:
    @pytest.mark.parametrize("status", list(OrderStatus))
    def test_same_status_is_always_allowed(self, status):
        for payment in ALL_PAYMENTS:
            assert validate_transition(status, status, payment).allowed is True


class TestFromPending:
    def test_paid_order_can_move_to_processing(self):
        decision = validate_transition("pending", "processing", "paid")
        assert decision.allowed is True
        assert decision.reason is None

    def test_pending_payment_blocks_processing(self):
        decision = validate_transition("pending", "processing", "pending")
        assert decision.allowed is False
        assert decision.reason == PAYMENT_PENDING_MESSAGE

    def test_failed_payment_blocks_processing(self):
        decision = validate_transition("pending", "processing", "failed")
        assert decision.allowed is False
        assert decision.reason == PAYMENT_FAILED_MESSAGE

    def test_failed_payment_allows_cancel(self):
        assert validate_transition("pending", "cancelled", "failed").allowed is True

    def test_pending_payment_cannot_cancel(self):
        decision = validate_transition("pending", "cancelled", "pending")
        assert decision.allowed is False
        assert "Valid status changes from 'pending' are: none" in decision.reason

    def test_complete_from_pending_explains_payment(self):
        decision = validate_transition("pending", "complete", "pending")
        assert decision.allowed is False
        assert "still pending payment" in decision.reason

    def test_paid_pending_order_cannot_be_cancelled(self):
        decision = validate_transition("pending", "cancelled", "paid")
        assert decision.allowed is False
        assert "Payment status is 'paid'" in decision.reason


class TestFromProcessing:
    def test_complete_requires_paid(self):
        assert validate_transition("processing", "complete", "paid").allowed is True

        decision = validate_transition("processing", "complete", "failed")
        assert decision.allowed is False
        assert "payment hasn't been received yet" in decision.reason

    def test_cancel_paid_order_requires_refund(self):
        decision = validate_transition("processing", "cancelled", "paid")
        assert decision.allowed is False
        assert decision.reason == CANCEL_PAID_MESSAGE

    def test_refunded_requires_refund_state(self):
        assert validate_transition("processing", "refunded", "refunded").allowed is True
        assert validate_transition("processing", "refunded", "partially_refunded").allowed is True

        decision = validate_transition("processing", "refunded", "paid")
        assert decision.allowed is False
        assert "refund hasn't been processed yet" in decision.reason

    def test_on_hold_is_reachable(self):
        assert validate_transition("processing", "on_hold", "paid").allowed is True

    def test_back_to_pending_is_rejected(self):
        decision = validate_transition("processing", "pending", "paid")
        assert decision.allowed is False
        assert "Valid status changes from 'processing' are: complete, on_hold, cancelled, refunded" in decision.reason


class TestFromOnHold:
    def test_resume_requires_paid(self):
        assert validate_transition("on_hold", "processing", "paid").allowed is True

        decision = validate_transition("on_hold", "processing", "partially_refunded")
        assert decision.allowed is False

    def test_cancel_allowed_once_not_paid(self):
        assert validate_transition("on_hold", "cancelled", "partially_refunded").allowed is True
        assert validate_transition("on_hold", "cancelled", "paid").allowed is False


class TestTerminalStatuses:
    def test_complete_is_final(self):
        decision = validate_transition("complete", "processing", "paid")
        assert decision.allowed is False
        assert decision.reason == (
            "Sorry, you can't change a completed order back to 'processing'. Completed orders are final."
        )

    def test_cancelled_is_final(self):
        decision = validate_transition("cancelled", "processing", "paid")
        assert decision.reason == "Sorry, you can't change a cancelled order. Cancelled orders are final."

    def test_refunded_is_final(self):
        decision = validate_transition("refunded", "processing", "refunded")
        assert decision.reason == "Sorry, you can't change a refunded order. Refunded orders are final."

    @pytest.mark.parametrize("status", [OrderStatus.COMPLETE, OrderStatus.CANCELLED, OrderStatus.REFUNDED])
    def test_nothing_is_reachable(self, status):
        for payment in ALL_PAYMENTS:
            assert reachable_statuses(status, payment) == []


class TestPolicyNeverContradictsPayment:
    """No allowed change may leave an order processing/complete without payment."""

    @pytest.mark.parametrize("payment", [p for p in PaymentStatus if p != PaymentStatus.PAID])
    @pytest.mark.parametrize("current", [s for s in OrderStatus if s != OrderStatus.PROCESSING])
    def test_processing_only_with_paid(self, current, payment):
        assert validate_transition(current, OrderStatus.PROCESSING, payment).allowed is False

    @pytest.mark.parametrize("current", list(OrderStatus))
    def test_paid_orders_are_never_cancelled(self, current):
        if current == OrderStatus.CANCELLED:
            return
        assert validate_transition(current, OrderStatus.CANCELLED, PaymentStatus.PAID).allowed is False

    def test_accepts_enum_members(self):
        decision = validate_transition(OrderStatus.PENDING, OrderStatus.PROCESSING, PaymentStatus.PAID)
        assert decision.allowed is True
