"""Reconciliation under concurrent writers and ambiguous correlation data."""

import json
import threading

import pytest
from ordering.audit.audit_log import entries_for
from ordering.domain import ordering
from ordering.order.order import Order
from ordering.order.repository import ConcurrentOrderUpdate
from ordering.payment import reconciliation as reconciliation_module
from ordering.payment.correlation import build_reference, clean_reference, find_order
from ordering.payment.reconciliation import WEBHOOK, ChargeNotification, PaymentReconciler
from ordering.payment.webhook import ProcessChargeWebhook
from protean import UnitOfWork, current_domain


def _touch_metadata(rival):
    rival.merge_payment_metadata(gateway_status="processing")
    current_domain.repository_for(Order).save(rival)


class RacingRepository:
    """Wraps the order repository; another writer sneaks in before each of the first `racers` saves."""

    def __init__(self, repository, racers=1, interfere=_touch_metadata):
        self._repository = repository
        self.racers = racers
        self.interfere = interfere
        self.conflicts = 0

    def __getattr__(self, name):
        return getattr(self._repository, name)

    def save(self, order):
        if self.racers > 0:
            self.racers -= 1
            self.interfere(self._repository.get(order.id))
            try:
                return self._repository.save(order)
            except ConcurrentOrderUpdate:
                self.conflicts += 1
                raise
        return self._repository.save(order)


def _notification(charge_id="chg_123", status="succeeded", **kwargs):
    return ChargeNotification(charge_id=charge_id, status=status, source=WEBHOOK, **kwargs)


def _reload(order):
    return current_domain.repository_for(Order).get(order.id)


class TestOptimisticRetry:
    def test_conflicting_write_is_retried(self, order_factory, fake_email):
        order = order_factory(charge_id="chg_123")
        racing = RacingRepository(current_domain.repository_for(Order))

        result = PaymentReconciler(repository=racing).reconcile(_notification())

        assert racing.conflicts == 1
        assert result.changed is True
        stored = _reload(order)
        assert stored.status == "processing"
        assert stored.payment_status == "paid"
        assert len(entries_for(order.id, "payment_received")) == 1
        assert len(fake_email.sent_of_kind("payment_successful")) == 1

    def test_rival_payment_wins_and_retry_becomes_no_op(self, order_factory, fake_email):
        """A second success notification lands while the first one is being written."""
        order = order_factory(charge_id="chg_123")
        racing = RacingRepository(
            current_domain.repository_for(Order),
            interfere=lambda rival: PaymentReconciler().reconcile(_notification()),
        )

        result = PaymentReconciler(repository=racing).reconcile(_notification())

        stored = _reload(order)
        assert racing.conflicts == 1
        assert result.changed is False
        assert stored.payment_status == "paid"
        assert len(entries_for(order.id, "payment_received")) == 1
        assert len(fake_email.sent_of_kind("payment_successful")) == 1

    def test_gives_up_after_repeated_conflicts(self, order_factory):
        order_factory(charge_id="chg_123")
        racing = RacingRepository(current_domain.repository_for(Order), racers=10)

        with pytest.raises(ConcurrentOrderUpdate):
            PaymentReconciler(repository=racing).reconcile(_notification())
        assert racing.conflicts == 3


class TestNoticesFollowTheCommit:
    def test_rolled_back_reconciliation_sends_nothing(self, order_factory, fake_email):
        order = order_factory(charge_id="chg_123")

        with pytest.raises(RuntimeError):
            with UnitOfWork():
                PaymentReconciler().reconcile(_notification())
                raise RuntimeError("write abandoned")

        assert _reload(order).payment_status == "pending"
        assert fake_email.sent_emails == []

    def test_committed_failure_sends_reason(self, order_factory, fake_email):
        order_factory(charge_id="chg_123")

        with UnitOfWork():
            PaymentReconciler().reconcile(
                _notification(status="failed", processor_response={"message": "Insufficient funds"})
            )

        [email] = fake_email.sent_of_kind("payment_failed")
        assert "Reason: Insufficient funds" in email["body"]


class CommitRendezvous:
    """Holds the first `parties` writers after their revision check until all have arrived.

    Audit entries are written after the order save and before the unit of
    work commits, so every writer gets past the check before any commits.
    """

    def __init__(self, record_audit, parties=2):
        self._record_audit = record_audit
        self._barrier = threading.Barrier(parties, timeout=5)
        self._lock = threading.Lock()
        self._arrivals = 0

    def __call__(self, *args, **kwargs):
        with self._lock:
            self._arrivals += 1
            wait = self._arrivals <= self._barrier.parties
        if wait:
            self._barrier.wait()
        return self._record_audit(*args, **kwargs)


def _deliver_in_thread(payload, errors):
    with ordering.domain_context():
        try:
            current_domain.process(
                ProcessChargeWebhook(event="charge.completed", data=json.dumps(payload)),
                asynchronous=False,
            )
        except Exception as exc:  # the losing commit may surface here
            errors.append(exc)


class TestConcurrentDeliveries:
    def test_simultaneous_success_webhooks_email_once(self, order_factory, fake_email, monkeypatch):
        order = order_factory(charge_id="chg_123")
        monkeypatch.setattr(
            reconciliation_module, "record_audit", CommitRendezvous(reconciliation_module.record_audit)
        )

        errors = []
        payload = {"id": "chg_123", "status": "succeeded"}
        threads = [threading.Thread(target=_deliver_in_thread, args=(payload, errors)) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert not any(isinstance(error, threading.BrokenBarrierError) for error in errors)
        stored = _reload(order)
        assert stored.status == "processing"
        assert stored.payment_status == "paid"
        assert len(entries_for(order.id, "payment_received")) == 1
        assert len(fake_email.sent_of_kind("payment_successful")) == 1


class TestCorrelation:
    def test_reference_is_alphanumeric(self):
        assert build_reference("ORD-2026_01", 1736860000) == "ORDERORD2026011736860000"

    def test_clean_reference_keeps_dashes(self):
        assert clean_reference(" ORDER-ORD1-17 ") == "ORDER-ORD1-17"

    def test_charge_id_wins(self, order_factory):
        order = order_factory(charge_id="chg_123")
        assert find_order("chg_123", "garbage").id == order.id

    def test_ambiguous_reference_resolves_to_not_found(self, order_factory):
        order_factory(order_number="ORD20260114AAAAAA")
        order_factory(order_number="ORD20260114BBBBBB")

        reference = "ORDERORD20260114AAAAAAORD20260114BBBBBB"
        assert find_order("chg_missing", reference) is None

    def test_dashed_reference_format(self, order_factory):
        order = order_factory(order_number="ORD20260114DASH01")
        assert find_order(None, "ORDER-ORD20260114DASH01-1736860000").id == order.id

    def test_plain_order_number_reference(self, order_factory):
        order = order_factory(order_number="ORD20260114PLAIN1")
        assert find_order(None, "ORD20260114PLAIN1").id == order.id

    def test_nothing_matches(self, order_factory):
        order_factory(order_number="ORD20260114AAAAAA")
        assert find_order("chg_none", "ORDERZZZ1736860000") is None
        assert find_order(None, None) is None
