"""Tests for webhook signatures and the charge status vocabulary."""

import pytest
from payments.gateway.port import CardCiphertext, ChargeDetails, PaymentRequest
from payments.gateway.signature import compute_signature, verify_signature
from payments.gateway.status import ChargeOutcome, classify_charge_status

BODY = b'{"event":"charge.completed","data":{"id":"chg_1"}}'


class TestWebhookSignature:
    def test_valid_signature(self):
        assert verify_signature(BODY, compute_signature(BODY, "whsec"), "whsec") is True

    def test_str_and_bytes_payloads_agree(self):
        assert compute_signature(BODY.decode(), "whsec") == compute_signature(BODY, "whsec")

    def test_tampered_body(self):
        signature = compute_signature(BODY, "whsec")
        assert verify_signature(BODY + b" ", signature, "whsec") is False

    def test_missing_signature(self):
        assert verify_signature(BODY, None, "whsec") is False
        assert verify_signature(BODY, "", "whsec") is False

    def test_no_secret_skips_check_in_development(self):
        assert verify_signature(BODY, None, None) is True

    def test_no_secret_fails_closed_when_required(self):
        assert verify_signature(BODY, "anything", None, required=True) is False


class TestChargeStatus:
    @pytest.mark.parametrize(
        "status, outcome",
        [
            ("successful", ChargeOutcome.SUCCESSFUL),
            ("SUCCEEDED", ChargeOutcome.SUCCESSFUL),
            ("failed", ChargeOutcome.FAILED),
            ("cancelled", ChargeOutcome.FAILED),
            ("declined", ChargeOutcome.FAILED),
            (" pending ", ChargeOutcome.PENDING),
            ("processing", ChargeOutcome.PENDING),
            ("voided", ChargeOutcome.UNKNOWN),
            ("", ChargeOutcome.UNKNOWN),
            (None, ChargeOutcome.UNKNOWN),
        ],
    )
    def test_classification(self, status, outcome):
        assert classify_charge_status(status) == outcome

    def test_charge_details_outcome(self):
        assert ChargeDetails(charge_id="chg_1", status="succeeded").outcome == ChargeOutcome.SUCCESSFUL


class TestPaymentRequest:
    def _request(self, method, card=None):
        return PaymentRequest(
            order_id="ord-1",
            order_number="ORD20260114ABC123",
            reference="ORDERORD20260114ABC1231768392000",
            amount=15000.0,
            customer_email="aline@example.com",
            customer_name="Aline Uwase",
            customer_phone="0781234567",
            payment_method=method,
            card=card,
        )

    def test_method_families(self):
        assert self._request("credit_card").is_card
        assert self._request("debit_card").is_card
        assert self._request("mtn_momo").is_mobile_money
        assert not self._request("bank_transfer").is_card
        assert not self._request("bank_transfer").is_mobile_money

    def test_card_ciphertext_completeness(self):
        assert not CardCiphertext(encrypted_card_number="x").is_complete()
        assert CardCiphertext("a", "b", "c", "d", "e").is_complete()
