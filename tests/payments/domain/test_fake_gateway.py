"""Tests for the fake processor: sessions, signing and event decoding."""

import json

import pytest
from payments.gateway.fake_adapter import FakeGateway
from payments.gateway.port import CHECKOUT_COMPLETED, event_from_body
from shared.errors import InvalidSignature, NotFound, PaymentProviderUnavailable


def _open_session(gateway, amount=182.0):
    return gateway.create_checkout_session(
        amount=amount,
        currency="USD",
        description="Custom tailoring order (2 items)",
        metadata={"customer_id": "cust-001"},
        success_url="http://localhost:3000/checkout/success",
        cancel_url="http://localhost:3000/bag",
        idempotency_key="checkout-bag-1-1",
    )


class TestCheckoutSessions:
    def test_session_opened(self):
        gateway = FakeGateway()
        session = _open_session(gateway)

        assert session.session_id.startswith("cs_fake_")
        assert session.redirect_url.endswith(session.session_id)
        assert gateway.calls[0]["idempotency_key"] == "checkout-bag-1-1"

    def test_configured_failure(self):
        gateway = FakeGateway()
        gateway.configure(should_succeed=False, failure_reason="Card network down")

        with pytest.raises(PaymentProviderUnavailable) as exc:
            _open_session(gateway)
        assert exc.value.first_message() == "Card network down"
        assert gateway.sessions == {}


class TestSignatures:
    def test_completed_event_round_trip(self):
        gateway = FakeGateway()
        session = _open_session(gateway)

        payload, signature = gateway.completed_event_for(session.session_id)
        event = gateway.parse_event(payload, signature)

        assert event.is_checkout_completed
        assert event.data["id"] == session.session_id
        assert event.data["amount_total"] == 18200
        assert event.data["metadata"] == {"customer_id": "cust-001"}

    def test_tampered_payload(self):
        gateway = FakeGateway()
        payload, signature = gateway.event_payload(CHECKOUT_COMPLETED, {"id": "cs_1"})

        with pytest.raises(InvalidSignature):
            gateway.parse_event(payload.replace(b"cs_1", b"cs_2"), signature)

    def test_wrong_secret(self):
        payload, signature = FakeGateway(webhook_secret="whsec_other").event_payload("charge.refunded", {})
        with pytest.raises(InvalidSignature):
            FakeGateway().parse_event(payload, signature)

    @pytest.mark.parametrize("signature", [None, "", "garbage", "t=123", "t=abc,v1=def"])
    def test_missing_or_malformed_header(self, signature):
        with pytest.raises(InvalidSignature):
            FakeGateway().parse_event(b"{}", signature)

    def test_signed_body_that_is_not_utf8(self):
        gateway = FakeGateway()
        payload = b"\xff\xfe{}"

        with pytest.raises(InvalidSignature):
            gateway.parse_event(payload, gateway.sign(payload))


class TestEventFromBody:
    def test_other_event_type(self):
        event = event_from_body(json.dumps({"id": "evt_1", "type": "charge.refunded", "data": {"object": {}}}))
        assert event.event_id == "evt_1"
        assert not event.is_checkout_completed

    @pytest.mark.parametrize("body", ["not json", "[]", json.dumps({"id": "evt_1"})])
    def test_unusable_body(self, body):
        with pytest.raises(InvalidSignature):
            event_from_body(body)


class TestSessionLookup:
    def test_new_session_is_unpaid(self):
        gateway = FakeGateway()
        session = _open_session(gateway)

        data = gateway.retrieve_session(session.session_id)
        assert data["payment_status"] == "unpaid"
        assert data["amount_total"] == 18200
        assert data["metadata"] == {"customer_id": "cust-001"}

    def test_paid_session(self):
        gateway = FakeGateway()
        session = _open_session(gateway, amount=129.99)
        gateway.pay(session.session_id, customer_email="ada@example.com")

        data = gateway.retrieve_session(session.session_id)
        assert data["payment_status"] == "paid"
        assert data["amount_total"] == 12999
        assert data["customer_details"] == {"email": "ada@example.com"}

    def test_unknown_session(self):
        with pytest.raises(NotFound):
            FakeGateway().retrieve_session("cs_missing")

    def test_configured_failure(self):
        gateway = FakeGateway()
        session = _open_session(gateway)
        gateway.configure(should_succeed=False)

        with pytest.raises(PaymentProviderUnavailable):
            gateway.retrieve_session(session.session_id)
