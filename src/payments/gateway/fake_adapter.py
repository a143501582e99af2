"""Configurable fake payment processor for development and testing.

This adapter simulates a hosted-checkout processor without any external
calls. It can be configured at runtime to succeed or fail, and it signs
events with HMAC-SHA256 the same way the real processor does, so the webhook
path can be exercised end to end:

    gateway = FakeGateway()
    redirect = gateway.create_checkout_session(...)
    payload, signature = gateway.completed_event_for(redirect.session_id)

Sessions start unpaid; ``pay()`` marks one paid so ``retrieve_session()``
reports it the way the processor does after the customer returns.
"""

import hashlib
import hmac
import json
import time
from uuid import uuid4

from payments.gateway.port import CHECKOUT_COMPLETED, PAID, CheckoutSession, GatewayEvent, PaymentGateway, event_from_body
from pricing.markup import to_minor_units
from shared.errors import InvalidSignature, NotFound, PaymentProviderUnavailable

DEFAULT_WEBHOOK_SECRET = "whsec_fake_secret"


class FakeGateway(PaymentGateway):
    """Configurable fake payment processor."""

    def __init__(self, webhook_secret: str = DEFAULT_WEBHOOK_SECRET) -> None:
        self.webhook_secret = webhook_secret
        self.should_succeed: bool = True
        self.failure_reason: str = "Processor unavailable"
        self.calls: list[dict] = []
        self.sessions: dict[str, dict] = {}
        self.payment_status: dict[str, str] = {}
        self.customer_emails: dict[str, str | None] = {}

    def configure(self, should_succeed: bool, failure_reason: str = "Processor unavailable") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def create_checkout_session(
        self,
        amount: float,
        currency: str,
        description: str,
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
        customer_email: str | None = None,
        idempotency_key: str | None = None,
    ) -> CheckoutSession:
        call = {
            "method": "create_checkout_session",
            "amount": amount,
            "currency": currency,
            "description": description,
            "metadata": dict(metadata),
            "customer_email": customer_email,
            "idempotency_key": idempotency_key,
        }
        self.calls.append(call)

        if not self.should_succeed:
            raise PaymentProviderUnavailable(self.failure_reason)

        session_id = f"cs_fake_{uuid4().hex[:16]}"
        self.sessions[session_id] = call
        self.payment_status[session_id] = "unpaid"
        self.customer_emails[session_id] = customer_email
        return CheckoutSession(
            session_id=session_id,
            redirect_url=f"https://checkout.fake/pay/{session_id}",
        )

    # -------------------------------------------------------------------
    # Webhooks
    # -------------------------------------------------------------------
    def sign(self, payload: bytes, timestamp: int | None = None) -> str:
        """Build a ``t=...,v1=...`` signature header for ``payload``."""
        timestamp = timestamp or int(time.time())
        signed = f"{timestamp}.".encode() + payload
        digest = hmac.new(self.webhook_secret.encode(), signed, hashlib.sha256).hexdigest()
        return f"t={timestamp},v1={digest}"

    def parse_event(self, payload: bytes, signature: str | None) -> GatewayEvent:
        if not signature:
            raise InvalidSignature({"signature": ["Missing signature header"]})

        parts = dict(part.split("=", 1) for part in signature.split(",") if "=" in part)
        timestamp, digest = parts.get("t"), parts.get("v1")
        if not timestamp or not digest:
            raise InvalidSignature({"signature": ["Malformed signature header"]})
        try:
            signed_at = int(timestamp)
        except ValueError as exc:
            raise InvalidSignature({"signature": ["Malformed signature timestamp"]}) from exc

        expected = self.sign(payload, signed_at).split("v1=", 1)[1]
        if not hmac.compare_digest(expected, digest):
            raise InvalidSignature({"signature": ["Signature does not match payload"]})

        try:
            body = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise InvalidSignature({"payload": ["Event body is not valid UTF-8"]}) from exc
        return event_from_body(body)

    def event_payload(self, event_type: str, data: dict) -> tuple[bytes, str]:
        """Serialize and sign an arbitrary event."""
        body = {"id": f"evt_fake_{uuid4().hex[:12]}", "type": event_type, "data": {"object": data}}
        payload = json.dumps(body).encode("utf-8")
        return payload, self.sign(payload)

    def completed_event_for(
        self,
        session_id: str,
        amount_total: float | None = None,
        customer_email: str | None = "buyer@example.com",
        payment_status: str = PAID,
    ) -> tuple[bytes, str]:
        """The signed ``checkout.session.completed`` event for a session opened here."""
        data = self._session_object(session_id, amount_total, customer_email, payment_status)
        return self.event_payload(CHECKOUT_COMPLETED, data)

    # -------------------------------------------------------------------
    # Session lookup
    # -------------------------------------------------------------------
    def pay(self, session_id: str, customer_email: str | None = "buyer@example.com") -> None:
        """Simulate the customer completing payment on the hosted page."""
        if session_id not in self.sessions:
            raise NotFound({"session_id": ["Checkout session not found"]})
        self.payment_status[session_id] = PAID
        self.customer_emails[session_id] = customer_email

    def retrieve_session(self, session_id: str) -> dict:
        self.calls.append({"method": "retrieve_session", "session_id": session_id})
        if not self.should_succeed:
            raise PaymentProviderUnavailable(self.failure_reason)
        if session_id not in self.sessions:
            raise NotFound({"session_id": ["Checkout session not found"]})
        return self._session_object(
            session_id,
            customer_email=self.customer_emails.get(session_id),
            payment_status=self.payment_status[session_id],
        )

    def _session_object(
        self,
        session_id: str,
        amount_total: float | None = None,
        customer_email: str | None = None,
        payment_status: str = PAID,
    ) -> dict:
        session = self.sessions[session_id]
        amount = session["amount"] if amount_total is None else amount_total
        return {
            "id": session_id,
            "object": "checkout.session",
            "amount_total": to_minor_units(amount),
            "currency": session["currency"].lower(),
            "customer_details": {"email": customer_email},
            "metadata": session["metadata"],
            "payment_status": payment_status,
        }
