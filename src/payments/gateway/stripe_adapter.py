"""Stripe payment processor adapter.

Uses the stripe-python SDK to:
- Create hosted Checkout Sessions
- Retrieve a session when the customer returns from checkout
- Verify webhook signatures using Stripe's signing secret
"""

import stripe
import structlog

from payments.gateway.port import CheckoutSession, GatewayEvent, PaymentGateway, event_from_body
from pricing.markup import to_minor_units
from shared.errors import InvalidSignature, NotFound, PaymentProviderUnavailable

logger = structlog.get_logger(__name__)


class StripeGateway(PaymentGateway):
    """Production Stripe adapter."""

    def __init__(self, api_key: str, webhook_secret: str, timeout: float = 10.0, tolerance: int = 300) -> None:
        if not api_key or not webhook_secret:
            raise ValueError("Stripe API key and webhook secret are required")
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.tolerance = tolerance
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout)

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
        params = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": [
                {
                    "quantity": 1,
                    "price_data": {
                        "currency": currency.lower(),
                        "unit_amount": to_minor_units(amount),
                        "product_data": {"name": description},
                    },
                }
            ],
            "metadata": metadata,
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        if customer_email:
            params["customer_email"] = customer_email

        try:
            session = stripe.checkout.Session.create(
                api_key=self.api_key,
                idempotency_key=idempotency_key,
                **params,
            )
        except stripe.StripeError as exc:
            logger.error("Stripe checkout session failed", error=str(exc), error_type=type(exc).__name__)
            raise PaymentProviderUnavailable({"payment_provider": [str(exc)]}) from exc

        return CheckoutSession(session_id=session.id, redirect_url=session.url)

    def parse_event(self, payload: bytes, signature: str | None) -> GatewayEvent:
        if not signature:
            raise InvalidSignature({"signature": ["Missing signature header"]})

        try:
            body = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise InvalidSignature({"payload": ["Event body is not valid UTF-8"]}) from exc

        try:
            stripe.WebhookSignature.verify_header(body, signature, self.webhook_secret, self.tolerance)
        except stripe.SignatureVerificationError as exc:
            raise InvalidSignature({"signature": [str(exc)]}) from exc

        return event_from_body(body)

    def retrieve_session(self, session_id: str) -> dict:
        try:
            session = stripe.checkout.Session.retrieve(session_id, api_key=self.api_key)
        except stripe.InvalidRequestError as exc:
            if exc.code == "resource_missing":
                raise NotFound({"session_id": ["Checkout session not found"]}) from exc
            logger.error("Stripe session lookup rejected", session_id=session_id, error=str(exc))
            raise PaymentProviderUnavailable({"payment_provider": [str(exc)]}) from exc
        except stripe.StripeError as exc:
            logger.error("Stripe session lookup failed", session_id=session_id, error=str(exc))
            raise PaymentProviderUnavailable({"payment_provider": [str(exc)]}) from exc

        return session.to_dict()
