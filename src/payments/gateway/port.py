"""Payment processor port (abstract interface).

Defines the contract that the processor adapters implement: opening a
hosted checkout session, looking one up again after the customer returns,
and authenticating the events the processor sends back. This enables swapping between FakeGateway (dev/test) and StripeGateway
(production) without changing any domain or application code.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from shared.errors import InvalidSignature

CHECKOUT_COMPLETED = "checkout.session.completed"
PAID = "paid"


@dataclass(frozen=True)
class CheckoutSession:
    """A hosted checkout session opened with the processor."""

    session_id: str
    redirect_url: str


@dataclass(frozen=True)
class GatewayEvent:
    """An authenticated processor event.

    ``data`` is the event's object as sent by the processor; it is parsed
    strictly by whoever handles the event type.
    """

    event_id: str | None
    type: str
    data: dict = field(default_factory=dict)

    @property
    def is_checkout_completed(self) -> bool:
        return self.type == CHECKOUT_COMPLETED


def event_from_body(body: str) -> GatewayEvent:
    """Build a GatewayEvent from an authenticated JSON body."""
    try:
        document = json.loads(body)
    except ValueError as exc:
        raise InvalidSignature({"payload": ["Event body is not valid JSON"]}) from exc
    if not isinstance(document, dict) or "type" not in document:
        raise InvalidSignature({"payload": ["Event body has no type"]})

    data = (document.get("data") or {}).get("object") or {}
    return GatewayEvent(event_id=document.get("id"), type=document["type"], data=data)


class PaymentGateway(ABC):
    """Abstract payment processor interface."""

    @abstractmethod
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
        """Open a hosted checkout session for ``amount`` (major units).

        Raises:
            PaymentProviderUnavailable: the processor could not be reached or
                refused the request.
        """
        ...

    @abstractmethod
    def parse_event(self, payload: bytes, signature: str | None) -> GatewayEvent:
        """Authenticate ``payload`` against ``signature`` and decode it.

        Raises:
            InvalidSignature: the signature is missing or does not match.
        """
        ...

    @abstractmethod
    def retrieve_session(self, session_id: str) -> dict:
        """Fetch a checkout session as the processor currently reports it.

        The returned dict has the same shape as the object carried by a
        ``checkout.session.completed`` event.

        Raises:
            NotFound: the processor has no such session.
            PaymentProviderUnavailable: the processor could not be reached.
        """
        ...
