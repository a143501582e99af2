"""Checkout initiation: turns an open bag into a processor checkout session.

Every check that can fail (authentication, address, bag state, metadata
limits) runs before the processor is called. No order exists yet: the order
is created only when the processor confirms payment.
"""

import hashlib
import json
from dataclasses import dataclass

import structlog
from pydantic import BaseModel, ConfigDict, Field

from ordering.bag.store import BagStore, BagView
from ordering.checkout.metadata import (
    CheckoutLineItem,
    CheckoutMetadata,
    ShippingAddress,
    encode_metadata,
    parse_shipping_address,
)
from ordering.checkout.session import CheckoutSessionRecord
from payments.gateway import get_gateway
from payments.gateway.port import PaymentGateway
from pricing.currency import CurrencyConversionService, get_currency_service
from pricing.markup import round_money
from shared.config import get_settings
from shared.database import session_scope
from shared.errors import InvalidCheckoutState, Unauthenticated

logger = structlog.get_logger(__name__)


class DirectPurchase(BaseModel):
    """A single design bought without going through the bag."""

    model_config = ConfigDict(extra="forbid")

    tailor_id: str = Field(min_length=1)
    design_id: str = Field(min_length=1)
    price: float = Field(ge=0)
    currency: str | None = None
    tailor_notes: str | None = None
    measurement_ref: str | None = None
    fabric_index: int | None = None
    color_index: int | None = None
    fabric_selection: str | None = None
    color_selection: str | None = None
    style_type: str | None = None
    fabric_yards: float | None = None
    completion_weeks: int | None = Field(default=None, ge=0)


@dataclass(frozen=True)
class CheckoutRedirect:
    session_id: str
    redirect_url: str
    settlement_total: float
    currency: str


class CheckoutInitiator:
    def __init__(
        self,
        bag_store: BagStore | None = None,
        gateway: PaymentGateway | None = None,
        currency_service: CurrencyConversionService | None = None,
        settings=None,
    ) -> None:
        self.bag_store = bag_store or BagStore()
        self._gateway = gateway
        self._currency_service = currency_service
        self.settings = settings or get_settings()

    @property
    def gateway(self) -> PaymentGateway:
        return self._gateway or get_gateway()

    @property
    def currency_service(self) -> CurrencyConversionService:
        return self._currency_service or get_currency_service()

    # -------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------
    def initiate(
        self,
        customer_id: str,
        shipping_address: dict | ShippingAddress | None,
        tailor_id: str | None = None,
        customer_email: str | None = None,
    ) -> CheckoutRedirect:
        """Start payment for the customer's open bag."""
        _require_customer(customer_id)
        address = parse_shipping_address(shipping_address)
        view = self._bag_for_checkout(customer_id, tailor_id)

        items = [CheckoutLineItem.model_validate(item.snapshot()) for item in view.items]
        return self._open_session(
            customer_id=customer_id,
            tailor_id=view.bag.tailor_id,
            bag_id=view.bag.id,
            address=address,
            items=items,
            customer_email=customer_email,
            idempotency_scope=f"{view.bag.id}-{view.bag.version}",
        )

    def initiate_direct(
        self,
        customer_id: str,
        purchase: DirectPurchase,
        shipping_address: dict | ShippingAddress | None,
        customer_email: str | None = None,
    ) -> CheckoutRedirect:
        """Start payment for a single design, leaving the bag alone."""
        _require_customer(customer_id)
        address = parse_shipping_address(shipping_address)

        line = purchase.model_dump(exclude={"tailor_id"})
        line["currency"] = (purchase.currency or self.settings.settlement_currency).upper()
        return self._open_session(
            customer_id=customer_id,
            tailor_id=purchase.tailor_id,
            bag_id=None,
            address=address,
            items=[CheckoutLineItem.model_validate(line)],
            customer_email=customer_email,
            idempotency_scope=None,
        )

    # -------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------
    def _bag_for_checkout(self, customer_id: str, tailor_id: str | None) -> BagView:
        bags = self.bag_store.list_open(customer_id)
        if tailor_id:
            bags = [view for view in bags if view.bag.tailor_id == tailor_id]

        if not bags:
            raise InvalidCheckoutState({"bag": ["No open bag to check out"]})
        if len(bags) > 1:
            raise InvalidCheckoutState({"tailor_id": ["Several open bags; choose the tailor to check out"]})

        view = bags[0]
        if not view.items:
            raise InvalidCheckoutState({"bag": ["Bag is empty"]})
        return view

    def settlement_total(self, items: list[CheckoutLineItem]) -> float:
        currency = self.settings.settlement_currency
        total = sum(self.currency_service.convert(item.price, item.currency, currency).amount for item in items)
        return round_money(total)

    def _open_session(
        self,
        customer_id: str,
        tailor_id: str,
        bag_id: str | None,
        address: ShippingAddress,
        items: list[CheckoutLineItem],
        customer_email: str | None,
        idempotency_scope: str | None,
    ) -> CheckoutRedirect:
        currency = self.settings.settlement_currency
        total = self.settlement_total(items)

        metadata = encode_metadata(
            CheckoutMetadata(
                customer_id=customer_id,
                tailor_id=tailor_id,
                bag_id=bag_id,
                shipping_address=address,
                items=items,
                total=total,
                currency=currency,
            )
        )

        base_url = self.settings.app_base_url
        request = {
            "amount": total,
            "currency": currency,
            "description": f"Custom tailoring order ({len(items)} item{'s' if len(items) != 1 else ''})",
            "metadata": metadata,
            "success_url": f"{base_url}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}",
            "cancel_url": f"{base_url}/bag",
            "customer_email": customer_email,
        }
        session = self.gateway.create_checkout_session(
            **request,
            idempotency_key=_idempotency_key(idempotency_scope, request) if idempotency_scope else None,
        )

        with session_scope() as db:
            db.merge(
                CheckoutSessionRecord(
                    session_id=session.session_id,
                    customer_id=customer_id,
                    tailor_id=tailor_id,
                    bag_id=bag_id,
                    session_metadata=metadata,
                    settlement_total=total,
                    currency=currency,
                )
            )

        logger.info(
            "Checkout session created",
            session_id=session.session_id,
            customer_id=customer_id,
            tailor_id=tailor_id,
            bag_id=bag_id,
            settlement_total=total,
            currency=currency,
        )
        return CheckoutRedirect(
            session_id=session.session_id,
            redirect_url=session.redirect_url,
            settlement_total=total,
            currency=currency,
        )


def _require_customer(customer_id: str | None) -> None:
    if not customer_id:
        raise Unauthenticated({"customer_id": ["Authentication required"]})


def _idempotency_key(scope: str, request: dict) -> str:
    """A processor idempotency key that changes whenever the request does.

    Retrying an identical request reuses the key; a corrected address, a new
    email or a moved exchange rate produces a new one.
    """
    digest = hashlib.sha256(json.dumps(request, sort_keys=True).encode("utf-8")).hexdigest()
    return f"checkout-{scope}-{digest[:32]}"
