"""Payment event handling: turns a confirmed checkout into exactly one order.

Steps, in order:

1. verify    the processor signature (``InvalidSignature`` is terminal)
2. filter    anything but a paid, completed checkout is acknowledged and ignored
3. parse     the event body and metadata strictly (``MalformedMetadata``)
4. dedupe    one order per payment reference, under a per-reference lock
5. persist   order, items, bag cleanup and session bookkeeping in one transaction
6. notify    customer and tailor, after the commit

The processor retries any event that is not acknowledged, so replays are
normal and must be answered with success. A customer returning from the
hosted page can also confirm a session directly; that path fetches the
session from the processor and joins the same steps at 3.
"""

from dataclasses import dataclass, field

import pydantic
import structlog
from pydantic import BaseModel, ConfigDict
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from notifications.dispatcher import NotificationDispatcher
from notifications.notification import DispatchReport, NotificationType
from ordering.bag.bag import Bag
from ordering.bag.store import bag_lock
from ordering.checkout.metadata import CheckoutMetadata, decode_metadata
from ordering.checkout.session import CheckoutSessionRecord
from ordering.order.order import Order
from payments.gateway import get_gateway
from payments.gateway.port import PAID, PaymentGateway
from pricing.markup import from_minor_units
from shared.concurrency import KeyedLock
from shared.database import session_scope
from shared.errors import Forbidden, InvalidCheckoutState, MalformedMetadata, PersistenceFailure, Unauthenticated

logger = structlog.get_logger(__name__)

TOTAL_TOLERANCE = 0.01

_reference_locks = KeyedLock()


class CustomerDetails(BaseModel):
    email: str | None = None


class CompletedCheckout(BaseModel):
    """The parts of a completed checkout session this system relies on."""

    model_config = ConfigDict(extra="ignore")

    id: str = pydantic.Field(min_length=1)
    amount_total: int = pydantic.Field(ge=0)
    currency: str = pydantic.Field(min_length=3, max_length=3)
    customer_details: CustomerDetails | None = None
    customer_email: str | None = None
    payment_status: str | None = None
    metadata: dict[str, str]

    @property
    def contact(self) -> str | None:
        if self.customer_details and self.customer_details.email:
            return self.customer_details.email
        return self.customer_email

    @property
    def amount(self) -> float:
        return from_minor_units(self.amount_total)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PAID


@dataclass(frozen=True)
class WebhookOutcome:
    status: str  # created | already_processed | ignored | unpaid
    order_id: str | None = None
    notifications: DispatchReport | None = field(default=None, compare=False)


class PaymentEventHandler:
    def __init__(
        self,
        gateway: PaymentGateway | None = None,
        dispatcher: NotificationDispatcher | None = None,
    ) -> None:
        self._gateway = gateway
        self._dispatcher = dispatcher

    @property
    def gateway(self) -> PaymentGateway:
        return self._gateway or get_gateway()

    @property
    def dispatcher(self) -> NotificationDispatcher:
        if self._dispatcher is None:
            self._dispatcher = NotificationDispatcher()
        return self._dispatcher

    def handle(self, payload: bytes, signature: str | None) -> WebhookOutcome:
        event = self.gateway.parse_event(payload, signature)

        if not event.is_checkout_completed:
            logger.info("Payment event ignored", event_type=event.type, event_id=event.event_id)
            return WebhookOutcome(status="ignored")

        checkout, metadata = self._parse(event.data, event_id=event.event_id)
        if not checkout.is_paid:
            logger.info(
                "Completed checkout is not paid",
                payment_reference=checkout.id,
                payment_status=checkout.payment_status,
                event_id=event.event_id,
            )
            return WebhookOutcome(status="unpaid")
        return self._place(checkout, metadata)

    def confirm_session(self, session_id: str, customer_id: str | None) -> WebhookOutcome:
        """Materialize the order for a session the customer has just paid.

        Used when the customer returns from the hosted page before the
        processor's event has arrived. Safe to repeat, and safe to race
        with the event: both end in the same single order.
        """
        if not customer_id:
            raise Unauthenticated({"customer_id": ["Authentication required"]})

        checkout, metadata = self._parse(self.gateway.retrieve_session(session_id))
        if metadata.customer_id != customer_id:
            raise Forbidden({"session_id": ["Checkout session belongs to another customer"]})
        if not checkout.is_paid:
            raise InvalidCheckoutState({"payment": ["Payment not completed"]})
        return self._place(checkout, metadata)

    # -------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------
    def _parse(self, data: dict, event_id: str | None = None) -> tuple[CompletedCheckout, CheckoutMetadata]:
        try:
            checkout = CompletedCheckout.model_validate(data)
            metadata = decode_metadata(checkout.metadata)
        except pydantic.ValidationError as exc:
            error = MalformedMetadata({"payload": [str(exc)]})
            self._alert_malformed(data, event_id, error)
            raise error from exc
        except MalformedMetadata as exc:
            self._alert_malformed(data, event_id, exc)
            raise

        if abs(checkout.amount - metadata.total) > TOTAL_TOLERANCE:
            logger.warning(
                "Processor total differs from checkout total",
                payment_reference=checkout.id,
                processor_total=checkout.amount,
                metadata_total=metadata.total,
                anomaly="total_mismatch",
            )
        return checkout, metadata

    def _alert_malformed(self, data: dict, event_id: str | None, error: MalformedMetadata) -> None:
        logger.error(
            "Payment event metadata is malformed",
            event_id=event_id,
            session_id=data.get("id"),
            errors=error.messages,
            alert="operator",
        )

    def _place(self, checkout: CompletedCheckout, metadata: CheckoutMetadata) -> WebhookOutcome:
        with _reference_locks.hold(checkout.id):
            existing = self._existing_order_id(checkout.id)
            if existing is not None:
                logger.info("Payment event already processed", payment_reference=checkout.id, order_id=existing)
                return WebhookOutcome(status="already_processed", order_id=existing)

            try:
                order = self._materialize(checkout, metadata)
            except PersistenceFailure as exc:
                if not isinstance(exc.__cause__, IntegrityError):
                    logger.error(
                        "Order materialization failed",
                        payment_reference=checkout.id,
                        error=exc.first_message(),
                        alert="operator",
                    )
                    raise
                existing = self._existing_order_id(checkout.id)
                if existing is None:
                    raise
                logger.info("Order created concurrently", payment_reference=checkout.id, order_id=existing)
                return WebhookOutcome(status="already_processed", order_id=existing)

        report = None
        for placed in order.pull_events():
            report = self.dispatcher.notify_all(
                NotificationType.ORDER_PLACED,
                order,
                extra={"totalAmount": placed.total_amount, "currency": placed.currency},
            )
        return WebhookOutcome(status="created", order_id=order.id, notifications=report)

    def _existing_order_id(self, payment_reference: str) -> str | None:
        with session_scope() as session:
            return session.scalar(select(Order.id).where(Order.payment_reference == payment_reference))

    def _materialize(self, checkout: CompletedCheckout, metadata: CheckoutMetadata) -> Order:
        order = Order.place(
            payment_reference=checkout.id,
            metadata=metadata,
            total_amount=checkout.amount,
            currency=checkout.currency,
            customer_contact=checkout.contact,
        )

        with bag_lock(metadata.customer_id, metadata.tailor_id):
            with session_scope() as session:
                session.add(order)
                # Unique payment reference turns a concurrent duplicate into IntegrityError here
                session.flush()

                removed: list[str] = []
                if metadata.bag_id:
                    bag = session.get(Bag, metadata.bag_id)
                    if bag is not None and bag.customer_id == metadata.customer_id:
                        removed = bag.discard_purchased(metadata.bag_item_ids)

                record = session.get(CheckoutSessionRecord, checkout.id)
                if record is not None:
                    record.consume()

        logger.info(
            "Order created from payment",
            order_id=order.id,
            payment_reference=checkout.id,
            customer_id=order.customer_id,
            tailor_id=order.tailor_id,
            total_amount=order.total_amount,
            currency=order.currency,
            bag_items_removed=len(removed),
        )
        return order
