"""Order aggregate: a paid tailoring order and its workflow.

Orders are created only when the payment processor confirms a checkout, and
change only through ``transition_to``. Each successful transition records
one ``OrderStatusChanged`` event for the application layer to publish after
commit.

State Machine:
    PENDING → ACCEPTED → IN_PROGRESS → READY_TO_SHIP → SHIPPED → DELIVERED
    PENDING → REJECTED
    PENDING → CANCELLED
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from uuid import uuid4

from sqlalchemy import JSON, Date, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, reconstructor, relationship

from identity.profile import ProfileRole
from ordering.checkout.metadata import CheckoutMetadata
from ordering.order.events import OrderPlaced, OrderStatusChanged
from shared.database import Base, UTCDateTime, utcnow
from shared.errors import Forbidden, InvalidTransition, ValidationError


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    IN_PROGRESS = "in_progress"
    READY_TO_SHIP = "ready_to_ship"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.ACCEPTED, OrderStatus.REJECTED, OrderStatus.CANCELLED},
    OrderStatus.ACCEPTED: {OrderStatus.IN_PROGRESS},
    OrderStatus.IN_PROGRESS: {OrderStatus.READY_TO_SHIP},
    OrderStatus.READY_TO_SHIP: {OrderStatus.SHIPPED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.REJECTED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}

# Roles allowed to drive each transition. Tailors and customers must also
# own the order.
_TRANSITION_ROLES = {
    (OrderStatus.PENDING, OrderStatus.ACCEPTED): {ProfileRole.TAILOR},
    (OrderStatus.PENDING, OrderStatus.REJECTED): {ProfileRole.TAILOR},
    (OrderStatus.ACCEPTED, OrderStatus.IN_PROGRESS): {ProfileRole.TAILOR},
    (OrderStatus.IN_PROGRESS, OrderStatus.READY_TO_SHIP): {ProfileRole.TAILOR},
    (OrderStatus.READY_TO_SHIP, OrderStatus.SHIPPED): {ProfileRole.ADMIN},
    (OrderStatus.SHIPPED, OrderStatus.DELIVERED): {ProfileRole.ADMIN},
    (OrderStatus.PENDING, OrderStatus.CANCELLED): {ProfileRole.CUSTOMER, ProfileRole.ADMIN},
}


@dataclass(frozen=True)
class Actor:
    """Whoever is asking for a transition."""

    id: str
    role: ProfileRole


def _new_id() -> str:
    return str(uuid4())


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
class OrderItem(Base):
    """Snapshot of a purchased bag item, frozen at payment time."""

    __tablename__ = "order_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), index=True)
    bag_item_id: Mapped[str | None] = mapped_column(String(36), default=None)
    design_id: Mapped[str] = mapped_column(String(64))
    price: Mapped[float] = mapped_column(Float)
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    fabric_index: Mapped[int | None] = mapped_column(Integer, default=None)
    color_index: Mapped[int | None] = mapped_column(Integer, default=None)
    fabric_selection: Mapped[str | None] = mapped_column(String(255), default=None)
    color_selection: Mapped[str | None] = mapped_column(String(255), default=None)
    style_type: Mapped[str | None] = mapped_column(String(64), default=None)
    fabric_yards: Mapped[float | None] = mapped_column(Float, default=None)
    tailor_notes: Mapped[str | None] = mapped_column(Text, default=None)
    measurement_ref: Mapped[str | None] = mapped_column(String(64), default=None)
    completion_weeks: Mapped[int | None] = mapped_column(Integer, default=None)

    order: Mapped["Order"] = relationship(back_populates="items")


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------
class Order(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    customer_id: Mapped[str] = mapped_column(String(64), index=True)
    tailor_id: Mapped[str] = mapped_column(String(64), index=True)
    status: Mapped[str] = mapped_column(String(20), default=OrderStatus.PENDING.value)
    total_amount: Mapped[float] = mapped_column(Float)
    currency: Mapped[str] = mapped_column(String(3))
    payment_reference: Mapped[str] = mapped_column(String(255), unique=True)
    customer_contact: Mapped[str | None] = mapped_column(String(255), default=None)
    shipping_address: Mapped[dict] = mapped_column(JSON, default=dict)
    rejection_reason: Mapped[str | None] = mapped_column(Text, default=None)
    estimated_completion_date: Mapped[date | None] = mapped_column(Date, default=None)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    items: Mapped[list[OrderItem]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._events = []

    @reconstructor
    def _init_on_load(self) -> None:
        self._events = []

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        payment_reference: str,
        metadata: CheckoutMetadata,
        total_amount: float,
        currency: str,
        customer_contact: str | None = None,
    ) -> "Order":
        """Create a pending order from confirmed checkout metadata."""
        now = utcnow()
        order = cls(
            id=_new_id(),
            customer_id=metadata.customer_id,
            tailor_id=metadata.tailor_id,
            status=OrderStatus.PENDING.value,
            total_amount=total_amount,
            currency=currency.upper(),
            payment_reference=payment_reference,
            customer_contact=customer_contact,
            shipping_address=metadata.shipping_address.model_dump(),
            created_at=now,
            updated_at=now,
            items=[OrderItem(id=_new_id(), **item.model_dump()) for item in metadata.items],
        )
        order._events.append(
            OrderPlaced(
                order_id=order.id,
                customer_id=order.customer_id,
                tailor_id=order.tailor_id,
                payment_reference=payment_reference,
                total_amount=total_amount,
                currency=order.currency,
                item_count=len(order.items),
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Workflow
    # -------------------------------------------------------------------
    @property
    def current_status(self) -> OrderStatus:
        return OrderStatus(self.status)

    @property
    def is_terminal(self) -> bool:
        return not _VALID_TRANSITIONS[self.current_status]

    def _assert_can_transition(self, target_status: OrderStatus) -> None:
        """Validate that the current state allows transition to target."""
        current = self.current_status
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransition({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def _assert_actor_allowed(self, target_status: OrderStatus, actor: Actor) -> None:
        allowed = _TRANSITION_ROLES[(self.current_status, target_status)]
        if actor.role not in allowed:
            raise Forbidden({"actor": [f"A {actor.role.value} cannot move an order to {target_status.value}"]})
        if actor.role == ProfileRole.TAILOR and actor.id != self.tailor_id:
            raise Forbidden({"actor": ["Only the order's tailor can do this"]})
        if actor.role == ProfileRole.CUSTOMER and actor.id != self.customer_id:
            raise Forbidden({"actor": ["Only the customer who placed the order can do this"]})

    def transition_to(
        self,
        target_status: OrderStatus,
        actor: Actor,
        reason: str | None = None,
        today: date | None = None,
        completion_weeks_default: int = 2,
        shipping_buffer_weeks: int = 2,
    ) -> OrderStatusChanged:
        """Move the order to ``target_status`` on behalf of ``actor``.

        Checks run in a fixed order (transition, then actor, then payload);
        a failed check leaves the order untouched.
        """
        self._assert_can_transition(target_status)
        self._assert_actor_allowed(target_status, actor)

        reason = reason.strip() if reason else None
        if target_status == OrderStatus.REJECTED and not reason:
            raise ValidationError({"reason": ["A reason is required to reject an order"]})

        previous = self.current_status
        now = utcnow()
        self.status = target_status.value
        self.updated_at = now

        if target_status == OrderStatus.ACCEPTED:
            self.estimated_completion_date = self.estimate_completion(
                today or now.date(), completion_weeks_default, shipping_buffer_weeks
            )
        elif target_status == OrderStatus.REJECTED:
            self.rejection_reason = reason

        event = OrderStatusChanged(
            order_id=self.id,
            customer_id=self.customer_id,
            tailor_id=self.tailor_id,
            previous_status=previous.value,
            new_status=target_status.value,
            actor_id=actor.id,
            actor_role=actor.role.value,
            reason=reason,
            estimated_completion_date=self.estimated_completion_date,
            changed_at=now,
        )
        self._events.append(event)
        return event

    def estimate_completion(self, today: date, default_weeks: int = 2, shipping_buffer_weeks: int = 2) -> date:
        """Tailoring time (the longest item) plus shipping."""
        weeks = [item.completion_weeks for item in self.items if item.completion_weeks]
        tailoring_weeks = max(weeks) if weeks else default_weeks
        return today + timedelta(weeks=tailoring_weeks + shipping_buffer_weeks)

    def pull_events(self) -> list:
        events, self._events = self._events, []
        return events
