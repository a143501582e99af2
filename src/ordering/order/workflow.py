"""Order workflow: applies status transitions and announces them.

A transition commits first; notifications go out only after the commit, and
their outcome is reported, never raised.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import date

import structlog
from sqlalchemy import select

from identity.profile import ProfileDirectory, ProfileRole
from notifications.dispatcher import NotificationDispatcher
from notifications.notification import NotificationResult, NotificationType
from ordering.order.events import OrderStatusChanged
from ordering.order.order import Actor, Order, OrderStatus
from shared.config import get_settings
from shared.database import session_scope
from shared.errors import Forbidden, NotFound, Unauthenticated, ValidationError

logger = structlog.get_logger(__name__)

# Transitions the tailor is told about as well as the customer
_TAILOR_ACKNOWLEDGED = {OrderStatus.CANCELLED, OrderStatus.DELIVERED}


@dataclass(frozen=True)
class TransitionOutcome:
    order: Order
    customer_result: NotificationResult | None
    tailor_result: NotificationResult | None = None


class OrderWorkflow:
    def __init__(
        self,
        profiles: ProfileDirectory | None = None,
        dispatcher: NotificationDispatcher | None = None,
        settings=None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.profiles = profiles or ProfileDirectory()
        self._dispatcher = dispatcher
        self.settings = settings or get_settings()
        self.today = today

    @property
    def dispatcher(self) -> NotificationDispatcher:
        if self._dispatcher is None:
            self._dispatcher = NotificationDispatcher(profiles=self.profiles)
        return self._dispatcher

    def resolve_actor(self, actor_id: str | None) -> Actor:
        if not actor_id:
            raise Unauthenticated({"actor_id": ["Authentication required"]})
        role = self.profiles.role_of(actor_id)
        if role is None:
            raise Forbidden({"actor": ["Unknown actor"]})
        return Actor(id=actor_id, role=role)

    def get(self, order_id: str, actor_id: str | None) -> Order:
        """Load an order for one of its parties or an admin."""
        actor = self.resolve_actor(actor_id)
        with session_scope() as session:
            order = session.get(Order, order_id)
        if order is None:
            raise NotFound({"order_id": ["Order not found"]})
        if actor.role != ProfileRole.ADMIN and actor.id not in (order.customer_id, order.tailor_id):
            raise Forbidden({"actor": ["Not a party to this order"]})
        return order

    def list_for(self, actor_id: str | None) -> list[Order]:
        """The actor's orders, newest first. Admins see every order."""
        actor = self.resolve_actor(actor_id)
        stmt = select(Order).order_by(Order.created_at.desc(), Order.id)
        if actor.role == ProfileRole.CUSTOMER:
            stmt = stmt.where(Order.customer_id == actor.id)
        elif actor.role == ProfileRole.TAILOR:
            stmt = stmt.where(Order.tailor_id == actor.id)
        with session_scope() as session:
            return list(session.scalars(stmt))

    def transition(
        self,
        order_id: str,
        new_status: str | OrderStatus,
        actor_id: str | None,
        reason: str | None = None,
    ) -> TransitionOutcome:
        actor = self.resolve_actor(actor_id)
        target = _parse_status(new_status)

        with session_scope() as session:
            order = session.get(Order, order_id)
            if order is None:
                raise NotFound({"order_id": ["Order not found"]})
            order.transition_to(
                target,
                actor,
                reason=reason,
                today=self.today(),
                completion_weeks_default=self.settings.default_completion_weeks,
                shipping_buffer_weeks=self.settings.shipping_buffer_weeks,
            )
            events = order.pull_events()

        logger.info(
            "Order status changed",
            order_id=order.id,
            new_status=target.value,
            actor_id=actor.id,
            actor_role=actor.role.value,
        )

        customer_result = tailor_result = None
        for event in events:
            customer_result, tailor_result = self._announce(order, event)
        return TransitionOutcome(order=order, customer_result=customer_result, tailor_result=tailor_result)

    def _announce(self, order: Order, event: OrderStatusChanged):
        status = OrderStatus(event.new_status)
        notification_type = NotificationType.for_status(status.value)
        extra = {"status": status.value, "previousStatus": event.previous_status}
        if event.reason:
            extra["reason"] = event.reason
        if event.estimated_completion_date:
            extra["estimatedCompletionDate"] = event.estimated_completion_date.isoformat()

        if status in _TAILOR_ACKNOWLEDGED:
            report = self.dispatcher.notify_all(notification_type, order, extra=extra)
            return report.customer_result, report.tailor_result

        customer = self.dispatcher.customer_of(order)
        return self.dispatcher.notify(notification_type, order, customer, extra), None


def _parse_status(value: str | OrderStatus) -> OrderStatus:
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(str(value).strip().lower())
    except ValueError as exc:
        raise ValidationError({"new_status": [f"Unknown order status '{value}'"]}) from exc
