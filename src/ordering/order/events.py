"""Domain events for the Order aggregate.

Events are immutable facts recorded by the aggregate and collected by the
application layer after the transaction commits. They drive notifications;
they are never replayed to rebuild state.
"""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict


class OrderEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_id: str
    customer_id: str
    tailor_id: str


class OrderPlaced(OrderEvent):
    """Payment was confirmed and the order now exists, pending the tailor."""

    payment_reference: str
    total_amount: float
    currency: str
    item_count: int
    placed_at: datetime


class OrderStatusChanged(OrderEvent):
    """The order moved along its workflow."""

    previous_status: str
    new_status: str
    actor_id: str
    actor_role: str
    reason: str | None = None
    estimated_completion_date: date | None = None
    changed_at: datetime
