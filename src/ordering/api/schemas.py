"""Pydantic request/response schemas for the Ordering API.

These are external contracts, kept separate from the internal models. Shipping
addresses arrive as free-form objects; the checkout validates them so a
missing field is reported as a checkout error rather than a schema error.
"""

from datetime import date, datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Bag
# ---------------------------------------------------------------------------
class GarmentSelection(BaseModel):
    fabric_index: int | None = None
    color_index: int | None = None
    fabric_selection: str | None = None
    color_selection: str | None = None
    style_type: str | None = None
    fabric_yards: float | None = Field(default=None, ge=0)
    completion_weeks: int | None = Field(default=None, ge=0)


class AddBagItemRequest(GarmentSelection):
    tailor_id: str
    design_id: str
    price: float = Field(ge=0)
    currency: str | None = None
    notes: str | None = None
    measurement_ref: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "tailor_id": "tailor-001",
                    "design_id": "design-agbada-01",
                    "price": 130.0,
                    "currency": "USD",
                    "notes": "Slightly longer sleeves",
                    "fabric_index": 2,
                    "color_index": 0,
                    "style_type": "agbada",
                    "completion_weeks": 3,
                }
            ]
        }
    }


class BagItemResponse(GarmentSelection):
    model_config = {"from_attributes": True}

    id: str
    design_id: str
    price: float
    currency: str
    tailor_notes: str | None = None
    measurement_ref: str | None = None
    added_at: datetime | None = None


class BagSummary(BaseModel):
    id: str
    customer_id: str
    tailor_id: str
    status: str
    total: float
    updated_at: datetime | None = None


class BagResponse(BaseModel):
    bag: BagSummary
    items: list[BagItemResponse]


class RemoveItemResponse(BaseModel):
    bag: BagResponse | None = None
    bag_deleted: bool = False


class EmptyBagResponse(BaseModel):
    bags_removed: int


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
class CheckoutRequest(BaseModel):
    shipping_address: dict = Field(default_factory=dict)
    tailor_id: str | None = None
    customer_email: str | None = None


class DirectCheckoutRequest(GarmentSelection):
    shipping_address: dict = Field(default_factory=dict)
    tailor_id: str
    design_id: str
    price: float = Field(ge=0)
    currency: str | None = None
    tailor_notes: str | None = None
    measurement_ref: str | None = None
    customer_email: str | None = None


class CheckoutResponse(BaseModel):
    session_id: str
    redirect_url: str
    settlement_total: float
    currency: str


class VerifyCheckoutRequest(BaseModel):
    session_id: str = Field(min_length=1)


class VerifyCheckoutResponse(BaseModel):
    status: str
    order_id: str | None = None


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class TransitionRequest(BaseModel):
    new_status: str
    reason: str | None = None


class OrderItemResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: str
    design_id: str
    bag_item_id: str | None = None
    price: float
    currency: str
    fabric_index: int | None = None
    color_index: int | None = None
    fabric_selection: str | None = None
    color_selection: str | None = None
    style_type: str | None = None
    fabric_yards: float | None = None
    tailor_notes: str | None = None
    measurement_ref: str | None = None
    completion_weeks: int | None = None


class OrderResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: str
    customer_id: str
    tailor_id: str
    status: str
    total_amount: float
    currency: str
    payment_reference: str
    shipping_address: dict
    rejection_reason: str | None = None
    estimated_completion_date: date | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    items: list[OrderItemResponse]


class NotificationOutcome(BaseModel):
    success: bool
    notification_id: str | None = None
    error: str | None = None
    error_code: str | None = None


class TransitionResponse(BaseModel):
    order: OrderResponse
    customer_notification: NotificationOutcome | None = None
    tailor_notification: NotificationOutcome | None = None
