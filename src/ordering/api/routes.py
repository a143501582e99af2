"""FastAPI routes for the Ordering domain: bag, checkout and orders.

Identity arrives in request headers set by the authentication layer:
``X-Customer-Id`` for bag and checkout calls, ``X-Actor-Id`` for order calls.
"""

from dataclasses import asdict

from fastapi import APIRouter, Header

from ordering.api.schemas import (
    AddBagItemRequest,
    BagItemResponse,
    BagResponse,
    BagSummary,
    CheckoutRequest,
    CheckoutResponse,
    DirectCheckoutRequest,
    EmptyBagResponse,
    NotificationOutcome,
    OrderResponse,
    RemoveItemResponse,
    TransitionRequest,
    TransitionResponse,
    VerifyCheckoutRequest,
    VerifyCheckoutResponse,
)
from ordering.bag.bag import SELECTION_FIELDS
from ordering.bag.store import BagStore, BagView
from ordering.checkout.initiation import CheckoutInitiator, DirectPurchase
from ordering.order.workflow import OrderWorkflow
from payments.checkout_events import PaymentEventHandler
from shared.errors import NotFound


def _bag_response(view: BagView) -> BagResponse:
    return BagResponse(
        bag=BagSummary(
            id=view.bag.id,
            customer_id=view.bag.customer_id,
            tailor_id=view.bag.tailor_id,
            status=view.bag.status,
            total=view.total,
            updated_at=view.bag.updated_at,
        ),
        items=[BagItemResponse.model_validate(item) for item in view.items],
    )


def _notification(result) -> NotificationOutcome | None:
    if result is None:
        return None
    return NotificationOutcome(
        success=result.success,
        notification_id=result.notification_id,
        error=result.error,
        error_code=result.error_code,
    )


# ---------------------------------------------------------------------------
# Bag Router
# ---------------------------------------------------------------------------
bag_router = APIRouter(prefix="/bag", tags=["bag"])


@bag_router.get("", response_model=BagResponse)
def get_bag(tailor_id: str | None = None, x_customer_id: str | None = Header(default=None)) -> BagResponse:
    view = BagStore().get(x_customer_id, tailor_id)
    if view is None:
        raise NotFound({"bag": ["No open bag"]})
    return _bag_response(view)


@bag_router.post("/items", status_code=201, response_model=BagResponse)
def add_bag_item(body: AddBagItemRequest, x_customer_id: str | None = Header(default=None)) -> BagResponse:
    selection = body.model_dump(include=set(SELECTION_FIELDS), exclude_none=True)
    view = BagStore().add_item(
        customer_id=x_customer_id,
        tailor_id=body.tailor_id,
        design_id=body.design_id,
        price=body.price,
        notes=body.notes,
        measurement_ref=body.measurement_ref,
        currency=body.currency,
        **selection,
    )
    return _bag_response(view)


@bag_router.delete("/items/{item_id}", response_model=RemoveItemResponse)
def remove_bag_item(item_id: str, x_customer_id: str | None = Header(default=None)) -> RemoveItemResponse:
    view = BagStore().remove_item(x_customer_id, item_id)
    if view is None:
        return RemoveItemResponse(bag=None, bag_deleted=True)
    return RemoveItemResponse(bag=_bag_response(view))


@bag_router.delete("", response_model=EmptyBagResponse)
def empty_bag(x_customer_id: str | None = Header(default=None)) -> EmptyBagResponse:
    return EmptyBagResponse(bags_removed=BagStore().empty(x_customer_id))


# ---------------------------------------------------------------------------
# Checkout Router
# ---------------------------------------------------------------------------
checkout_router = APIRouter(prefix="/checkout", tags=["checkout"])


@checkout_router.post("", response_model=CheckoutResponse)
def checkout(body: CheckoutRequest, x_customer_id: str | None = Header(default=None)) -> CheckoutResponse:
    redirect = CheckoutInitiator().initiate(
        customer_id=x_customer_id,
        shipping_address=body.shipping_address,
        tailor_id=body.tailor_id,
        customer_email=body.customer_email,
    )
    return CheckoutResponse(**asdict(redirect))


@checkout_router.post("/direct", response_model=CheckoutResponse)
def checkout_direct(body: DirectCheckoutRequest, x_customer_id: str | None = Header(default=None)) -> CheckoutResponse:
    purchase = DirectPurchase.model_validate(body.model_dump(exclude={"shipping_address", "customer_email"}))
    redirect = CheckoutInitiator().initiate_direct(
        customer_id=x_customer_id,
        purchase=purchase,
        shipping_address=body.shipping_address,
        customer_email=body.customer_email,
    )
    return CheckoutResponse(**asdict(redirect))


@checkout_router.post("/verify", response_model=VerifyCheckoutResponse)
def verify_checkout(
    body: VerifyCheckoutRequest,
    x_customer_id: str | None = Header(default=None),
) -> VerifyCheckoutResponse:
    """Confirm a paid session on the customer's return from the payment page."""
    outcome = PaymentEventHandler().confirm_session(body.session_id, x_customer_id)
    return VerifyCheckoutResponse(status=outcome.status, order_id=outcome.order_id)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.get("", response_model=list[OrderResponse])
def list_orders(x_actor_id: str | None = Header(default=None)) -> list[OrderResponse]:
    return [OrderResponse.model_validate(order) for order in OrderWorkflow().list_for(x_actor_id)]


@order_router.get("/{order_id}", response_model=OrderResponse)
def get_order(order_id: str, x_actor_id: str | None = Header(default=None)) -> OrderResponse:
    order = OrderWorkflow().get(order_id, x_actor_id)
    return OrderResponse.model_validate(order)


@order_router.patch("/{order_id}", response_model=TransitionResponse)
def transition_order(
    order_id: str,
    body: TransitionRequest,
    x_actor_id: str | None = Header(default=None),
) -> TransitionResponse:
    outcome = OrderWorkflow().transition(order_id, body.new_status, x_actor_id, reason=body.reason)
    return TransitionResponse(
        order=OrderResponse.model_validate(outcome.order),
        customer_notification=_notification(outcome.customer_result),
        tailor_notification=_notification(outcome.tailor_result),
    )
