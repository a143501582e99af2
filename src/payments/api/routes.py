"""FastAPI routes for the Payments domain: processor webhooks."""

from fastapi import APIRouter, Header, Request
from starlette.concurrency import run_in_threadpool

from payments.api.schemas import WebhookResponse
from payments.checkout_events import PaymentEventHandler

payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("/webhook", response_model=WebhookResponse)
async def process_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None),
) -> WebhookResponse:
    """Process a payment processor event.

    The raw body is needed for signature verification. Invalid signatures
    answer 400; retryable failures answer 503 so the processor redelivers.
    """
    payload = await request.body()
    outcome = await run_in_threadpool(PaymentEventHandler().handle, payload, stripe_signature)
    return WebhookResponse(status=outcome.status, order_id=outcome.order_id)
