"""Tailor Mint FastAPI application.

Single web server for every bounded context. Handlers are synchronous and
run in FastAPI's threadpool; each request opens its own unit of work.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from notifications.api.routes import router as notification_router
from ordering.api.routes import bag_router, checkout_router, order_router
from payments.api.routes import payment_router
from pricing.api.routes import pricing_router
from shared.api import register_exception_handlers
from shared.config import get_settings
from shared.logging import add_context, clear_context, configure_logging

# ---------------------------------------------------------------------------
# Process setup
# ---------------------------------------------------------------------------
# APP_ENV selects the settings overlay:
#   - "test"        → in-memory database, fake adapters
#   - "development" → SQLite file, fake adapters unless credentials are set
#   - "production"  → real adapters; missing credentials fail at startup
configure_logging()
settings = get_settings()

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Tailor Mint API",
    description="Custom tailoring marketplace: bag, checkout, payments, orders and notifications",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """Bind a request id to every log line emitted while handling the request."""
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    clear_context()
    add_context(request_id=request_id, method=request.method, path=request.url.path)
    try:
        response = await call_next(request)
    finally:
        clear_context()
    response.headers["X-Request-ID"] = request_id
    return response


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
app.include_router(bag_router)
app.include_router(checkout_router)
app.include_router(order_router)
app.include_router(payment_router)
app.include_router(pricing_router)
app.include_router(notification_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
def health():
    from payments.gateway import get_gateway
    from pricing.currency.provider import get_provider

    return JSONResponse(
        content={
            "status": "ok",
            "env": settings.env,
            "settlement_currency": settings.settlement_currency,
            "adapters": {
                "payments": type(get_gateway()).__name__,
                "rates": type(get_provider()).__name__,
            },
        }
    )
