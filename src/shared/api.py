"""HTTP mapping for marketplace errors.

``register_exception_handlers(app)`` installs one handler for
``MarketplaceError`` that answers ``{"error": <messages>}`` with the status
code for the error type. Retryable errors answer 503 so callers retry.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shared.errors import (
    Forbidden,
    InvalidCheckoutState,
    InvalidSignature,
    InvalidTransition,
    MarketplaceError,
    MissingContactInfo,
    NotFound,
    Unauthenticated,
    ValidationError,
)

logger = structlog.get_logger(__name__)

_STATUS_CODES = {
    Unauthenticated: 401,
    Forbidden: 403,
    NotFound: 404,
    ValidationError: 400,
    InvalidCheckoutState: 400,
    InvalidSignature: 400,
    MissingContactInfo: 400,
    InvalidTransition: 409,
}


def status_code_for(exc: MarketplaceError) -> int:
    if exc.retryable:
        return 503
    for error_type, status_code in _STATUS_CODES.items():
        if isinstance(exc, error_type):
            return status_code
    return 400


async def marketplace_error_handler(request: Request, exc: MarketplaceError) -> JSONResponse:
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(
            "Retryable error returned to caller",
            path=request.url.path,
            error_type=exc.code,
            errors=exc.messages,
            alert="operator",
        )
    return JSONResponse(status_code=status_code, content={"error": exc.messages, "code": exc.code})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MarketplaceError, marketplace_error_handler)
