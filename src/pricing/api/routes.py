"""FastAPI routes for pricing: storefront quotes and exchange rates."""

from dataclasses import asdict

from fastapi import APIRouter, Path, Query

from pricing.api.schemas import QuoteResponse, RateResponse
from pricing.currency import get_currency_service
from pricing.quote import quote

pricing_router = APIRouter(prefix="/pricing", tags=["pricing"])

CURRENCY_CODE = r"^[A-Za-z]{3}$"


@pricing_router.get("/quote", response_model=QuoteResponse)
def get_quote(
    seller_price: float = Query(ge=0),
    seller_currency: str = Query(default="USD", pattern=CURRENCY_CODE),
    display_currency: str = Query(default="USD", pattern=CURRENCY_CODE),
) -> QuoteResponse:
    return QuoteResponse(**asdict(quote(seller_price, seller_currency, display_currency)))


@pricing_router.get("/rates/{from_currency}/{to_currency}", response_model=RateResponse)
def get_rate(
    from_currency: str = Path(pattern=CURRENCY_CODE),
    to_currency: str = Path(pattern=CURRENCY_CODE),
) -> RateResponse:
    rate = get_currency_service().rate(from_currency, to_currency)
    return RateResponse(from_currency=from_currency.upper(), to_currency=to_currency.upper(), rate=rate)
