"""Pydantic response schemas for the Pricing API."""

from pydantic import BaseModel


class QuoteResponse(BaseModel):
    seller_price: float
    seller_currency: str
    commission: float
    customer_price: float
    display_amount: float
    display_currency: str
    rate: float


class RateResponse(BaseModel):
    from_currency: str
    to_currency: str
    rate: float
