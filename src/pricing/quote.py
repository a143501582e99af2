"""Storefront price quotes: markup plus display-currency conversion."""

from dataclasses import dataclass

from pricing.currency import CurrencyConversionService, get_currency_service
from pricing.markup import PricingPolicy, customer_price, platform_commission, round_money
from shared.errors import ValidationError


@dataclass(frozen=True)
class PriceQuote:
    seller_price: float
    seller_currency: str
    commission: float
    customer_price: float
    display_amount: float
    display_currency: str
    rate: float


def quote(
    seller_price: float,
    seller_currency: str,
    display_currency: str,
    currency_service: CurrencyConversionService | None = None,
    policy: PricingPolicy | None = None,
) -> PriceQuote:
    """Price a design for display in the customer's currency.

    Markup is applied in the seller's currency, then the customer price is
    converted and rounded for display.
    """
    if seller_price is None or seller_price < 0:
        raise ValidationError({"seller_price": ["Price must be zero or positive"]})

    currency_service = currency_service or get_currency_service()
    total = customer_price(seller_price, policy)
    # A free design is charged the commission alone
    commission = platform_commission(seller_price, policy) if seller_price > 0 else total

    conversion = currency_service.convert(total, seller_currency, display_currency)
    return PriceQuote(
        seller_price=seller_price,
        seller_currency=seller_currency.upper(),
        commission=commission,
        customer_price=total,
        display_amount=round_money(conversion.amount),
        display_currency=display_currency.upper(),
        rate=conversion.rate,
    )
