"""Platform markup rules.

The platform adds a commission on top of every seller price: 30% of the
price, but never less than 10.00. The seller always receives exactly the
price they set.

Amounts are not rounded here. Rounding happens once, when an amount is
charged or displayed (see ``round_money`` and ``to_minor_units``).
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from shared.config import get_settings


@dataclass(frozen=True)
class PricingPolicy:
    markup_rate: float = 0.30
    minimum_commission: float = 10.00

    @classmethod
    def from_settings(cls, settings=None) -> "PricingPolicy":
        settings = settings or get_settings()
        return cls(
            markup_rate=settings.markup_rate,
            minimum_commission=settings.min_commission,
        )


def _policy(policy: PricingPolicy | None) -> PricingPolicy:
    return policy or PricingPolicy.from_settings()


def platform_commission(seller_price: float, policy: PricingPolicy | None = None) -> float:
    """The platform's cut for a seller price (floored at the minimum commission)."""
    policy = _policy(policy)
    return max(seller_price * policy.markup_rate, policy.minimum_commission)


def customer_price(seller_price: float, policy: PricingPolicy | None = None) -> float:
    """The price a customer pays for a seller price.

    A free or invalid price still costs the minimum commission.
    """
    policy = _policy(policy)
    if seller_price <= 0:
        return policy.minimum_commission
    return seller_price + platform_commission(seller_price, policy)


def seller_payout(seller_price: float) -> float:
    """What the seller receives. The markup is additive, never deducted."""
    return seller_price


def round_money(amount: float, places: int = 2) -> float:
    """Round half-up to the currency's minor unit."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(amount)).quantize(quantum, rounding=ROUND_HALF_UP))


def to_minor_units(amount: float, places: int = 2) -> int:
    """Convert a major-unit amount to an integer count of minor units (cents)."""
    return int(Decimal(str(round_money(amount, places))).scaleb(places))


def from_minor_units(units: int, places: int = 2) -> float:
    """Convert an integer count of minor units back to a major-unit amount."""
    return float(Decimal(int(units)).scaleb(-places))
