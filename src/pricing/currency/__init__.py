"""Currency conversion service factory.

get_currency_service() builds one service per process around the active rate
provider; set_currency_service() swaps it (useful for tests).
"""

from pricing.currency.service import Conversion, CurrencyConversionService

_current_service: CurrencyConversionService | None = None


def get_currency_service() -> CurrencyConversionService:
    """Return the current conversion service, creating it on first use."""
    global _current_service
    if _current_service is None:
        from pricing.currency.provider import get_provider

        _current_service = CurrencyConversionService.from_settings(get_provider())
    return _current_service


def set_currency_service(service: CurrencyConversionService) -> None:
    global _current_service
    _current_service = service


def reset_currency_service() -> None:
    global _current_service
    _current_service = None


__all__ = [
    "Conversion",
    "CurrencyConversionService",
    "get_currency_service",
    "reset_currency_service",
    "set_currency_service",
]
