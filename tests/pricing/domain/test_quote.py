"""Tests for storefront price quotes."""

import pytest
from pricing.currency.provider.fake_adapter import FakeRateProvider
from pricing.currency.service import CurrencyConversionService
from pricing.quote import quote
from shared.errors import ValidationError


@pytest.fixture()
def service():
    return CurrencyConversionService(FakeRateProvider({"USD_NGN": 1500.0}))


class TestQuote:
    def test_same_currency(self, service):
        result = quote(100, "USD", "USD", currency_service=service)
        assert result.commission == pytest.approx(30.0)
        assert result.customer_price == pytest.approx(130.0)
        assert result.display_amount == pytest.approx(130.0)
        assert result.rate == 1.0

    def test_converts_customer_price_for_display(self, service):
        result = quote(20, "usd", "ngn", currency_service=service)
        assert result.customer_price == pytest.approx(30.0)
        assert result.display_amount == pytest.approx(45000.0)
        assert result.display_currency == "NGN"
        assert result.rate == pytest.approx(1500.0)

    def test_free_design_quotes_commission_only(self, service):
        result = quote(0, "USD", "USD", currency_service=service)
        assert result.commission == pytest.approx(10.0)
        assert result.customer_price == pytest.approx(10.0)

    def test_negative_price_rejected(self, service):
        with pytest.raises(ValidationError) as exc:
            quote(-1, "USD", "USD", currency_service=service)
        assert "seller_price" in exc.value.messages
