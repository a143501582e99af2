"""Integration tests for Pricing API endpoints via TestClient."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pricing.api.routes import pricing_router
from shared.api import register_exception_handlers


@pytest.fixture()
def client(fake_provider):
    app = FastAPI()
    app.include_router(pricing_router)
    register_exception_handlers(app)
    return TestClient(app)


class TestQuoteEndpoint:
    def test_quote_in_seller_currency(self, client):
        response = client.get("/pricing/quote", params={"seller_price": 100})
        assert response.status_code == 200

        data = response.json()
        assert data["commission"] == pytest.approx(30.0)
        assert data["customer_price"] == pytest.approx(130.0)
        assert data["display_amount"] == pytest.approx(130.0)
        assert data["display_currency"] == "USD"

    def test_quote_in_display_currency(self, client):
        response = client.get(
            "/pricing/quote",
            params={"seller_price": 20, "seller_currency": "USD", "display_currency": "NGN"},
        )
        assert response.status_code == 200

        data = response.json()
        assert data["customer_price"] == pytest.approx(30.0)
        assert data["display_amount"] == pytest.approx(45600.0)
        assert data["rate"] == pytest.approx(1520.0)

    def test_negative_price_rejected(self, client):
        response = client.get("/pricing/quote", params={"seller_price": -5})
        assert response.status_code == 422

    def test_bad_currency_code_rejected(self, client):
        response = client.get("/pricing/quote", params={"seller_price": 5, "display_currency": "NAIRA"})
        assert response.status_code == 422

    def test_numeric_currency_code_rejected(self, client):
        response = client.get("/pricing/quote", params={"seller_price": 5, "seller_currency": "123"})
        assert response.status_code == 422


class TestRateEndpoint:
    def test_rate_lookup(self, client, fake_provider):
        response = client.get("/pricing/rates/usd/gbp")
        assert response.status_code == 200
        assert response.json() == {"from_currency": "USD", "to_currency": "GBP", "rate": 0.8}
        assert fake_provider.calls == [("USD", "GBP")]

    def test_rate_lookup_survives_provider_outage(self, client, fake_provider):
        fake_provider.configure(should_succeed=False)

        response = client.get("/pricing/rates/USD/NGN")
        assert response.status_code == 200
        assert response.json()["rate"] == 1500.0

    @pytest.mark.parametrize("path", ["/pricing/rates/USDX/NGN", "/pricing/rates/US/NGN", "/pricing/rates/USD/N1N"])
    def test_malformed_currency_code_rejected(self, client, fake_provider, path):
        assert client.get(path).status_code == 422
        assert fake_provider.calls == []
