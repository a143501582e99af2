"""Tests for platform markup rules."""

import pytest
from pricing.markup import (
    PricingPolicy,
    customer_price,
    from_minor_units,
    platform_commission,
    round_money,
    seller_payout,
    to_minor_units,
)


class TestCustomerPrice:
    def test_minimum_commission_applies_to_low_prices(self):
        assert customer_price(20) == pytest.approx(30.0)

    def test_percentage_applies_above_the_floor(self):
        assert customer_price(100) == pytest.approx(130.0)

    def test_free_design_costs_the_minimum_commission(self):
        assert customer_price(0) == pytest.approx(10.0)

    def test_negative_price_costs_the_minimum_commission(self):
        assert customer_price(-5) == pytest.approx(10.0)

    def test_break_even_point(self):
        # 30% of 33.33... equals the 10.00 floor
        assert customer_price(40) == pytest.approx(52.0)
        assert customer_price(30) == pytest.approx(40.0)

    def test_no_internal_rounding(self):
        assert customer_price(99.99) == pytest.approx(129.987)

    def test_policy_override(self):
        policy = PricingPolicy(markup_rate=0.5, minimum_commission=5)
        assert customer_price(8, policy) == pytest.approx(13.0)
        assert customer_price(100, policy) == pytest.approx(150.0)

    def test_policy_from_settings(self, settings):
        from dataclasses import replace

        from shared.config import set_settings

        set_settings(replace(settings, markup_rate=0.2, min_commission=1.0))
        assert customer_price(100) == pytest.approx(120.0)


class TestCommissionAndPayout:
    def test_commission_floor(self):
        assert platform_commission(20) == pytest.approx(10.0)

    def test_commission_percentage(self):
        assert platform_commission(200) == pytest.approx(60.0)

    def test_seller_receives_their_price(self):
        assert seller_payout(123.45) == 123.45


class TestRounding:
    def test_rounds_half_up(self):
        assert round_money(2.675) == 2.68
        assert round_money(1.005) == 1.01

    def test_minor_units(self):
        assert to_minor_units(129.987) == 12999
        assert to_minor_units(30) == 3000

    def test_back_from_minor_units(self):
        assert from_minor_units(12999) == 129.99
        assert from_minor_units(3000) == 30.0
        assert from_minor_units(to_minor_units(0.29)) == 0.29
