"""Tests for checkout metadata encoding and validation."""

import json

import pytest
from ordering.checkout.metadata import (
    MAX_KEYS,
    MAX_VALUE_LENGTH,
    CheckoutLineItem,
    CheckoutMetadata,
    ShippingAddress,
    decode_metadata,
    encode_metadata,
    parse_shipping_address,
)
from shared.errors import InvalidCheckoutState, MalformedMetadata

ADDRESS = {"street_address": "12 Admiralty Way", "city": "Lagos", "state": "LA", "zip_code": "101233"}


def _metadata(items=None, **overrides):
    items = items or [
        CheckoutLineItem(bag_item_id="bi-1", design_id="agbada-01", price=130.0, fabric_index=1, completion_weeks=3),
        CheckoutLineItem(bag_item_id="bi-2", design_id="buba-02", price=52.0, tailor_notes="Short sleeves"),
    ]
    fields = {
        "customer_id": "cust-001",
        "tailor_id": "tailor-001",
        "bag_id": "bag-1",
        "shipping_address": ShippingAddress(**ADDRESS),
        "items": items,
        "total": 182.0,
        "currency": "USD",
    }
    fields.update(overrides)
    return CheckoutMetadata(**fields)


class TestShippingAddress:
    def test_valid_address_defaults_country(self):
        address = parse_shipping_address(ADDRESS)
        assert address.country == "US"

    def test_reports_every_missing_field(self):
        with pytest.raises(InvalidCheckoutState) as exc:
            parse_shipping_address({"street_address": "12 Admiralty Way", "city": "  "})
        assert set(exc.value.messages) == {"city", "state", "zip_code"}

    def test_missing_address(self):
        with pytest.raises(InvalidCheckoutState):
            parse_shipping_address(None)


class TestEncode:
    def test_flat_string_values(self):
        encoded = encode_metadata(_metadata())

        assert all(isinstance(value, str) for value in encoded.values())
        assert encoded["customer_id"] == "cust-001"
        assert encoded["design_ids"] == "agbada-01,buba-02"
        assert encoded["bag_item_ids"] == "bi-1,bi-2"
        assert encoded["total"] == "182.00"
        assert json.loads(encoded["shipping_address"])["city"] == "Lagos"

    def test_item_snapshot_is_chunked(self):
        items = [
            CheckoutLineItem(bag_item_id=f"bi-{i}", design_id=f"d-{i}", price=10.0, tailor_notes="x" * 200)
            for i in range(6)
        ]
        encoded = encode_metadata(_metadata(items=items))

        count = int(encoded["items_count"])
        assert count > 1
        assert all(len(encoded[f"items_{i}"]) <= MAX_VALUE_LENGTH for i in range(count))

    def test_too_many_items(self):
        items = [
            CheckoutLineItem(design_id=f"d{i}", price=10.0, tailor_notes="n" * 400) for i in range(60)
        ]
        with pytest.raises(InvalidCheckoutState) as exc:
            encode_metadata(_metadata(items=items))
        assert "metadata" in exc.value.messages

    def test_oversize_value(self):
        address = ShippingAddress(**{**ADDRESS, "street_address": "S" * (MAX_VALUE_LENGTH - 10)})
        with pytest.raises(InvalidCheckoutState) as exc:
            encode_metadata(_metadata(shipping_address=address))
        assert "shipping_address" in exc.value.messages

    def test_key_limit(self):
        assert len(encode_metadata(_metadata())) <= MAX_KEYS


class TestDecode:
    def test_restores_snapshot(self):
        original = _metadata()
        decoded = decode_metadata(encode_metadata(original))

        assert decoded == original
        assert decoded.items[0].completion_weeks == 3
        assert decoded.bag_item_ids == ["bi-1", "bi-2"]

    def test_direct_purchase_has_no_bag(self):
        items = [CheckoutLineItem(design_id="agbada-01", price=130.0)]
        decoded = decode_metadata(encode_metadata(_metadata(items=items, bag_id=None, total=130.0)))

        assert decoded.bag_id is None
        assert decoded.bag_item_ids == []

    @pytest.mark.parametrize("raw", [None, {}, "not-a-dict"])
    def test_no_metadata(self, raw):
        with pytest.raises(MalformedMetadata):
            decode_metadata(raw)

    def test_missing_chunk(self):
        encoded = encode_metadata(_metadata())
        encoded["items_count"] = "2"
        with pytest.raises(MalformedMetadata):
            decode_metadata(encoded)

    def test_unparseable_snapshot(self):
        encoded = encode_metadata(_metadata())
        encoded["items_0"] = encoded["items_0"][:-5]
        with pytest.raises(MalformedMetadata):
            decode_metadata(encoded)

    def test_missing_customer(self):
        encoded = encode_metadata(_metadata())
        del encoded["customer_id"]
        with pytest.raises(MalformedMetadata) as exc:
            decode_metadata(encoded)
        assert exc.value.retryable

    def test_item_ids_must_match_snapshot(self):
        encoded = encode_metadata(_metadata())
        encoded["bag_item_ids"] = "bi-1"
        with pytest.raises(MalformedMetadata) as exc:
            decode_metadata(encoded)
        assert "bag_item_ids" in exc.value.messages

    def test_empty_item_list(self):
        encoded = encode_metadata(_metadata())
        encoded.update({"items_count": "1", "items_0": "[]", "bag_item_ids": "", "design_ids": ""})
        with pytest.raises(MalformedMetadata):
            decode_metadata(encoded)
