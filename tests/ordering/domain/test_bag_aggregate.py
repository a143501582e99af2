"""Tests for the Bag aggregate: item management and check-out."""

import pytest
from ordering.bag.bag import Bag, BagStatus
from shared.errors import ValidationError


def _bag_with_items(count=2):
    bag = Bag.open_for("cust-001", "tailor-001")
    for index in range(count):
        bag.add_item(design_id=f"design-{index}", price=30.0 + index, currency="USD")
    return bag


class TestBagCreation:
    def test_open_for(self):
        bag = Bag.open_for("cust-001", "tailor-001")
        assert bag.is_open
        assert bag.is_empty
        assert bag.status == BagStatus.OPEN.value
        assert bag.id is not None


class TestAddItem:
    def test_add_item_captures_price_and_selection(self):
        bag = Bag.open_for("cust-001", "tailor-001")
        item = bag.add_item(
            design_id="agbada-01",
            price=130.0,
            currency="USD",
            tailor_notes="Slim fit",
            measurement_ref="meas-9",
            fabric_index=2,
            color_selection="Indigo",
            completion_weeks=3,
        )

        assert bag.items == [item]
        assert item.price == 130.0
        assert item.fabric_index == 2
        assert item.color_selection == "Indigo"
        assert item.completion_weeks == 3

    def test_same_design_twice_is_two_lines(self):
        bag = Bag.open_for("cust-001", "tailor-001")
        bag.add_item(design_id="agbada-01", price=130.0, currency="USD")
        bag.add_item(design_id="agbada-01", price=130.0, currency="USD")
        assert len(bag.items) == 2

    def test_unknown_selection_field_rejected(self):
        bag = Bag.open_for("cust-001", "tailor-001")
        with pytest.raises(ValidationError) as exc:
            bag.add_item(design_id="d", price=1.0, currency="USD", sleeve_length=30)
        assert "sleeve_length" in exc.value.messages

    def test_cannot_add_to_checked_out_bag(self):
        bag = _bag_with_items(1)
        bag.check_out()
        with pytest.raises(ValidationError):
            bag.add_item(design_id="d", price=1.0, currency="USD")


class TestRemoveItem:
    def test_remove_item(self):
        bag = _bag_with_items(2)
        first = bag.items[0]

        removed = bag.remove_item(first.id)
        assert removed is first
        assert len(bag.items) == 1

    def test_remove_unknown_item(self):
        bag = _bag_with_items(1)
        with pytest.raises(ValidationError):
            bag.remove_item("missing")


class TestDiscardPurchased:
    def test_removes_only_purchased_items(self):
        bag = _bag_with_items(3)
        purchased = [bag.items[0].id, bag.items[2].id]
        survivor = bag.items[1]

        removed = bag.discard_purchased(purchased)

        assert sorted(removed) == sorted(purchased)
        assert bag.items == [survivor]
        assert bag.is_open

    def test_items_added_after_checkout_survive(self):
        bag = _bag_with_items(1)
        purchased = [bag.items[0].id]
        late = bag.add_item(design_id="late", price=50.0, currency="USD")

        bag.discard_purchased(purchased)
        assert bag.items == [late]
        assert bag.is_open

    def test_checks_out_when_nothing_left(self):
        bag = _bag_with_items(2)
        bag.discard_purchased([item.id for item in bag.items])

        assert bag.is_empty
        assert bag.status == BagStatus.CHECKED_OUT.value

    def test_already_removed_items_are_ignored(self):
        bag = _bag_with_items(1)
        assert bag.discard_purchased(["gone"]) == []
        assert len(bag.items) == 1
