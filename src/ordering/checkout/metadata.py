"""Checkout metadata carried through the payment processor.

The processor stores string key/value metadata on a checkout session
(at most 50 keys, 500 characters per value) and echoes it back on the
completion event. That echo is the only input used to build the order, so
everything the order needs travels here: who, which tailor, where to ship,
and a full snapshot of every purchased item.

The item snapshot is JSON split across ``items_0`` .. ``items_<n>``.
"""

import json
from typing import Annotated

import pydantic
from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from shared.errors import InvalidCheckoutState, MalformedMetadata

MAX_KEYS = 50
MAX_VALUE_LENGTH = 500
ITEMS_PREFIX = "items_"

RequiredText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class ShippingAddress(BaseModel):
    model_config = ConfigDict(extra="forbid")

    street_address: RequiredText
    city: RequiredText
    state: RequiredText
    zip_code: RequiredText
    country: RequiredText = "US"


class CheckoutLineItem(BaseModel):
    """Snapshot of one purchased design."""

    model_config = ConfigDict(extra="forbid")

    bag_item_id: str | None = None
    design_id: RequiredText
    price: float = Field(ge=0)
    currency: str = "USD"
    tailor_notes: str | None = None
    measurement_ref: str | None = None
    fabric_index: int | None = None
    color_index: int | None = None
    fabric_selection: str | None = None
    color_selection: str | None = None
    style_type: str | None = None
    fabric_yards: float | None = None
    completion_weeks: int | None = Field(default=None, ge=0)


class CheckoutMetadata(BaseModel):
    model_config = ConfigDict(extra="forbid")

    customer_id: RequiredText
    tailor_id: RequiredText
    bag_id: str | None = None
    shipping_address: ShippingAddress
    items: list[CheckoutLineItem] = Field(min_length=1)
    total: float = Field(ge=0)
    currency: RequiredText

    @property
    def bag_item_ids(self) -> list[str]:
        return [item.bag_item_id for item in self.items if item.bag_item_id]


def parse_shipping_address(raw: dict | ShippingAddress | None) -> ShippingAddress:
    """Validate a shipping address, reporting every missing field."""
    if isinstance(raw, ShippingAddress):
        return raw
    try:
        return ShippingAddress.model_validate(raw or {})
    except pydantic.ValidationError as exc:
        raise InvalidCheckoutState(_field_errors(exc, "shipping_address")) from exc


def encode_metadata(metadata: CheckoutMetadata) -> dict[str, str]:
    """Flatten checkout metadata into processor-compatible string values.

    Raises:
        InvalidCheckoutState: the result exceeds the processor's limits.
    """
    snapshot = json.dumps(
        [item.model_dump(exclude_none=True) for item in metadata.items],
        separators=(",", ":"),
    )
    chunks = [snapshot[i : i + MAX_VALUE_LENGTH] for i in range(0, len(snapshot), MAX_VALUE_LENGTH)]

    encoded = {
        "customer_id": metadata.customer_id,
        "tailor_id": metadata.tailor_id,
        "bag_id": metadata.bag_id or "",
        "design_ids": ",".join(item.design_id for item in metadata.items),
        "bag_item_ids": ",".join(metadata.bag_item_ids),
        "shipping_address": metadata.shipping_address.model_dump_json(),
        "total": f"{metadata.total:.2f}",
        "currency": metadata.currency,
        "items_count": str(len(chunks)),
    }
    for index, chunk in enumerate(chunks):
        encoded[f"{ITEMS_PREFIX}{index}"] = chunk

    if len(encoded) > MAX_KEYS:
        raise InvalidCheckoutState({"metadata": [f"Too many items for one checkout ({len(encoded)} metadata keys)"]})
    oversize = [key for key, value in encoded.items() if len(value) > MAX_VALUE_LENGTH]
    if oversize:
        raise InvalidCheckoutState({key: ["Metadata value exceeds 500 characters"] for key in oversize})
    return encoded


def decode_metadata(raw: dict | None) -> CheckoutMetadata:
    """Rebuild checkout metadata from a processor event.

    Raises:
        MalformedMetadata: anything is missing, unparseable or inconsistent.
    """
    if not isinstance(raw, dict) or not raw:
        raise MalformedMetadata({"metadata": ["Event carries no metadata"]})

    try:
        count = int(raw["items_count"])
        snapshot = "".join(raw[f"{ITEMS_PREFIX}{index}"] for index in range(count))
        items = json.loads(snapshot)
        address = json.loads(raw["shipping_address"])
    except KeyError as exc:
        raise MalformedMetadata({"metadata": [f"Missing key {exc.args[0]}"]}) from exc
    except (TypeError, ValueError) as exc:
        raise MalformedMetadata({"metadata": [f"Unreadable metadata: {exc}"]}) from exc

    try:
        metadata = CheckoutMetadata.model_validate(
            {
                "customer_id": raw.get("customer_id"),
                "tailor_id": raw.get("tailor_id"),
                "bag_id": raw.get("bag_id") or None,
                "shipping_address": address,
                "items": items,
                "total": raw.get("total"),
                "currency": raw.get("currency"),
            }
        )
    except pydantic.ValidationError as exc:
        raise MalformedMetadata(_field_errors(exc, "metadata")) from exc

    declared = [value for value in (raw.get("bag_item_ids") or "").split(",") if value]
    if declared != metadata.bag_item_ids:
        raise MalformedMetadata({"bag_item_ids": ["Item ids do not match the item snapshot"]})
    return metadata


def _field_errors(exc: pydantic.ValidationError, fallback: str) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"]) or fallback
        errors.setdefault(field, []).append(error["msg"])
    return errors
