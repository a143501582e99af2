"""Shopping Bag aggregate: a customer's staging area for one tailor's designs.

A customer holds at most one open bag per tailor. Items capture their
customer-facing price when added, so later rate or markup changes never
alter what is already in the bag. A checked-out bag is history and can no
longer change.
"""

from datetime import datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import Float, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.database import Base, UTCDateTime, utcnow
from shared.errors import ValidationError


class BagStatus(Enum):
    OPEN = "open"
    CHECKED_OUT = "checked_out"


def _new_id() -> str:
    return str(uuid4())


class BagItem(Base):
    __tablename__ = "bag_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    bag_id: Mapped[str] = mapped_column(ForeignKey("bags.id", ondelete="CASCADE"), index=True)
    design_id: Mapped[str] = mapped_column(String(64))
    price: Mapped[float] = mapped_column(Float)
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    tailor_notes: Mapped[str | None] = mapped_column(Text, default=None)
    measurement_ref: Mapped[str | None] = mapped_column(String(64), default=None)

    # Garment selection
    fabric_index: Mapped[int | None] = mapped_column(Integer, default=None)
    color_index: Mapped[int | None] = mapped_column(Integer, default=None)
    fabric_selection: Mapped[str | None] = mapped_column(String(255), default=None)
    color_selection: Mapped[str | None] = mapped_column(String(255), default=None)
    style_type: Mapped[str | None] = mapped_column(String(64), default=None)
    fabric_yards: Mapped[float | None] = mapped_column(Float, default=None)
    completion_weeks: Mapped[int | None] = mapped_column(Integer, default=None)

    added_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow)

    bag: Mapped["Bag"] = relationship(back_populates="items")

    def snapshot(self) -> dict:
        """Everything needed to rebuild this line as an order item."""
        return {
            "bag_item_id": self.id,
            "design_id": self.design_id,
            "price": self.price,
            "currency": self.currency,
            "tailor_notes": self.tailor_notes,
            "measurement_ref": self.measurement_ref,
            "fabric_index": self.fabric_index,
            "color_index": self.color_index,
            "fabric_selection": self.fabric_selection,
            "color_selection": self.color_selection,
            "style_type": self.style_type,
            "fabric_yards": self.fabric_yards,
            "completion_weeks": self.completion_weeks,
        }


SELECTION_FIELDS = (
    "fabric_index",
    "color_index",
    "fabric_selection",
    "color_selection",
    "style_type",
    "fabric_yards",
    "completion_weeks",
)


class Bag(Base):
    __tablename__ = "bags"
    __table_args__ = (
        # One open bag per (customer, tailor)
        Index(
            "uq_bags_open_customer_tailor",
            "customer_id",
            "tailor_id",
            unique=True,
            sqlite_where=text("status = 'open'"),
            postgresql_where=text("status = 'open'"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    customer_id: Mapped[str] = mapped_column(String(64), index=True)
    tailor_id: Mapped[str] = mapped_column(String(64))
    status: Mapped[str] = mapped_column(String(16), default=BagStatus.OPEN.value)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow)

    items: Mapped[list[BagItem]] = relationship(
        back_populates="bag",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by=BagItem.added_at,
    )

    __mapper_args__ = {"version_id_col": version}

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def open_for(cls, customer_id: str, tailor_id: str) -> "Bag":
        now = utcnow()
        return cls(
            id=_new_id(),
            customer_id=customer_id,
            tailor_id=tailor_id,
            status=BagStatus.OPEN.value,
            created_at=now,
            updated_at=now,
            items=[],
        )

    @property
    def is_open(self) -> bool:
        return BagStatus(self.status) == BagStatus.OPEN

    @property
    def is_empty(self) -> bool:
        return not self.items

    def _assert_open(self, action: str) -> None:
        if not self.is_open:
            raise ValidationError({"status": [f"Items can only be {action} an open bag"]})

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def add_item(
        self,
        design_id: str,
        price: float,
        currency: str,
        tailor_notes: str | None = None,
        measurement_ref: str | None = None,
        **selection,
    ) -> BagItem:
        self._assert_open("added to")

        unknown = set(selection) - set(SELECTION_FIELDS)
        if unknown:
            raise ValidationError({field: ["Unknown garment selection field"] for field in sorted(unknown)})

        now = utcnow()
        item = BagItem(
            id=_new_id(),
            design_id=design_id,
            price=price,
            currency=currency,
            tailor_notes=tailor_notes,
            measurement_ref=measurement_ref,
            added_at=now,
            **selection,
        )
        self.items.append(item)
        self.updated_at = now
        return item

    def remove_item(self, item_id: str) -> BagItem:
        self._assert_open("removed from")

        item = next((i for i in self.items if i.id == item_id), None)
        if item is None:
            raise ValidationError({"item_id": ["Item not found in bag"]})

        self.items.remove(item)
        self.updated_at = utcnow()
        return item

    def discard_purchased(self, item_ids: list[str]) -> list[str]:
        """Drop the purchased items that are still present; return their ids.

        The bag is checked out once nothing is left in it.
        """
        wanted = set(item_ids)
        removed = [item for item in self.items if item.id in wanted]
        for item in removed:
            self.items.remove(item)

        if removed:
            self.updated_at = utcnow()
        if self.is_open and self.is_empty:
            self.check_out()
        return [item.id for item in removed]

    def check_out(self) -> None:
        self.status = BagStatus.CHECKED_OUT.value
        self.updated_at = utcnow()
