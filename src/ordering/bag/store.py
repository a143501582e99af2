"""Bag management: find-or-create, add, remove and empty.

Every mutation of one bag runs under the per-(customer, tailor) lock, and the
bag's ``version`` column catches writers in other processes.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

import structlog
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from ordering.bag.bag import Bag, BagItem, BagStatus
from shared.concurrency import KeyedLock
from shared.config import get_settings
from shared.database import session_scope
from shared.errors import NotFound, PersistenceFailure, Unauthenticated, ValidationError

logger = structlog.get_logger(__name__)

_bag_locks = KeyedLock()


@contextmanager
def bag_lock(customer_id: str, tailor_id: str) -> Iterator[None]:
    """Serialize mutations of the open bag for one (customer, tailor) pair."""
    with _bag_locks.hold(f"{customer_id}:{tailor_id}"):
        yield


@dataclass(frozen=True)
class BagView:
    bag: Bag
    items: list[BagItem]

    @classmethod
    def of(cls, bag: Bag) -> "BagView":
        return cls(bag=bag, items=list(bag.items))

    @property
    def total(self) -> float:
        return sum(item.price for item in self.items)


def find_open_bag(session: Session, customer_id: str, tailor_id: str) -> Bag | None:
    stmt = select(Bag).where(
        Bag.customer_id == customer_id,
        Bag.tailor_id == tailor_id,
        Bag.status == BagStatus.OPEN.value,
    )
    return session.scalars(stmt).first()


def _open_bags(session: Session, customer_id: str) -> list[Bag]:
    stmt = (
        select(Bag)
        .where(Bag.customer_id == customer_id, Bag.status == BagStatus.OPEN.value)
        .order_by(Bag.updated_at.desc())
    )
    return list(session.scalars(stmt))


class BagStore:
    def get(self, customer_id: str, tailor_id: str | None = None) -> BagView | None:
        """The open bag for a tailor, or the most recently updated open bag."""
        _require_customer(customer_id)
        with session_scope() as session:
            if tailor_id:
                bag = find_open_bag(session, customer_id, tailor_id)
            else:
                bags = _open_bags(session, customer_id)
                bag = bags[0] if bags else None
            return BagView.of(bag) if bag is not None else None

    def list_open(self, customer_id: str) -> list[BagView]:
        _require_customer(customer_id)
        with session_scope() as session:
            return [BagView.of(bag) for bag in _open_bags(session, customer_id)]

    def add_item(
        self,
        customer_id: str,
        tailor_id: str,
        design_id: str,
        price: float,
        notes: str | None = None,
        measurement_ref: str | None = None,
        currency: str | None = None,
        **selection,
    ) -> BagView:
        _require_customer(customer_id)
        errors = {}
        if not tailor_id:
            errors["tailor_id"] = ["Tailor is required"]
        if not design_id:
            errors["design_id"] = ["Design is required"]
        if price is None or price < 0:
            errors["price"] = ["Price must be zero or positive"]
        if errors:
            raise ValidationError(errors)

        currency = (currency or get_settings().settlement_currency).upper()

        with bag_lock(customer_id, tailor_id):
            try:
                view = self._add(customer_id, tailor_id, design_id, price, notes, measurement_ref, currency, selection)
            except PersistenceFailure:
                # Another process opened the bag first; the retry finds it
                logger.warning("Bag creation raced, retrying", customer_id=customer_id, tailor_id=tailor_id)
                view = self._add(customer_id, tailor_id, design_id, price, notes, measurement_ref, currency, selection)

        logger.info(
            "Item added to bag",
            bag_id=view.bag.id,
            customer_id=customer_id,
            tailor_id=tailor_id,
            design_id=design_id,
        )
        return view

    def _add(self, customer_id, tailor_id, design_id, price, notes, measurement_ref, currency, selection) -> BagView:
        with session_scope() as session:
            bag = find_open_bag(session, customer_id, tailor_id)
            if bag is None:
                bag = Bag.open_for(customer_id, tailor_id)
                session.add(bag)
            bag.add_item(
                design_id=design_id,
                price=price,
                currency=currency,
                tailor_notes=notes,
                measurement_ref=measurement_ref,
                **selection,
            )
            session.flush()
            return BagView.of(bag)

    def remove_item(self, customer_id: str, item_id: str) -> BagView | None:
        """Remove one item. Returns the remaining bag, or None once it is deleted."""
        _require_customer(customer_id)
        owner = self._owning_bag(customer_id, item_id)

        with bag_lock(owner.customer_id, owner.tailor_id):
            with session_scope() as session:
                bag = session.get(Bag, owner.id)
                if bag is None or not bag.is_open or all(i.id != item_id for i in bag.items):
                    raise NotFound({"item_id": ["Item not found in bag"]})

                bag.remove_item(item_id)
                if bag.is_empty:
                    session.delete(bag)
                    logger.info("Empty bag deleted", bag_id=bag.id, customer_id=customer_id)
                    return None
                session.flush()
                return BagView.of(bag)

    def _owning_bag(self, customer_id: str, item_id: str) -> Bag:
        with session_scope() as session:
            stmt = (
                select(Bag)
                .join(BagItem, BagItem.bag_id == Bag.id)
                .where(
                    BagItem.id == item_id,
                    Bag.customer_id == customer_id,
                    Bag.status == BagStatus.OPEN.value,
                )
            )
            bag = session.scalars(stmt).first()
        if bag is None:
            raise NotFound({"item_id": ["Item not found in bag"]})
        return bag

    def empty(self, customer_id: str) -> int:
        """Delete every open bag of the customer. Returns how many were removed."""
        _require_customer(customer_id)
        with session_scope() as session:
            pairs = [(bag.id, bag.tailor_id) for bag in _open_bags(session, customer_id)]

        removed = 0
        for bag_id, tailor_id in pairs:
            with bag_lock(customer_id, tailor_id):
                with session_scope() as session:
                    session.execute(delete(BagItem).where(BagItem.bag_id == bag_id))
                    result = session.execute(
                        delete(Bag).where(Bag.id == bag_id, Bag.status == BagStatus.OPEN.value)
                    )
                    removed += result.rowcount

        logger.info("Bags emptied", customer_id=customer_id, count=removed)
        return removed


def _require_customer(customer_id: str | None) -> None:
    if not customer_id:
        raise Unauthenticated({"customer_id": ["Authentication required"]})
