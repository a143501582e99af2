"""Record of every checkout session opened with the processor.

Written when a customer is redirected to pay, marked consumed when the
processor confirms payment. Orders are never rebuilt from this record; it
exists to audit what was sent and to spot sessions that never completed.
"""

from datetime import datetime

from sqlalchemy import JSON, Float, String
from sqlalchemy.orm import Mapped, mapped_column

from shared.database import Base, UTCDateTime, utcnow


class CheckoutSessionRecord(Base):
    __tablename__ = "checkout_sessions"

    session_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    customer_id: Mapped[str] = mapped_column(String(64), index=True)
    tailor_id: Mapped[str] = mapped_column(String(64))
    bag_id: Mapped[str | None] = mapped_column(String(36), default=None)
    session_metadata: Mapped[dict] = mapped_column("metadata", JSON, default=dict)
    settlement_total: Mapped[float] = mapped_column(Float)
    currency: Mapped[str] = mapped_column(String(3))
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow)
    consumed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), default=None)

    @property
    def is_consumed(self) -> bool:
        return self.consumed_at is not None

    def consume(self) -> None:
        if self.consumed_at is None:
            self.consumed_at = utcnow()
