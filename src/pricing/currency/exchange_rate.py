"""Exchange-rate observations (append-only) and their store.

Each successful provider fetch records a new observation; rows are never
updated. The most recent observation for a pair is the current rate.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import Float, Index, String, select
from sqlalchemy.orm import Mapped, mapped_column

from shared.database import Base, UTCDateTime, session_scope, utcnow


class ExchangeRate(Base):
    __tablename__ = "exchange_rates"
    __table_args__ = (Index("ix_exchange_rates_pair_observed", "from_currency", "to_currency", "observed_at"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    from_currency: Mapped[str] = mapped_column(String(3))
    to_currency: Mapped[str] = mapped_column(String(3))
    rate: Mapped[float] = mapped_column(Float)
    observed_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow)


class ExchangeRateStore:
    """Persistence for rate observations."""

    def latest(self, from_currency: str, to_currency: str) -> ExchangeRate | None:
        with session_scope() as session:
            stmt = (
                select(ExchangeRate)
                .where(
                    ExchangeRate.from_currency == from_currency,
                    ExchangeRate.to_currency == to_currency,
                )
                .order_by(ExchangeRate.observed_at.desc())
                .limit(1)
            )
            return session.scalars(stmt).first()

    def append(self, from_currency: str, to_currency: str, rate: float, observed_at: datetime | None = None) -> ExchangeRate:
        observation = ExchangeRate(
            from_currency=from_currency,
            to_currency=to_currency,
            rate=rate,
            observed_at=observed_at or utcnow(),
        )
        with session_scope() as session:
            session.add(observation)
        return observation

    def history(self, from_currency: str, to_currency: str) -> list[ExchangeRate]:
        with session_scope() as session:
            stmt = (
                select(ExchangeRate)
                .where(
                    ExchangeRate.from_currency == from_currency,
                    ExchangeRate.to_currency == to_currency,
                )
                .order_by(ExchangeRate.observed_at.asc())
            )
            return list(session.scalars(stmt))
