"""Database engine, session factory and unit of work.

All aggregates share one declarative ``Base``. A unit of work is a
``session_scope()`` block: it commits on success, rolls back on any error, and
wraps SQLAlchemy failures in ``PersistenceFailure`` so callers only deal with
the marketplace error taxonomy.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime

import structlog
from sqlalchemy import DateTime, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.types import TypeDecorator

from shared.errors import PersistenceFailure

logger = structlog.get_logger(__name__)


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime column that always round-trips as UTC.

    SQLite drops tzinfo on the way back; this restores it.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    return datetime.now(UTC)


_engine: Engine | None = None
_session_factory: sessionmaker | None = None


def configure_database(database_url: str, **engine_kwargs) -> Engine:
    """Create the engine and session factory for ``database_url``.

    In-memory SQLite databases share a single connection so every session
    (and every thread) sees the same data.
    """
    global _engine, _session_factory

    if database_url.startswith("sqlite"):
        engine_kwargs.setdefault("connect_args", {"check_same_thread": False})
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            engine_kwargs.setdefault("poolclass", StaticPool)

    if _engine is not None:
        _engine.dispose()

    _engine = create_engine(database_url, **engine_kwargs)
    _session_factory = sessionmaker(bind=_engine, expire_on_commit=False)
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        from shared.config import get_settings

        configure_database(get_settings().database_url)
    return _engine


def get_session_factory() -> sessionmaker:
    if _session_factory is None:
        get_engine()
    return _session_factory


def reset_database() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


@contextmanager
def session_scope() -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""
    session = get_session_factory()()
    try:
        yield session
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error("Database transaction failed", error=str(exc), error_type=type(exc).__name__)
        raise PersistenceFailure({"persistence": [str(exc)]}) from exc
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def _load_models() -> None:
    # Importing the model modules registers their tables on Base.metadata
    import identity.profile  # noqa: F401
    import notifications.notification  # noqa: F401
    import ordering.bag.bag  # noqa: F401
    import ordering.checkout.session  # noqa: F401
    import ordering.order.order  # noqa: F401
    import pricing.currency.exchange_rate  # noqa: F401


def setup_db(engine: Engine | None = None) -> None:
    """Create all tables."""
    _load_models()
    Base.metadata.create_all(engine or get_engine())


def drop_db(engine: Engine | None = None) -> None:
    """Drop all tables."""
    _load_models()
    Base.metadata.drop_all(engine or get_engine())
