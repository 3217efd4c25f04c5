from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.pool import StaticPool
from sqlalchemy.types import TypeDecorator
from sqlmodel import Session, SQLModel, create_engine

from app.core.config import settings


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return kwargs
    return {"pool_pre_ping": True}


engine = create_engine(
    settings.SQLALCHEMY_DATABASE_URI,
    **_engine_kwargs(settings.SQLALCHEMY_DATABASE_URI),
)


def init_db(session: Session) -> None:
    """Create tables directly when migrations are not in use (local dev)."""
    # Production schemas are managed with Alembic migrations
    import app.models.domain  # noqa: F401  registers table metadata
    import app.models.outbox  # noqa: F401

    SQLModel.metadata.create_all(session.get_bind())


def utc_now() -> datetime:
    """Timezone-aware UTC timestamp, the convention for every stored datetime."""
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """``timestamptz`` column that always hands back aware UTC datetimes.

    SQLite has no timezone storage and returns naive values; those are read
    as UTC. Naive values bound for writes are taken to be UTC as well.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
