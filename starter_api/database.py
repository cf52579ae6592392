import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, func, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from starter_api.config import DatabaseSettings, settings
from starter_api.errors import DatabaseError
from starter_api.middleware import install_query_counter

logger = logging.getLogger(__name__)


def create_engine(cfg: DatabaseSettings) -> AsyncEngine:
    """
    Build the async engine from the ``database`` settings section.

    Pool sizing follows the connection settings: ``max_idle_conns`` stay
    open in the pool and up to ``max_open_conns`` may exist at once.
    ``statement_timeout`` is handed to PostgreSQL so a query never outlives
    the request that issued it.
    """
    url = make_url(cfg.dsn)
    kwargs: dict = {"echo": cfg.echo, "pool_pre_ping": True}

    if not url.drivername.startswith("sqlite"):
        kwargs.update(
            pool_size=cfg.max_idle_conns,
            max_overflow=max(cfg.max_open_conns - cfg.max_idle_conns, 0),
            pool_recycle=int(cfg.max_lifetime.total_seconds()),
        )
    if url.drivername == "postgresql+asyncpg":
        timeout_ms = int(cfg.statement_timeout.total_seconds() * 1000)
        kwargs["connect_args"] = {"server_settings": {"statement_timeout": str(timeout_ms)}}

    return create_async_engine(url, **kwargs)


# Module-level engine variable allows tests to override with a test engine.
engine = create_engine(settings.database)

# Register the per-request SQL query counter on the production engine.
install_query_counter(engine)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    # Python-side values stay readable after flush without a refresh round trip.
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=utcnow, nullable=True
    )


class SoftDeleteMixin:
    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops the offset on read)."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def get_db():
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def health_check(db_engine: AsyncEngine, timeout: float = 5.0) -> None:
    """Run ``SELECT 1`` with a deadline; raise ``DatabaseError`` on failure."""
    try:
        async with asyncio.timeout(timeout):
            async with db_engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError, TimeoutError) as exc:
        logger.error("Database health check failed: %s", exc)
        raise DatabaseError("database health check failed", cause=exc) from exc


def pool_stats(db_engine: AsyncEngine) -> dict:
    """Snapshot of the connection pool, for the health endpoint."""
    pool = db_engine.sync_engine.pool
    stats = {"status": pool.status()}
    for name in ("size", "checkedin", "checkedout", "overflow"):
        method = getattr(pool, name, None)
        if callable(method):
            stats[name] = method()
    return stats


def get_engine() -> AsyncEngine:
    """Dependency returning the application engine (overridden in tests)."""
    return engine
