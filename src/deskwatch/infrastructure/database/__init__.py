"""
Database Infrastructure
=======================

One async engine per process (asyncpg in production, aiosqlite in tests). Which
tables actually exist is probed once at startup (``probe_capabilities``) and
handed to the repositories; nothing downstream inspects the schema again.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from deskwatch.config import settings
from deskwatch.core import NotProvisioned
from deskwatch.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class Base(DeclarativeBase):
    pass


@dataclass(frozen=True)
class StorageCapabilities:
    """Tables known to exist when the application started."""
    tables: frozenset = frozenset()

    def has(self, table: str) -> bool:
        return table in self.tables

    @classmethod
    def all_of(cls, tables: Iterable[str]) -> "StorageCapabilities":
        return cls(frozenset(tables))


# Set by init_database(), cleared by close_database()
_engine: AsyncEngine | None = None
_session_maker: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    if _engine is None:
        raise RuntimeError("Database engine not initialized. Call init_database() first.")
    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    if _session_maker is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")
    return _session_maker


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def init_database(database_url: Optional[str] = None) -> AsyncEngine:
    """Create the process engine. Pool options are skipped for SQLite."""
    global _engine, _session_maker

    # asyncpg expects ssl= rather than libpq's sslmode=
    url = (database_url or settings.database_url).replace("sslmode=", "ssl=")

    engine_kwargs = {"echo": settings.debug}
    if not url.startswith("sqlite"):
        engine_kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,
        )

    _engine = create_async_engine(url, **engine_kwargs)
    _session_maker = build_session_maker(_engine)
    return _engine


async def close_database() -> None:
    global _engine, _session_maker

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_maker = None


async def create_tables(engine: Optional[AsyncEngine] = None) -> None:
    """Development and tests only; production schemas are migrated separately."""
    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def probe_capabilities(engine: Optional[AsyncEngine] = None) -> StorageCapabilities:
    """
    Inspect the live schema once and report which tables exist.

    An unreachable database yields empty capabilities so every repository
    reports ``NotProvisioned`` instead of failing.
    """
    engine = engine or get_engine()
    try:
        async with engine.connect() as conn:
            tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
    except Exception as e:
        # Driver-specific connection errors do not share a base class.
        logger.warning(
            "Database unreachable during capability probe",
            extra={"error": str(e), "error_type": type(e).__name__}
        )
        return StorageCapabilities()

    capabilities = StorageCapabilities.all_of(tables)
    logger.info("Storage capabilities probed", extra={"tables": sorted(capabilities.tables)})
    return capabilities


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalise a stored timestamp to aware UTC.

    Drivers without timezone support (SQLite) hand back naive values; those
    were written as UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CapabilityAwareRepository:
    """
    Base for repositories whose table may not be migrated yet.

    Subclasses set ``table_name`` and check ``provisioned`` before touching
    the database, returning ``NotProvisioned`` when the probe did not find
    the table.
    """

    table_name: str = ""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        capabilities: StorageCapabilities,
    ):
        self._session_factory = session_factory
        self._capabilities = capabilities

    @property
    def provisioned(self) -> bool:
        return self._capabilities.has(self.table_name)

    def not_provisioned(self) -> NotProvisioned:
        return NotProvisioned(self.table_name)
