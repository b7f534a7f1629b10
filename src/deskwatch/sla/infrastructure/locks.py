"""
Leader locks for single-flight background work.
"""

import asyncio
import zlib
from typing import Dict

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from deskwatch.sla.application.services import ILeaderLock
from deskwatch.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class InProcessLeaderLock(ILeaderLock):
    """Named non-blocking locks for a single process."""

    def __init__(self):
        self._held: Dict[str, bool] = {}

    async def acquire(self, name: str) -> bool:
        if self._held.get(name):
            return False
        self._held[name] = True
        return True

    async def release(self, name: str) -> None:
        self._held.pop(name, None)


def advisory_key(name: str) -> int:
    return zlib.crc32(name.encode("utf-8"))


class PostgresAdvisoryLeaderLock(ILeaderLock):
    """
    Session-level ``pg_try_advisory_lock`` held on a dedicated connection.

    The lock lives as long as the connection, so a crashed holder releases it
    when its connection drops.
    """

    def __init__(self, engine: AsyncEngine):
        self._engine = engine
        self._connections: Dict[str, AsyncConnection] = {}
        self._guard = asyncio.Lock()

    async def acquire(self, name: str) -> bool:
        async with self._guard:
            if name in self._connections:
                return False

            conn = await self._engine.connect()
            try:
                result = await conn.execute(
                    text("SELECT pg_try_advisory_lock(:lock_id)"),
                    {"lock_id": advisory_key(name)},
                )
                acquired = bool(result.scalar())
                await conn.commit()
            except Exception:
                await conn.close()
                raise

            if not acquired:
                await conn.close()
                return False

            self._connections[name] = conn
            return True

    async def release(self, name: str) -> None:
        async with self._guard:
            conn = self._connections.pop(name, None)
            if conn is None:
                return
            try:
                await conn.execute(
                    text("SELECT pg_advisory_unlock(:lock_id)"),
                    {"lock_id": advisory_key(name)},
                )
                await conn.commit()
            except Exception as e:
                # Still holding the session lock; keep the connection out of the pool
                logger.warning("Advisory unlock failed, invalidating connection", extra={"lock": name, "error": str(e)})
                await conn.invalidate()
                raise
            finally:
                await conn.close()
