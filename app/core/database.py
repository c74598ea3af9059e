"""
Database engine, declarative base and the session guard.

Every statement the service issues runs on a connection handed out by a
``SessionGuard``. The guard owns a fixed number of long-lived connections and
lends each one to a single request at a time, so with the default size of one
all database I/O is serialized.
"""
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import Request
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.core.config import Settings


class Base(DeclarativeBase):
    """Declarative base for table models."""
    pass


class SessionGuardError(Exception):
    """Base exception for session guard failures."""
    pass


class GuardClosedError(SessionGuardError):
    """Raised when acquiring from a guard that is not open, or closed while waiting."""
    pass


class GuardTimeoutError(SessionGuardError):
    """Raised when no connection became free within the acquire timeout."""
    pass


class SessionGuard:
    """
    Exclusive access to a fixed set of shared database connections.

    Waiters are served in the order they started waiting. A connection is
    returned to the idle queue when the ``acquire()`` scope exits, whether it
    exits normally or with an exception; any transaction still open at that
    point is rolled back first. Closing the guard wakes every pending waiter
    with ``GuardClosedError``.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        size: int = 1,
        acquire_timeout: float | None = None,
    ):
        """
        Args:
            engine: Engine the connections are opened from
            size: Number of connections held by the guard
            acquire_timeout: Seconds to wait for a free connection, None waits forever
        """
        if size < 1:
            raise ValueError("size must be at least 1")

        self.engine = engine
        self.size = size
        self.acquire_timeout = acquire_timeout
        self._connections: list[AsyncConnection] = []
        # None entries tell waiters the guard was closed
        self._idle: asyncio.Queue[AsyncConnection | None] = asyncio.Queue()
        self._waiting = 0

    @property
    def is_open(self) -> bool:
        return bool(self._connections)

    async def open(self) -> None:
        """Open the connections held by the guard."""
        if self.is_open:
            return

        self._drain()
        for _ in range(self.size):
            connection = await self.engine.connect()
            self._connections.append(connection)
            self._idle.put_nowait(connection)

        logger.info("Session guard opened with {} connection(s)", self.size)

    async def close(self) -> None:
        """Close every connection held by the guard and wake pending waiters."""
        connections, self._connections = self._connections, []
        self._drain()
        for _ in range(self._waiting):
            self._idle.put_nowait(None)

        for connection in connections:
            await connection.close()

        if connections:
            logger.info("Session guard closed")

    def _drain(self) -> None:
        while not self._idle.empty():
            self._idle.get_nowait()

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[AsyncConnection]:
        """
        Wait for an idle connection and hold it for the duration of the scope.

        Raises:
            GuardClosedError: The guard is not open or was closed while waiting
            GuardTimeoutError: No connection was released within the timeout
        """
        if not self.is_open:
            raise GuardClosedError("Session guard is not open")

        self._waiting += 1
        try:
            connection = await asyncio.wait_for(
                self._idle.get(), timeout=self.acquire_timeout
            )
        except asyncio.TimeoutError as e:
            logger.warning(
                "Timed out after {}s waiting for a database connection",
                self.acquire_timeout,
            )
            raise GuardTimeoutError(
                f"No database connection available after {self.acquire_timeout}s"
            ) from e
        finally:
            self._waiting -= 1

        if connection is None:
            raise GuardClosedError("Session guard was closed while waiting")

        try:
            yield connection
        finally:
            # A connection closed while lent out is not handed back
            if connection in self._connections:
                try:
                    if connection.in_transaction():
                        await connection.rollback()
                finally:
                    self._idle.put_nowait(connection)


def create_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine described by the settings."""
    return create_async_engine(settings.database_url, echo=settings.debug)


async def create_db_and_tables(guard: SessionGuard) -> None:
    """Create missing tables. Production schemas are expected to exist already."""
    async with guard.acquire() as connection:
        async with connection.begin():
            await connection.run_sync(Base.metadata.create_all)
    logger.info("Database schema ensured")


def get_session_guard(request: Request) -> SessionGuard:
    """Dependency returning the guard opened by the application lifespan."""
    return request.app.state.session_guard
