"""Database connection management"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
import psycopg
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool
from streakfarm.config import DATABASE_URL, DB_POOL_MIN_SIZE, DB_POOL_MAX_SIZE

logger = logging.getLogger(__name__)


class Database:
    """Database connection pool manager"""

    def __init__(self, connection_string: str = DATABASE_URL):
        self.connection_string = connection_string
        self._pool: Optional[AsyncConnectionPool] = None

    async def init_pool(self) -> None:
        """Initialize connection pool"""
        logger.info("Initializing database connection pool")
        self._pool = AsyncConnectionPool(
            self.connection_string,
            min_size=DB_POOL_MIN_SIZE,
            max_size=DB_POOL_MAX_SIZE,
            open=False
        )
        await self._pool.open()

    async def close_pool(self) -> None:
        """Close connection pool"""
        if self._pool:
            logger.info("Closing database connection pool")
            await self._pool.close()
            self._pool = None

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        """Get database connection from pool"""
        if not self._pool:
            raise RuntimeError("Database pool not initialized")

        async with self._pool.connection() as conn:
            conn.row_factory = dict_row
            yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        """
        Get a connection running inside one transaction.

        Commits when the block exits normally, rolls back when it raises.
        Every statement issued on the yielded connection is part of the unit.
        """
        async with self.connection() as conn:
            async with conn.transaction():
                yield conn


# Global database instance
db = Database()
