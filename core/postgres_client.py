"""
PostgreSQL Client Wrapper

Centralized asyncpg pool wrapper shared by the service repositories.

Usage:
    from core.postgres_client import get_postgres_client

    db = get_postgres_client("order_service")
    async with db:
        row = await db.query_row("SELECT * FROM orders WHERE order_id = $1", [order_id])
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import asyncpg

from core.config import InfraConfig, get_settings

logger = logging.getLogger(__name__)


class PostgresClientWrapper:
    """
    PostgreSQL client wrapper around an asyncpg pool.

    Rows are returned as plain dicts so repositories can build models
    without touching asyncpg record types.
    """

    def __init__(self, service_name: str, config: Optional[InfraConfig] = None):
        self.service_name = service_name
        self.config = config or get_settings().infrastructure
        self._pool: Optional[asyncpg.Pool] = None
        self._connect_lock: Optional[asyncio.Lock] = None

    @property
    def connected(self) -> bool:
        return self._pool is not None

    async def connect(self):
        """Create the connection pool (once, even under concurrent first use)"""
        if self._pool is not None:
            return
        if self._connect_lock is None:
            self._connect_lock = asyncio.Lock()
        async with self._connect_lock:
            if self._pool is not None:
                return
            self._pool = await asyncpg.create_pool(
                dsn=self.config.postgres_dsn,
                min_size=self.config.postgres_min_pool,
                max_size=self.config.postgres_max_pool,
            )
        logger.info(
            f"PostgreSQL pool ready for {self.service_name}: "
            f"{self.config.postgres_host}:{self.config.postgres_port}/{self.config.postgres_db}"
        )

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        # Pool stays open for the lifetime of the service
        return False

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError(f"PostgreSQL pool for {self.service_name} is not connected")
        return self._pool

    async def health_check(self) -> bool:
        """Check database health; False while the pool is not open"""
        if self._pool is None:
            return False
        try:
            return await self.pool.fetchval("SELECT 1") == 1
        except Exception as e:
            logger.error(f"PostgreSQL health check failed: {e}")
            return False

    async def query(self, sql: str, params: Optional[List[Any]] = None) -> List[Dict[str, Any]]:
        """Execute query and return results"""
        rows = await self.pool.fetch(sql, *(params or []))
        return [dict(row) for row in rows]

    async def query_row(self, sql: str, params: Optional[List[Any]] = None) -> Optional[Dict[str, Any]]:
        """Execute query and return single row"""
        row = await self.pool.fetchrow(sql, *(params or []))
        return dict(row) if row else None

    async def execute(self, sql: str, params: Optional[List[Any]] = None) -> str:
        """Execute SQL statement and return the status tag"""
        return await self.pool.execute(sql, *(params or []))

    @asynccontextmanager
    async def transaction(self):
        """Acquire a connection and run the block in one transaction"""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def close(self):
        """Close the pool"""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None


# Singleton instances per service
_postgres_clients: Dict[str, PostgresClientWrapper] = {}


def get_postgres_client(service_name: str, config: Optional[InfraConfig] = None) -> PostgresClientWrapper:
    """
    Get or create the PostgreSQL client for a service.

    The pool is opened lazily on first use, so repositories can be built
    synchronously by the factories and share one pool per service.

    Args:
        service_name: Name of the owning service
        config: Optional infrastructure config override (first call wins)

    Returns:
        PostgresClientWrapper shared by every caller with the same name
    """
    client = _postgres_clients.get(service_name)
    if client is None:
        client = PostgresClientWrapper(service_name, config=config)
        _postgres_clients[service_name] = client
    return client


async def close_all_clients():
    """Close all PostgreSQL clients"""
    for name, client in list(_postgres_clients.items()):
        try:
            await client.close()
            logger.info(f"PostgreSQL pool closed for {name}")
        except Exception as e:
            logger.error(f"Failed to close PostgreSQL pool for {name}: {e}")
    _postgres_clients.clear()
