"""
Database manager for PostgreSQL router persistence
"""

import asyncpg
import logging
from typing import List, Dict, Optional
from datetime import datetime, timezone

from .models import RouterRecord

logger = logging.getLogger(__name__)

_ROUTER_COLUMNS = """
    router_id, name, host, username, password, port,
    identity, model, version, last_connected, is_active
"""

class DatabaseManager:
    """Manages PostgreSQL operations for saved router configurations"""

    def __init__(self, config: Dict):
        self.config = config
        self.pool = None
        self.db_host = config['database']['host']
        self.db_port = config['database']['port']
        self.db_name = config['database']['database']
        self.db_user = config['database']['username']
        self.db_password = config['database']['password']

    async def initialize(self):
        """Initialize database connection pool and schema"""
        try:
            self.pool = await asyncpg.create_pool(
                host=self.db_host,
                port=self.db_port,
                database=self.db_name,
                user=self.db_user,
                password=self.db_password,
                min_size=1,
                max_size=10,
                command_timeout=10
            )

            logger.info("Database connection pool created")

            await self.create_schema()
            logger.info("Database schema initialized")

        except Exception as e:
            logger.error(f"Database initialization failed: {e}")
            raise

    async def create_schema(self):
        """Create database tables if they don't exist"""
        schema_sql = """
        CREATE TABLE IF NOT EXISTS routers (
            router_id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            host TEXT NOT NULL,
            username TEXT NOT NULL,
            password TEXT NOT NULL,
            port INTEGER DEFAULT 8728,
            identity TEXT,
            model TEXT,
            version TEXT,
            last_connected TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
            is_active BOOLEAN DEFAULT false,
            created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
        );

        CREATE INDEX IF NOT EXISTS idx_routers_active
        ON routers(is_active);
        """

        async with self.pool.acquire() as conn:
            await conn.execute(schema_sql)

    async def upsert_router(self, router: RouterRecord) -> bool:
        """Insert or update a router record"""
        try:
            async with self.pool.acquire() as conn:
                await conn.execute("""
                    INSERT INTO routers (
                        router_id, name, host, username, password, port,
                        identity, model, version, last_connected, is_active
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
                    ON CONFLICT (router_id) DO UPDATE SET
                        name = $2,
                        host = $3,
                        username = $4,
                        password = $5,
                        port = $6,
                        identity = $7,
                        model = $8,
                        version = $9,
                        last_connected = $10,
                        is_active = $11,
                        updated_at = CURRENT_TIMESTAMP
                """,
                router.router_id, router.name, router.host, router.username,
                router.password, router.port, router.identity, router.model,
                router.version, router.last_connected or datetime.now(timezone.utc),
                router.is_active
                )
            return True
        except Exception as e:
            logger.error(f"Failed to upsert router {router.router_id}: {e}")
            return False

    async def get_routers(self) -> List[RouterRecord]:
        """Get all saved routers"""
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(f"""
                    SELECT {_ROUTER_COLUMNS}
                    FROM routers
                    ORDER BY name
                """)
                return [self._row_to_record(row) for row in rows]

        except Exception as e:
            logger.error(f"Failed to get routers: {e}")
            return []

    async def get_active_routers(self) -> List[RouterRecord]:
        """Get routers that were connected when the server last ran"""
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(f"""
                    SELECT {_ROUTER_COLUMNS}
                    FROM routers
                    WHERE is_active = true
                """)
                return [self._row_to_record(row) for row in rows]

        except Exception as e:
            logger.error(f"Failed to get active routers: {e}")
            return []

    async def get_router_by_id(self, router_id: str) -> Optional[RouterRecord]:
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(f"""
                    SELECT {_ROUTER_COLUMNS}
                    FROM routers
                    WHERE router_id = $1
                """, router_id)
                return self._row_to_record(row) if row else None

        except Exception as e:
            logger.error(f"Failed to get router {router_id}: {e}")
            return None

    async def mark_router_inactive(self, router_id: str):
        """Mark a router as disconnected"""
        try:
            async with self.pool.acquire() as conn:
                await conn.execute("""
                    UPDATE routers
                    SET is_active = false, updated_at = CURRENT_TIMESTAMP
                    WHERE router_id = $1
                """, router_id)
        except Exception as e:
            logger.error(f"Failed to mark router inactive {router_id}: {e}")

    async def close(self):
        """Close database connection pool"""
        if self.pool:
            await self.pool.close()
            logger.info("Database connection pool closed")

    @staticmethod
    def _row_to_record(row) -> RouterRecord:
        return RouterRecord(
            router_id=row['router_id'],
            name=row['name'],
            host=row['host'],
            username=row['username'],
            password=row['password'],
            port=row['port'],
            identity=row['identity'],
            model=row['model'],
            version=row['version'],
            last_connected=row['last_connected'],
            is_active=row['is_active']
        )
