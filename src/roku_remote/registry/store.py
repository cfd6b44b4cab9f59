"""
Durable key-value stores backing the device registry
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import asyncpg

logger = logging.getLogger(__name__)


class DeviceStore:
    """Minimal async key-value interface the registry needs"""

    async def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    async def set_many(self, values: Dict[str, Any]) -> None:
        raise NotImplementedError

    async def delete_many(self, *keys: str) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        return None


class MemoryDeviceStore(DeviceStore):
    """Process-local store; nothing survives a restart"""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self.data: Dict[str, Any] = dict(initial or {})

    async def get(self, key: str) -> Optional[Any]:
        return self.data.get(key)

    async def set_many(self, values: Dict[str, Any]) -> None:
        self.data.update(values)

    async def delete_many(self, *keys: str) -> None:
        for key in keys:
            self.data.pop(key, None)


class JsonFileDeviceStore(DeviceStore):
    """Stores entries in a single JSON document, rewritten atomically"""

    def __init__(self, path: str):
        self.path = Path(path)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable registry file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, 'w') as f:
            json.dump(data, f, indent=2)
        tmp_path.replace(self.path)

    async def get(self, key: str) -> Optional[Any]:
        return self._read().get(key)

    async def set_many(self, values: Dict[str, Any]) -> None:
        data = self._read()
        data.update(values)
        self._write(data)

    async def delete_many(self, *keys: str) -> None:
        data = self._read()
        for key in keys:
            data.pop(key, None)
        self._write(data)


class PostgresDeviceStore(DeviceStore):
    """Stores entries in a PostgreSQL key/value table"""

    def __init__(self, config: Dict):
        self.config = config
        self.pool = None
        self.db_host = config['host']
        self.db_port = config['port']
        self.db_name = config['database']
        self.db_user = config['username']
        self.db_password = config['password']
        self._init_lock = asyncio.Lock()

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
                max_size=4,
                command_timeout=10
            )
            logger.info("Database connection pool created")

            await self.pool.execute("""
                CREATE TABLE IF NOT EXISTS device_registry (
                    key TEXT PRIMARY KEY,
                    value JSONB,
                    updated_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
                );
            """)
            logger.info("Database schema initialized")

        except Exception as e:
            logger.error(f"Database initialization failed: {e}")
            raise

    async def _ensure_pool(self):
        async with self._init_lock:
            if self.pool is None:
                await self.initialize()

    async def get(self, key: str) -> Optional[Any]:
        await self._ensure_pool()
        raw = await self.pool.fetchval("SELECT value FROM device_registry WHERE key = $1", key)
        return json.loads(raw) if raw is not None else None

    async def set_many(self, values: Dict[str, Any]) -> None:
        await self._ensure_pool()
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                for key, value in values.items():
                    await conn.execute("""
                        INSERT INTO device_registry (key, value, updated_at)
                        VALUES ($1, $2::jsonb, CURRENT_TIMESTAMP)
                        ON CONFLICT (key) DO UPDATE SET
                            value = EXCLUDED.value,
                            updated_at = EXCLUDED.updated_at
                    """, key, json.dumps(value))

    async def delete_many(self, *keys: str) -> None:
        await self._ensure_pool()
        await self.pool.execute("DELETE FROM device_registry WHERE key = ANY($1::text[])", list(keys))

    async def close(self):
        if self.pool:
            await self.pool.close()
            self.pool = None
            logger.info("Database connection pool closed")


def create_store(config: Dict) -> DeviceStore:
    """Build the configured registry backend"""
    registry = config.get('registry', {})
    backend = registry.get('backend', 'file')
    if backend == 'memory':
        return MemoryDeviceStore()
    if backend == 'file':
        return JsonFileDeviceStore(registry.get('path', 'data/device.json'))
    if backend == 'postgres':
        return PostgresDeviceStore(registry['database'])
    raise ValueError(f"Unknown registry backend: {backend}")
