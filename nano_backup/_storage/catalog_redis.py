"""Redis-based backup catalog for multi-process deployments."""

import json
from datetime import datetime
from typing import Any, Iterable, List, Optional

import redis.asyncio as aioredis
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.retry import Retry

from .._utils import logger
from ..models import BackupRecord
from .base import BaseBackupCatalog


class RedisBackupCatalog(BaseBackupCatalog):
    """Catalog stored in Redis.

    Layout:
        <prefix>records  hash        record id -> record JSON
        <prefix>by_time  sorted set  record id scored by timestamp (epoch seconds)

    Both structures are updated together in MULTI/EXEC pipelines.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        password: Optional[str] = None,
        prefix: str = "nano_backup:catalog:",
        max_connections: int = 10,
        socket_timeout: float = 5.0,
    ):
        self.redis_url = redis_url
        self.redis_password = password
        self.max_connections = max_connections
        self.socket_timeout = socket_timeout
        self._records_key = f"{prefix}records"
        self._index_key = f"{prefix}by_time"

        self._redis_client: Optional[Any] = None
        self._connection_pool: Optional[Any] = None
        self._initialized = False

    async def _ensure_initialized(self):
        """Ensure Redis connection is initialized."""
        if self._initialized:
            return

        retry = Retry(
            ExponentialBackoff(cap=10, base=1),
            retries=3,
            supported_errors=(RedisConnectionError, TimeoutError, ConnectionError)
        )

        self._connection_pool = aioredis.ConnectionPool.from_url(
            self.redis_url,
            password=self.redis_password,
            max_connections=self.max_connections,
            socket_timeout=self.socket_timeout,
            decode_responses=False,
            retry=retry,
        )
        self._redis_client = aioredis.Redis(connection_pool=self._connection_pool)

        try:
            await self._redis_client.ping()
            logger.info(f"Connected to Redis backup catalog at {self._records_key}")
        except RedisError as e:
            logger.error(f"Redis connection failed: {e}")
            raise

        self._initialized = True

    def _parse(self, docs: Iterable[Optional[bytes]]) -> List[BackupRecord]:
        return [BackupRecord.model_validate_json(doc) for doc in docs if doc is not None]

    async def insert(self, record: BackupRecord) -> None:
        await self._ensure_initialized()

        if await self._redis_client.hexists(self._records_key, record.id):
            raise ValueError(f"Backup record already exists: {record.id}")

        async with self._redis_client.pipeline(transaction=True) as pipe:
            pipe.hset(self._records_key, record.id, record.model_dump_json())
            pipe.zadd(self._index_key, {record.id: record.timestamp.timestamp()})
            await pipe.execute()

        logger.debug(f"Catalogued backup record {record.id} ({record.name})")

    async def find_by_id(self, record_id: str) -> Optional[BackupRecord]:
        await self._ensure_initialized()
        doc = await self._redis_client.hget(self._records_key, record_id)
        return BackupRecord.model_validate_json(doc) if doc is not None else None

    async def list_recent(self, n: Optional[int] = 10) -> List[BackupRecord]:
        await self._ensure_initialized()
        if n is not None and n <= 0:
            return []
        stop = -1 if n is None else n - 1
        ids = await self._redis_client.zrevrange(self._index_key, 0, stop)
        if not ids:
            return []
        return self._parse(await self._redis_client.hmget(self._records_key, ids))

    async def list_older_than(self, cutoff: datetime) -> List[BackupRecord]:
        await self._ensure_initialized()
        # "(" makes the upper bound exclusive
        ids = await self._redis_client.zrangebyscore(self._index_key, "-inf", f"({cutoff.timestamp()}")
        if not ids:
            return []
        return self._parse(await self._redis_client.hmget(self._records_key, ids))

    async def delete_by_ids(self, record_ids: Iterable[str]) -> int:
        record_ids = list(record_ids)
        if not record_ids:
            return 0
        await self._ensure_initialized()

        async with self._redis_client.pipeline(transaction=True) as pipe:
            pipe.hdel(self._records_key, *record_ids)
            pipe.zrem(self._index_key, *record_ids)
            deleted, _ = await pipe.execute()
        return deleted

    async def aggregate_total_size(self) -> int:
        await self._ensure_initialized()
        total = 0
        for doc in await self._redis_client.hvals(self._records_key):
            total += json.loads(doc).get("total_size_bytes", 0)
        return total

    async def count(self) -> int:
        await self._ensure_initialized()
        return await self._redis_client.hlen(self._records_key)

    async def close(self) -> None:
        if self._redis_client is not None:
            await self._redis_client.aclose()
            await self._connection_pool.disconnect()
            self._initialized = False
