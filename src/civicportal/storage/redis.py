"""Redis storage — for deployments that share one session across hosts
(kiosks, a help-desk pool) or want the record off the local disk.

Learn: MSET writes several keys in one atomic command, which is what
set_many() needs. decode_responses=True makes the client return str
instead of bytes.
"""

from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from civicportal.config import settings
from civicportal.errors import StorageError
from civicportal.storage.base import KeyValueStore


class RedisStore(KeyValueStore):
    def __init__(
        self,
        url: Optional[str] = None,
        client: Optional[aioredis.Redis] = None,
    ):
        self._owns_client = client is None
        self._redis = client or aioredis.from_url(
            url or settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
        )

    @property
    def name(self) -> str:
        return "redis"

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self._redis.get(key)
        except RedisError as e:
            raise StorageError() from e

    async def set_many(self, items: dict[str, str]) -> None:
        try:
            await self._redis.mset(items)
        except RedisError as e:
            raise StorageError() from e

    async def delete(self, *keys: str) -> None:
        if not keys:
            return
        try:
            await self._redis.delete(*keys)
        except RedisError as e:
            raise StorageError() from e

    async def close(self) -> None:
        if self._owns_client:
            await self._redis.aclose()
