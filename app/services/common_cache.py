"""
优惠券管理查询缓存
值以JSON存储；Redis未启用或出错时按未命中处理，业务流程不受影响
"""

import json
import logging
from typing import Any, Optional

import redis.asyncio as redis

from app.core.config import settings
from app.core.redis import get_redis_client

logger = logging.getLogger(__name__)


class SimpleCache:
    """带key前缀的JSON缓存"""

    def __init__(self, redis_client: Optional[redis.Redis] = None, key_prefix: str = ""):
        self._redis_client = redis_client
        self.key_prefix = key_prefix

    @property
    def redis_client(self) -> Optional[redis.Redis]:
        """未显式指定客户端时使用全局连接池"""
        return self._redis_client or get_redis_client()

    def full_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def get(self, key: str) -> Optional[Any]:
        client = self.redis_client
        if client is None:
            return None
        try:
            data = await client.get(self.full_key(key))
        except redis.RedisError as e:
            logger.warning(f"读取缓存失败 {key}: {e}")
            return None
        return json.loads(data) if data else None

    async def set(self, key: str, value: Any, ttl: int = 300) -> bool:
        client = self.redis_client
        if client is None:
            return False
        try:
            await client.setex(self.full_key(key), ttl, json.dumps(value, default=str, ensure_ascii=False))
        except redis.RedisError as e:
            logger.warning(f"写入缓存失败 {key}: {e}")
            return False
        return True

    async def delete(self, *keys: str) -> int:
        """删除一个或多个key，返回删除数量"""
        client = self.redis_client
        if client is None or not keys:
            return 0
        try:
            return await client.delete(*(self.full_key(key) for key in keys))
        except redis.RedisError as e:
            logger.warning(f"删除缓存失败 {keys}: {e}")
            return 0

    async def delete_pattern(self, pattern: str) -> int:
        """按通配符删除，使用SCAN避免阻塞"""
        client = self.redis_client
        if client is None:
            return 0
        try:
            keys = [key async for key in client.scan_iter(match=self.full_key(pattern), count=200)]
            return await client.delete(*keys) if keys else 0
        except redis.RedisError as e:
            logger.warning(f"按模式删除缓存失败 {pattern}: {e}")
            return 0


coupon_cache = SimpleCache(key_prefix=settings.coupon_cache_prefix)
