"""
Redis连接管理
缓存只服务于优惠券管理查询，连接不可用时服务降级为直接查库
"""

import time
from typing import Optional

import redis.asyncio as aioredis
import structlog

from app.core.config import settings

logger = structlog.get_logger(__name__)


class RedisManager:
    """Redis连接管理器"""

    def __init__(self):
        self.redis_pool: Optional[aioredis.Redis] = None

    async def init_redis(self, required: bool = False) -> bool:
        """
        初始化Redis连接池

        required 为 False 时连接失败只记录警告并返回 False，缓存随之禁用
        """
        client = aioredis.from_url(
            settings.redis_url_computed,
            encoding="utf-8",
            decode_responses=True,
            max_connections=settings.redis_max_connections,
            retry_on_timeout=True
        )
        try:
            await client.ping()
        except Exception as e:
            await client.aclose()
            if required:
                logger.error("Redis连接初始化失败", error=str(e))
                raise
            logger.warning("Redis不可用，优惠券缓存已禁用", error=str(e))
            return False

        self.redis_pool = client
        logger.info("Redis连接初始化成功", url=settings.redis_url_computed.split("@")[-1])
        return True

    async def close_redis(self) -> None:
        if self.redis_pool:
            await self.redis_pool.aclose()
            self.redis_pool = None
            logger.info("Redis连接已关闭")

    async def health_check(self) -> dict:
        """Redis健康检查"""
        if not self.redis_pool:
            return {"status": "disabled", "message": "缓存未启用"}

        started = time.perf_counter()
        try:
            await self.redis_pool.ping()
        except Exception as e:
            logger.warning("Redis健康检查失败", error=str(e))
            return {"status": "error", "message": f"连接失败: {str(e)}"}

        return {
            "status": "healthy",
            "message": "连接正常",
            "latency_ms": round((time.perf_counter() - started) * 1000, 2),
        }


redis_manager = RedisManager()


def get_redis_client() -> Optional[aioredis.Redis]:
    """获取Redis客户端，未启用时返回None"""
    return redis_manager.redis_pool
