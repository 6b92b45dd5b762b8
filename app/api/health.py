"""
健康检查接口
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.api.deps import get_payment_router
from app.core.config import settings
from app.core.database import database_service
from app.core.redis import redis_manager
from app.services.payment_processor import PaymentProcessorRouter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["健康检查"])


@router.get("")
async def health_check():
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment
    }


@router.get("/database")
async def database_health():
    """数据库不可用时返回503；缓存只影响管理查询，不计入整体状态"""
    db_status = await database_service.health_check()
    redis_status = await redis_manager.health_check()

    healthy = db_status["status"] == "healthy"
    body = {
        "overall": healthy,
        "database": db_status,
        "redis": redis_status,
        "connection": database_service.get_connection_info(),
    }

    if not healthy:
        logger.warning(f"数据库健康检查失败: {db_status['message']}")
        return JSONResponse(status_code=503, content=body)
    return body


@router.get("/checkout")
async def checkout_health(router_: PaymentProcessorRouter = Depends(get_payment_router)):
    """结算相关配置"""
    return {
        "amount_tolerance": str(settings.checkout_amount_tolerance),
        "timeout_seconds": settings.checkout_timeout_seconds,
        "test_payments_enabled": router_.allow_test_payments,
        "payment_methods": [method.value for method in router_.processors],
    }
