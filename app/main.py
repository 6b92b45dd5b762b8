"""
课程结算服务入口
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.checkout import router as checkout_router
from app.api.coupons import router as coupons_router
from app.api.deps import payment_router
from app.api.exceptions import (
    BusinessException,
    business_exception_handler,
    database_exception_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from app.api.health import router as health_router
from app.core.config import settings
from app.core.database import close_database, init_database
from app.core.redis import redis_manager

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """数据库必须可用；Redis不可用时禁用优惠券缓存继续启动"""
    logger.info(f"正在启动 {settings.app_name} ({settings.environment.value})")

    await init_database()
    await redis_manager.init_redis(required=False)

    if settings.is_production and payment_router.allow_test_payments:
        logger.warning("生产环境开启了模拟支付通道，请确认 ALLOW_TEST_PAYMENTS 配置")

    logger.info(f"应用启动完成，已注册支付方式: {[m.value for m in payment_router.processors] or '仅模拟支付'}")

    yield

    await close_database()
    await redis_manager.close_redis()
    logger.info("应用关闭完成")


def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="课程结算服务 - 优惠券校验、下单、支付与选课在同一事务内完成",
        debug=settings.debug,
        lifespan=lifespan
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(health_router)
    application.include_router(checkout_router)
    application.include_router(coupons_router)

    application.add_exception_handler(RequestValidationError, validation_exception_handler)
    application.add_exception_handler(StarletteHTTPException, http_exception_handler)
    application.add_exception_handler(SQLAlchemyError, database_exception_handler)
    application.add_exception_handler(BusinessException, business_exception_handler)
    application.add_exception_handler(Exception, general_exception_handler)

    return application


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
