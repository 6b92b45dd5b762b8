"""
数据库连接管理
请求级会话用于只读校验和后台管理，结算写入通过 get_session_maker() 获取独立事务会话
"""

import logging
import time
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from app.core.config import settings

logger = logging.getLogger(__name__)

Base = declarative_base()

engine: Optional[AsyncEngine] = None
async_session_maker: Optional[async_sessionmaker] = None


def build_engine_options(database_url: str) -> Dict[str, Any]:
    """按数据库类型和运行环境生成引擎参数"""
    options: Dict[str, Any] = {"echo": settings.debug}

    if make_url(database_url).get_backend_name() == "sqlite":
        # SQLite 写锁串行化并发事务，等待时间需覆盖一次结算
        options["poolclass"] = NullPool
        options["connect_args"] = {"timeout": max(settings.checkout_timeout_seconds, 5)}
    elif settings.is_testing:
        options["poolclass"] = NullPool
        options["pool_pre_ping"] = True
    else:
        options.update(
            pool_pre_ping=True,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_recycle=settings.db_pool_recycle,
        )
    return options


async def init_database(database_url: Optional[str] = None) -> None:
    """初始化数据库引擎和session工厂"""
    global engine, async_session_maker

    url = database_url or settings.database_url_computed
    try:
        engine = create_async_engine(url, **build_engine_options(url))
        async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        logger.info(f"数据库连接初始化成功: {engine.url.render_as_string(hide_password=True)}")
    except Exception as e:
        logger.error(f"数据库连接初始化失败: {e}")
        raise


async def create_all_tables() -> None:
    """按模型定义建表，已存在的表跳过"""
    if engine is None:
        raise RuntimeError("数据库未初始化，请先调用 init_database()")

    # 注册全部模型
    import app.models.database  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("数据表创建完成")


async def close_database() -> None:
    """关闭数据库连接"""
    global engine, async_session_maker

    if engine:
        await engine.dispose()
        engine = None
        async_session_maker = None
        logger.info("数据库连接已关闭")


def get_session_maker() -> async_sessionmaker:
    """获取session工厂，结算事务每次使用独立会话"""
    if not async_session_maker:
        raise RuntimeError("数据库未初始化，请先调用 init_database()")
    return async_session_maker


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """请求级数据库会话，正常结束时提交，异常时回滚"""
    async with get_session_maker()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


class DatabaseService:
    """数据库状态查询"""

    @property
    def engine(self) -> Optional[AsyncEngine]:
        return engine

    async def health_check(self) -> dict:
        """执行 SELECT 1 并记录耗时"""
        if not self.engine:
            return {"status": "error", "message": "数据库引擎未初始化"}

        started = time.perf_counter()
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as e:
            logger.warning(f"数据库健康检查失败: {e}")
            return {"status": "error", "message": f"数据库连接失败: {str(e)}"}

        return {
            "status": "healthy",
            "message": "数据库连接正常",
            "latency_ms": round((time.perf_counter() - started) * 1000, 2),
        }

    def get_connection_info(self) -> dict:
        """获取数据库连接信息，密码已隐藏"""
        if not self.engine:
            return {"status": "not_initialized"}

        pool = self.engine.pool
        return {
            "url": self.engine.url.render_as_string(hide_password=True),
            "dialect": self.engine.dialect.name,
            "driver": self.engine.url.drivername,
            "pool": type(pool).__name__,
            "checked_out_connections": pool.checkedout() if hasattr(pool, "checkedout") else None,
        }


database_service = DatabaseService()
