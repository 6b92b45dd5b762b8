"""
事务管理
为跨多张表的写操作提供"全部成功或全部回滚"的执行上下文
"""

import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import CouponExhaustedError
from app.repositories.coupon_repository import CouponRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TransactionManager:
    """事务管理器"""

    def __init__(self, session_maker: async_sessionmaker):
        self.session_maker = session_maker

    async def execute_in_transaction(self, operation: Callable[[AsyncSession], Awaitable[T]]) -> T:
        """
        在事务中执行操作

        operation 接收事务会话并在其上完成全部写入。正常返回时提交；
        抛出任何异常（包括任务取消）时回滚并原样抛出。会话在所有路径上都会释放。
        """
        async with self.session_maker() as session:
            try:
                async with session.begin():
                    result = await operation(session)
            except Exception as e:
                logger.warning(f"事务已回滚: {type(e).__name__}: {e}")
                raise
        return result

    async def increment_coupon_usage(self, session: AsyncSession, code: str) -> None:
        """
        在事务内原子地占用一次优惠券名额

        条件更新未命中任何记录说明名额已被并发结算用完，抛出 CouponExhaustedError 使整个事务回滚。
        """
        applied = await CouponRepository(session).increment_usage_if_available(code)
        if not applied:
            raise CouponExhaustedError(f"优惠券使用次数已达上限: {code}")
