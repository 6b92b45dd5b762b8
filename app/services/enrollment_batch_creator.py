"""
批量选课
在同一事务中依次执行多个选课操作，任一失败则整体回滚
"""

import logging
from typing import Awaitable, Callable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.database.enrollment_db import EnrollmentDB
from app.models.enrollment import EnrollmentBatchResult
from app.services.transaction_manager import TransactionManager

logger = logging.getLogger(__name__)

EnrollmentOperation = Callable[[AsyncSession], Awaitable[EnrollmentDB]]


class EnrollmentBatchCreator:
    """批量选课执行器"""

    def __init__(self, transaction_manager: TransactionManager):
        self.transaction_manager = transaction_manager

    async def create_purchase_enrollments_transaction(
        self,
        operations: List[EnrollmentOperation],
        session: Optional[AsyncSession] = None
    ) -> EnrollmentBatchResult:
        """
        执行购买产生的全部选课操作

        传入 session 时加入调用方已开启的事务，失败后由调用方回滚；
        否则通过 TransactionManager 开启独立事务。
        成功时 results 与 operations 一一对应且保持顺序。
        """
        results: List[EnrollmentDB] = []
        errors: List[str] = []

        async def run(tx_session: AsyncSession) -> List[EnrollmentDB]:
            for operation in operations:
                try:
                    results.append(await operation(tx_session))
                except Exception as e:
                    errors.append(getattr(e, "message", None) or str(e) or "选课操作失败")
                    raise
            return results

        try:
            if session is not None:
                await run(session)
            else:
                await self.transaction_manager.execute_in_transaction(run)
        except Exception as e:
            logger.warning(f"批量选课失败，已创建 {len(results)} 条将被回滚: {errors or [str(e)]}")
            return EnrollmentBatchResult(
                success=False,
                results=[],
                errors=errors or [str(e)],
                failure=e
            )

        return EnrollmentBatchResult(success=True, results=list(results), errors=[])
