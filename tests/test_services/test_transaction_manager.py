"""
TransactionManager事务测试 - 使用真实数据库
"""

import asyncio
import pytest
from decimal import Decimal

from app.core.exceptions import CouponExhaustedError
from app.models.database.order_db import OrderDB


def make_order(order_id: str) -> OrderDB:
    return OrderDB(
        order_id=order_id,
        order_number=f"ORD-{order_id}",
        student_id="student_001",
        subtotal=Decimal("100.00"),
        discount_amount=Decimal("0"),
        final_amount=Decimal("100.00"),
        payment_method="test"
    )


@pytest.mark.asyncio
class TestTransactionManager:
    """TransactionManager测试类"""

    async def test_commit_on_success(self, transaction_manager, fetch_counts):
        """操作正常返回时提交"""

        async def operation(session):
            session.add(make_order("order_ok"))
            await session.flush()
            return "done"

        result = await transaction_manager.execute_in_transaction(operation)

        assert result == "done"
        assert (await fetch_counts())["orders"] == 1

    async def test_rollback_on_error(self, transaction_manager, fetch_counts):
        """操作抛出异常时回滚并原样抛出"""

        async def operation(session):
            session.add(make_order("order_fail"))
            await session.flush()
            raise CouponExhaustedError("名额已满")

        with pytest.raises(CouponExhaustedError):
            await transaction_manager.execute_in_transaction(operation)

        assert (await fetch_counts())["orders"] == 0

    async def test_rollback_on_cancel(self, transaction_manager, fetch_counts):
        """任务被取消时回滚"""
        started = asyncio.Event()

        async def operation(session):
            session.add(make_order("order_cancel"))
            await session.flush()
            started.set()
            await asyncio.sleep(10)

        task = asyncio.create_task(transaction_manager.execute_in_transaction(operation))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert (await fetch_counts())["orders"] == 0

    async def test_increment_coupon_usage(self, transaction_manager, create_coupon, used_count):
        await create_coupon("LIMIT2", max_uses=2)

        for _ in range(2):
            await transaction_manager.execute_in_transaction(
                lambda session: transaction_manager.increment_coupon_usage(session, "LIMIT2")
            )

        assert await used_count("LIMIT2") == 2

        # 名额用完后条件更新未命中
        with pytest.raises(CouponExhaustedError):
            await transaction_manager.execute_in_transaction(
                lambda session: transaction_manager.increment_coupon_usage(session, "LIMIT2")
            )

        assert await used_count("LIMIT2") == 2

    async def test_increment_unlimited_coupon(self, transaction_manager, create_coupon, used_count):
        await create_coupon("UNLIMITED", max_uses=0)

        for _ in range(3):
            await transaction_manager.execute_in_transaction(
                lambda session: transaction_manager.increment_coupon_usage(session, "unlimited")
            )

        assert await used_count("UNLIMITED") == 3
