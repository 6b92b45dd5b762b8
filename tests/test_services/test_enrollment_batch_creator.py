"""
EnrollmentBatchCreator批量选课测试 - 使用真实数据库
"""

import pytest
from functools import partial

from app.core.exceptions import DuplicateEnrollmentError
from app.repositories.enrollment_repository import EnrollmentRepository
from app.services.enrollment_batch_creator import EnrollmentBatchCreator


async def enroll(session, student_id: str, course_id: str):
    return await EnrollmentRepository(session).create(student_id=student_id, course_id=course_id)


@pytest.mark.asyncio
class TestEnrollmentBatchCreator:
    """EnrollmentBatchCreator测试类"""

    async def test_all_succeed(self, transaction_manager, fetch_counts):
        """全部成功时结果顺序与输入一致"""
        creator = EnrollmentBatchCreator(transaction_manager)
        operations = [partial(enroll, student_id="student_001", course_id=f"course_{i}") for i in range(3)]

        result = await creator.create_purchase_enrollments_transaction(operations)

        assert result.success is True
        assert result.errors == []
        assert [e.course_id for e in result.results] == ["course_0", "course_1", "course_2"]
        assert (await fetch_counts())["enrollments"] == 3

    async def test_failure_rolls_back_all(self, transaction_manager, fetch_counts):
        """任一选课失败时全部回滚"""
        await EnrollmentBatchCreator(transaction_manager).create_purchase_enrollments_transaction(
            [partial(enroll, student_id="student_001", course_id="course_b")]
        )
        creator = EnrollmentBatchCreator(transaction_manager)
        operations = [
            partial(enroll, student_id="student_001", course_id="course_a"),
            partial(enroll, student_id="student_001", course_id="course_b"),
            partial(enroll, student_id="student_001", course_id="course_c"),
        ]

        result = await creator.create_purchase_enrollments_transaction(operations)

        assert result.success is False
        assert result.results == []
        assert len(result.errors) == 1
        assert isinstance(result.failure, DuplicateEnrollmentError)
        # 只保留之前已有的一条
        assert (await fetch_counts())["enrollments"] == 1

    async def test_stops_at_first_failure(self, transaction_manager):
        """首个失败后不再执行后续操作"""
        calls = []

        async def failing(session):
            calls.append("failing")
            raise DuplicateEnrollmentError("重复选课")

        async def never(session):
            calls.append("never")

        creator = EnrollmentBatchCreator(transaction_manager)
        result = await creator.create_purchase_enrollments_transaction([failing, never])

        assert result.success is False
        assert calls == ["failing"]

    async def test_unexpected_error_returns_failure(self, transaction_manager, fetch_counts):
        """非业务异常同样返回失败结果并回滚"""
        async def repository_down(session):
            raise RuntimeError("选课服务不可用")

        creator = EnrollmentBatchCreator(transaction_manager)
        operations = [
            partial(enroll, student_id="student_003", course_id="course_ok"),
            repository_down,
        ]

        result = await creator.create_purchase_enrollments_transaction(operations)

        assert result.success is False
        assert result.errors == ["选课服务不可用"]
        assert isinstance(result.failure, RuntimeError)
        assert (await fetch_counts())["enrollments"] == 0

    async def test_joins_caller_transaction(self, transaction_manager, fetch_counts):
        """传入session时加入调用方事务，由调用方决定提交"""
        creator = EnrollmentBatchCreator(transaction_manager)

        async def outer(session):
            result = await creator.create_purchase_enrollments_transaction(
                [partial(enroll, student_id="student_002", course_id="course_x")],
                session=session
            )
            assert result.success is True
            raise RuntimeError("调用方回滚")

        with pytest.raises(RuntimeError):
            await transaction_manager.execute_in_transaction(outer)

        assert (await fetch_counts())["enrollments"] == 0

    async def test_empty_batch(self, transaction_manager):
        result = await EnrollmentBatchCreator(transaction_manager).create_purchase_enrollments_transaction([])

        assert result.success is True
        assert result.results == []
