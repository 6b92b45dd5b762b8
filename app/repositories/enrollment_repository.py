"""
选课记录数据库操作层
"""

import uuid
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select, and_, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DuplicateEnrollmentError
from app.models.enrollment import Enrollment, EnrollmentStatus
from app.models.database.enrollment_db import EnrollmentDB


DUPLICATE_ENROLLMENT_MARKERS = (
    "uq_enrollments_student_course",  # PostgreSQL 报错中的约束名
    "enrollments.student_id, enrollments.course_id",  # SQLite 报错中的列名
)


def is_duplicate_enrollment(error: IntegrityError) -> bool:
    """判断是否违反了 (student_id, course_id) 唯一约束"""
    message = str(error.orig)
    return any(marker in message for marker in DUPLICATE_ENROLLMENT_MARKERS)


class EnrollmentRepository:
    """选课记录数据库操作类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_enrollment(self, student_id: str, course_id: str) -> Optional[EnrollmentDB]:
        """获取学员某门课程的选课记录"""
        result = await self.db.execute(
            select(EnrollmentDB).where(
                and_(
                    EnrollmentDB.student_id == student_id,
                    EnrollmentDB.course_id == course_id
                )
            )
        )
        return result.scalar_one_or_none()

    async def is_enrolled(self, student_id: str, course_id: str) -> bool:
        """检查学员是否已选课"""
        return await self.get_enrollment(student_id, course_id) is not None

    async def get_order_enrollments(self, order_id: str) -> List[EnrollmentDB]:
        """获取订单产生的选课记录"""
        result = await self.db.execute(
            select(EnrollmentDB).where(EnrollmentDB.order_id == order_id)
        )
        return list(result.scalars().all())

    async def count_enrollments(self, student_id: Optional[str] = None) -> int:
        """统计选课数量"""
        query = select(func.count(EnrollmentDB.enrollment_id))
        if student_id:
            query = query.where(EnrollmentDB.student_id == student_id)
        result = await self.db.execute(query)
        return result.scalar() or 0

    async def create(
        self,
        student_id: str,
        course_id: str,
        order_id: Optional[str] = None,
        price_paid: Optional[Decimal] = None
    ) -> EnrollmentDB:
        """
        创建选课记录

        (student_id, course_id) 唯一，已存在时抛出 DuplicateEnrollmentError。
        唯一约束兜底并发插入的情况。
        """
        if await self.is_enrolled(student_id, course_id):
            raise DuplicateEnrollmentError(
                f"学员已选修该课程: {course_id}",
                details={"student_id": student_id, "course_id": course_id}
            )

        enrollment = EnrollmentDB(
            enrollment_id=str(uuid.uuid4()),
            student_id=student_id,
            course_id=course_id,
            order_id=order_id,
            status=EnrollmentStatus.ACTIVE.value,
            price_paid=price_paid,
            purchase_date=datetime.now()
        )
        self.db.add(enrollment)
        try:
            await self.db.flush()
        except IntegrityError as e:
            if not is_duplicate_enrollment(e):
                raise
            raise DuplicateEnrollmentError(
                f"学员已选修该课程: {course_id}",
                details={"student_id": student_id, "course_id": course_id}
            ) from e

        return enrollment

    def to_model(self, db_enrollment: EnrollmentDB) -> Enrollment:
        """转换为Pydantic模型"""
        return Enrollment(
            enrollment_id=db_enrollment.enrollment_id,
            student_id=db_enrollment.student_id,
            course_id=db_enrollment.course_id,
            order_id=db_enrollment.order_id,
            status=EnrollmentStatus(db_enrollment.status),
            price_paid=db_enrollment.price_paid,
            purchase_date=db_enrollment.purchase_date,
            created_at=db_enrollment.created_at
        )
