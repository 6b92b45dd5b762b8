"""
选课记录数据库模型
"""

from sqlalchemy import Column, String, Numeric, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from app.core.database import Base


class EnrollmentDB(Base):
    """选课记录表"""

    __tablename__ = "enrollments"

    enrollment_id = Column(String(50), primary_key=True, comment="选课记录ID")
    student_id = Column(String(50), nullable=False, index=True, comment="学员ID")
    course_id = Column(String(50), nullable=False, index=True, comment="课程ID")
    order_id = Column(String(50), ForeignKey("orders.order_id"), index=True, comment="来源订单ID")

    status = Column(String(20), nullable=False, default="active", comment="选课状态")
    price_paid = Column(Numeric(10, 2), comment="购买价格")
    purchase_date = Column(DateTime(timezone=True), comment="购买时间")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), comment="创建时间")
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), comment="更新时间")

    # 同一学员同一课程只能有一条选课记录
    __table_args__ = (
        UniqueConstraint("student_id", "course_id", name="uq_enrollments_student_course"),
        {'comment': '选课记录表'}
    )
