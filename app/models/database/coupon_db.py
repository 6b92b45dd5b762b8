"""
优惠券数据库模型
"""

from sqlalchemy import Column, String, Integer, Numeric, Text, Boolean, DateTime, CheckConstraint
from sqlalchemy.sql import func
from app.core.database import Base


class CouponDB(Base):
    """优惠券数据库表"""

    __tablename__ = "coupons"

    # 主键和基本信息
    coupon_id = Column(String(50), primary_key=True, comment="优惠券ID")
    code = Column(String(50), nullable=False, unique=True, index=True, comment="优惠券代码")
    coupon_type = Column(String(20), nullable=False, comment="优惠券类型")

    # 折扣信息
    value = Column(Numeric(10, 2), nullable=False, comment="折扣值")
    min_purchase_amount = Column(Numeric(10, 2), nullable=False, default=0, comment="最低消费金额")

    # 状态与有效期
    is_active = Column(Boolean, nullable=False, default=True, index=True, comment="是否启用")
    expires_at = Column(DateTime(timezone=True), index=True, comment="过期时间")

    # 使用限制
    max_uses = Column(Integer, nullable=False, default=0, comment="总使用次数限制(0为不限)")
    used_count = Column(Integer, nullable=False, default=0, comment="已使用次数")

    # 其他信息
    description = Column(Text, comment="优惠券描述")

    # 时间戳
    created_at = Column(DateTime(timezone=True), server_default=func.now(), comment="创建时间")
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), comment="更新时间")

    __table_args__ = (
        CheckConstraint("used_count >= 0", name="ck_coupons_used_count_non_negative"),
        CheckConstraint("max_uses = 0 OR used_count <= max_uses", name="ck_coupons_used_within_quota"),
        {'comment': '优惠券信息表'}
    )
