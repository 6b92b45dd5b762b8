"""
订单相关数据库模型
"""

from sqlalchemy import Column, String, Integer, Numeric, Text, Boolean, DateTime, JSON, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.core.database import Base


class OrderDB(Base):
    """订单数据库表"""

    __tablename__ = "orders"

    # 主键和学员信息
    order_id = Column(String(50), primary_key=True, comment="订单ID")
    order_number = Column(String(50), nullable=False, unique=True, comment="订单编号")
    student_id = Column(String(50), nullable=False, index=True, comment="学员ID")

    # 金额信息
    subtotal = Column(Numeric(12, 2), nullable=False, comment="商品小计")
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0, comment="优惠券折扣")
    final_amount = Column(Numeric(12, 2), nullable=False, comment="最终金额")

    # 应用的优惠信息
    applied_coupon_code = Column(String(50), comment="使用的优惠券代码")

    # 订单状态
    order_status = Column(String(20), nullable=False, default="pending", index=True, comment="订单状态")
    payment_status = Column(String(20), nullable=False, default="pending", index=True, comment="支付状态")
    payment_method = Column(String(50), nullable=False, comment="支付方式")
    is_test_mode = Column(Boolean, nullable=False, default=False, comment="是否测试支付")

    # 账单地址快照
    billing_address = Column(JSON, comment="账单地址")

    # 时间戳
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True, comment="创建时间")
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), comment="更新时间")
    paid_at = Column(DateTime(timezone=True), comment="支付时间")

    # 关系映射
    order_items = relationship("OrderItemDB", back_populates="order", cascade="all, delete-orphan")

    __table_args__ = (
        {'comment': '订单主表'}
    )


class OrderItemDB(Base):
    """订单项目数据库表（购物车快照）"""

    __tablename__ = "order_items"

    item_id = Column(String(50), primary_key=True, comment="项目ID")
    order_id = Column(String(50), ForeignKey("orders.order_id"), nullable=False, index=True, comment="订单ID")

    # 课程或商品，二选一
    course_id = Column(String(50), comment="课程ID")
    product_id = Column(String(50), comment="商品ID")
    item_name = Column(String(200), comment="名称")

    # 价格信息
    unit_price = Column(Numeric(10, 2), nullable=False, comment="单价")
    quantity = Column(Integer, nullable=False, default=1, comment="数量")

    order = relationship("OrderDB", back_populates="order_items")

    __table_args__ = (
        {'comment': '订单项目表'}
    )


class PaymentTransactionDB(Base):
    """支付流水表"""

    __tablename__ = "payment_transactions"

    transaction_id = Column(String(60), primary_key=True, comment="流水ID")
    order_id = Column(String(50), ForeignKey("orders.order_id"), nullable=False, index=True, comment="订单ID")
    student_id = Column(String(50), nullable=False, index=True, comment="学员ID")

    amount = Column(Numeric(12, 2), nullable=False, comment="支付金额")
    payment_method = Column(String(50), nullable=False, comment="支付方式")
    gateway_transaction_id = Column(String(100), comment="支付网关流水号")
    status = Column(String(20), nullable=False, default="pending", index=True, comment="流水状态")
    failure_reason = Column(Text, comment="失败原因")
    gateway_response = Column(JSON, comment="网关返回数据")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), comment="创建时间")
    processed_at = Column(DateTime(timezone=True), comment="处理完成时间")

    __table_args__ = (
        {'comment': '支付流水表'}
    )
