"""
订单相关数据模型
"""

from decimal import Decimal
from datetime import datetime
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field
from enum import Enum


class OrderStatus(str, Enum):
    """订单状态枚举"""
    PENDING = "pending"  # 待处理
    PAID = "paid"  # 已支付，选课未完成
    CONFIRMED = "confirmed"  # 已支付且已选课
    FAILED = "failed"  # 失败（终态）


class PaymentStatus(str, Enum):
    """支付状态枚举"""
    PENDING = "pending"  # 待支付
    PAID = "paid"  # 已支付
    FAILED = "failed"  # 支付失败


class PaymentMethod(str, Enum):
    """支付方式枚举"""
    STRIPE = "stripe"
    PAYPAL = "paypal"
    TEST = "test"


class PaymentTransactionStatus(str, Enum):
    """支付流水状态"""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class OrderItem(BaseModel):
    """订单项目模型"""

    item_id: str = Field(..., description="项目ID")
    course_id: Optional[str] = Field(None, description="课程ID")
    product_id: Optional[str] = Field(None, description="商品ID")
    item_name: Optional[str] = Field(None, description="名称")
    unit_price: Decimal = Field(..., ge=0, description="单价")
    quantity: int = Field(default=1, ge=1, description="数量")

    @property
    def line_total(self) -> Decimal:
        """行小计"""
        return self.unit_price * self.quantity


class Order(BaseModel):
    """订单基础模型"""

    order_id: str = Field(..., description="订单ID")
    order_number: str = Field(..., description="订单编号")
    student_id: str = Field(..., description="学员ID")
    order_items: List[OrderItem] = Field(default_factory=list, description="订单项目列表")
    subtotal: Decimal = Field(..., ge=0, description="商品小计")
    discount_amount: Decimal = Field(default=Decimal("0"), ge=0, description="优惠券折扣")
    final_amount: Decimal = Field(..., ge=0, description="最终金额")
    applied_coupon_code: Optional[str] = Field(None, description="使用的优惠券代码")
    order_status: OrderStatus = Field(default=OrderStatus.PENDING, description="订单状态")
    payment_status: PaymentStatus = Field(default=PaymentStatus.PENDING, description="支付状态")
    payment_method: str = Field(..., description="支付方式")
    is_test_mode: bool = Field(default=False, description="是否测试支付")
    billing_address: Optional[Dict[str, Any]] = Field(None, description="账单地址")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    paid_at: Optional[datetime] = Field(None, description="支付时间")

    @property
    def course_ids(self) -> List[str]:
        """获取所有课程ID"""
        return [item.course_id for item in self.order_items if item.course_id]

    def is_paid(self) -> bool:
        """检查是否已支付"""
        return self.payment_status == PaymentStatus.PAID
