"""
结算请求与回执模型
"""

from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field, model_validator

from app.core.exceptions import CheckoutErrorKind
from app.models.order import PaymentMethod, PaymentStatus


class CartItem(BaseModel):
    """购物车项目，course_id 与 product_id 二选一"""

    course_id: Optional[str] = Field(None, description="课程ID")
    product_id: Optional[str] = Field(None, description="商品ID")
    name: Optional[str] = Field(None, max_length=200, description="名称")
    quantity: int = Field(default=1, ge=1, description="数量")
    price: Decimal = Field(..., ge=0, description="单价")

    @model_validator(mode="after")
    def validate_target(self) -> "CartItem":
        """验证课程/商品二选一"""
        if bool(self.course_id) == bool(self.product_id):
            raise ValueError("购物车项目必须且只能指定 course_id 或 product_id 之一")
        return self

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


class BillingAddress(BaseModel):
    """账单地址"""

    address: str
    city: str
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: str


class CheckoutRequest(BaseModel):
    """结算请求"""

    cart_items: List[CartItem] = Field(..., min_length=1, description="购物车项目")
    subtotal: Decimal = Field(..., ge=0, description="客户端计算的小计")
    total: Decimal = Field(..., ge=0, description="客户端计算的应付金额")
    payment_method: PaymentMethod = Field(..., description="支付方式")
    coupon_code: Optional[str] = Field(None, max_length=50, description="优惠券代码")
    billing_address: Optional[BillingAddress] = Field(None, description="账单地址")
    use_test_mode: bool = Field(default=False, description="使用模拟支付")

    @property
    def course_ids(self) -> List[str]:
        """购物车中的课程ID，保持顺序"""
        return [item.course_id for item in self.cart_items if item.course_id]


class CheckoutReceipt(BaseModel):
    """结算成功回执"""

    order_id: str
    order_number: str
    payment_status: PaymentStatus
    enrollment_ids: List[str] = Field(default_factory=list)
    subtotal: Decimal
    discount: Decimal
    final_total: Decimal
    coupon_code: Optional[str] = None


class CheckoutError(BaseModel):
    """结算失败信息"""

    kind: CheckoutErrorKind
    message: str
