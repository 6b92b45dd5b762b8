"""
优惠券相关数据模型
"""

import re
from decimal import Decimal
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator
from enum import Enum

from app.core.exceptions import CheckoutErrorKind

# 大写字母数字，允许连字符和下划线
COUPON_CODE_PATTERN = re.compile(r"^[A-Z0-9_-]+$")


def normalize_coupon_code(code: str) -> str:
    """统一优惠券代码格式"""
    return code.strip().upper()


class CouponType(str, Enum):
    """优惠券类型枚举"""
    PERCENTAGE = "percentage"  # 百分比折扣券
    FIXED = "fixed"  # 固定金额折扣券


class Coupon(BaseModel):
    """优惠券基础模型"""

    coupon_id: str = Field(..., description="优惠券ID")
    code: str = Field(..., min_length=1, max_length=50, description="优惠券代码")
    coupon_type: CouponType = Field(..., description="优惠券类型")
    value: Decimal = Field(..., ge=0, description="折扣值，百分比券为0-100")
    is_active: bool = Field(default=True, description="是否启用")
    expires_at: Optional[datetime] = Field(None, description="过期时间")
    max_uses: int = Field(default=0, ge=0, description="总使用次数限制，0为不限")
    used_count: int = Field(default=0, ge=0, description="已使用次数")
    min_purchase_amount: Decimal = Field(default=Decimal("0"), ge=0, description="最低消费金额")
    description: Optional[str] = Field(None, max_length=500, description="优惠券描述")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """检查是否已过期"""
        if self.expires_at is None:
            return False
        if now is None:
            now = datetime.now(self.expires_at.tzinfo)
        return self.expires_at <= now

    def has_remaining_uses(self) -> bool:
        """检查是否还有剩余使用次数"""
        return self.max_uses == 0 or self.used_count < self.max_uses

    @property
    def remaining_uses(self) -> Optional[int]:
        """剩余使用次数，不限次数时为None"""
        if self.max_uses == 0:
            return None
        return max(self.max_uses - self.used_count, 0)


class CouponCreate(BaseModel):
    """创建优惠券模型"""

    code: str = Field(..., min_length=1, max_length=50)
    coupon_type: CouponType = Field(...)
    value: Decimal = Field(..., gt=0)
    is_active: bool = True
    expires_at: Optional[datetime] = None
    max_uses: int = Field(default=0, ge=0)
    min_purchase_amount: Decimal = Field(default=Decimal("0"), ge=0)
    description: Optional[str] = Field(None, max_length=500)

    @field_validator("code")
    @classmethod
    def validate_code(cls, v: str) -> str:
        """验证优惠券代码格式"""
        v = normalize_coupon_code(v)
        if not COUPON_CODE_PATTERN.match(v):
            raise ValueError("优惠券代码只能包含字母、数字、连字符和下划线")
        return v


class CouponUpdate(BaseModel):
    """更新优惠券模型"""

    code: Optional[str] = Field(None, min_length=1, max_length=50)
    coupon_type: Optional[CouponType] = None
    value: Optional[Decimal] = Field(None, gt=0)
    is_active: Optional[bool] = None
    expires_at: Optional[datetime] = None
    max_uses: Optional[int] = Field(None, ge=0)
    min_purchase_amount: Optional[Decimal] = Field(None, ge=0)
    description: Optional[str] = Field(None, max_length=500)

    @field_validator("code")
    @classmethod
    def validate_code(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = normalize_coupon_code(v)
        if not COUPON_CODE_PATTERN.match(v):
            raise ValueError("优惠券代码只能包含字母、数字、连字符和下划线")
        return v


class CouponValidationRequest(BaseModel):
    """优惠券校验请求"""

    code: str = Field(..., min_length=1, max_length=50, description="优惠券代码")
    amount: Decimal = Field(..., ge=0, description="购买金额")


class CouponValidation(BaseModel):
    """优惠券验证结果"""

    is_valid: bool = Field(..., description="是否有效")
    coupon: Optional[Coupon] = Field(None, description="优惠券信息")
    error_kind: Optional[CheckoutErrorKind] = Field(None, description="失败原因")
    message: Optional[str] = Field(None, description="提示信息")
    estimated_discount: Decimal = Field(default=Decimal("0"), description="预估折扣金额")
    final_total: Optional[Decimal] = Field(None, description="预估应付金额")


class CouponListResponse(BaseModel):
    """优惠券分页列表"""

    data: List[Coupon]
    total: int
    page: int
    limit: int
    total_pages: int


class CouponAnalytics(BaseModel):
    """优惠券统计"""

    total: int = 0
    active: int = 0
    inactive: int = 0
    expired: int = 0
    exhausted: int = 0
    total_uses: int = 0
    total_discount_given: Decimal = Decimal("0")
    most_used: List[Coupon] = Field(default_factory=list)


class CouponBulkStatusRequest(BaseModel):
    """批量启用/停用请求"""

    coupon_ids: List[str] = Field(..., min_length=1, max_length=100)
    is_active: bool
