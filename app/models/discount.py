"""
折扣计算结果模型
"""

from decimal import Decimal
from pydantic import BaseModel, Field


class DiscountResult(BaseModel):
    """折扣计算结果"""

    subtotal: Decimal = Field(..., ge=0, description="小计")
    discount: Decimal = Field(default=Decimal("0"), ge=0, description="折扣金额")
    final_total: Decimal = Field(..., ge=0, description="应付金额")
