"""
折扣计算
纯函数实现，不依赖存储
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from app.models.coupon import Coupon, CouponType
from app.models.discount import DiscountResult

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def quantize_amount(amount: Decimal) -> Decimal:
    """金额保留两位小数"""
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


class DiscountCalculator:
    """根据优惠券与小计计算折扣金额和应付金额"""

    def compute(self, coupon: Optional[Coupon], subtotal: Decimal) -> DiscountResult:
        subtotal = quantize_amount(subtotal)

        if coupon is None:
            return DiscountResult(subtotal=subtotal, discount=ZERO, final_total=subtotal)

        if coupon.coupon_type == CouponType.PERCENTAGE:
            rate = min(max(coupon.value, ZERO), HUNDRED)
            discount = subtotal * rate / HUNDRED
        else:
            # 固定金额券不能超过小计
            discount = min(max(coupon.value, ZERO), subtotal)

        discount = quantize_amount(discount)
        final_total = max(subtotal - discount, ZERO)

        return DiscountResult(subtotal=subtotal, discount=discount, final_total=final_total)
