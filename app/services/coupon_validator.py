"""
优惠券校验
只读预检查，不修改使用次数。并发结算下通过校验并不保证提交时仍有名额，
最终以事务内的条件更新为准。
"""

import logging
from decimal import Decimal
from datetime import datetime
from typing import Optional

from app.core.exceptions import (
    CouponError,
    CouponNotFoundError,
    CouponInactiveError,
    CouponExpiredError,
    CouponBelowMinimumError,
    CouponExhaustedError,
)
from app.models.coupon import Coupon, CouponValidation
from app.repositories.coupon_repository import CouponRepository
from app.services.discount_calculator import DiscountCalculator

logger = logging.getLogger(__name__)


class CouponValidator:
    """优惠券校验器"""

    def __init__(self, coupon_repo: CouponRepository, discount_calculator: Optional[DiscountCalculator] = None):
        self.coupon_repo = coupon_repo
        self.discount_calculator = discount_calculator or DiscountCalculator()

    async def validate(self, code: str, subtotal: Decimal, now: Optional[datetime] = None) -> Coupon:
        """
        校验优惠券，失败时抛出对应的 CouponError

        依次检查：存在、未过期、已启用、满足最低消费、仍有使用名额。
        过期优先于停用判断，已过期的券无论是否启用都返回过期。
        """
        db_coupon = await self.coupon_repo.get_by_code(code)
        if db_coupon is None:
            raise CouponNotFoundError(f"优惠券不存在: {code}")

        coupon = self.coupon_repo.to_model(db_coupon)

        if coupon.is_expired(now):
            raise CouponExpiredError(f"优惠券已过期: {coupon.code}")

        if not coupon.is_active:
            raise CouponInactiveError(f"优惠券已停用: {coupon.code}")

        if subtotal < coupon.min_purchase_amount:
            raise CouponBelowMinimumError(
                f"订单金额不满足最低消费 {coupon.min_purchase_amount}",
                details={"min_purchase_amount": str(coupon.min_purchase_amount)}
            )

        if not coupon.has_remaining_uses():
            raise CouponExhaustedError(f"优惠券使用次数已达上限: {coupon.code}")

        return coupon

    async def check(self, code: str, subtotal: Decimal) -> CouponValidation:
        """校验优惠券并返回结果对象，用于前端预览折扣"""
        try:
            coupon = await self.validate(code, subtotal)
        except CouponError as e:
            logger.info(f"优惠券校验未通过 {code}: {e.kind.value}")
            return CouponValidation(
                is_valid=False,
                error_kind=e.kind,
                message=e.message
            )

        result = self.discount_calculator.compute(coupon, subtotal)
        return CouponValidation(
            is_valid=True,
            coupon=coupon,
            estimated_discount=result.discount,
            final_total=result.final_total
        )
