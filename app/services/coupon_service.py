"""
优惠券业务服务层
提供优惠券管理相关的业务逻辑处理
"""

import logging
import math
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from app.core.config import settings
from app.core.exceptions import BusinessException, CouponNotFoundError
from app.models.coupon import (
    Coupon,
    CouponAnalytics,
    CouponCreate,
    CouponListResponse,
    CouponType,
    CouponUpdate,
    CouponValidation,
)
from app.repositories.coupon_repository import CouponRepository
from app.services.common_cache import SimpleCache, coupon_cache
from app.services.coupon_validator import CouponValidator

logger = logging.getLogger(__name__)

CACHE_PREFIX = "coupon"


async def clear_coupon_caches(cache: SimpleCache, coupon: Optional[Coupon] = None) -> None:
    """清除优惠券相关缓存，使用次数变化后也需调用"""
    patterns = [
        f"{CACHE_PREFIX}:list:*",
        f"{CACHE_PREFIX}:analytics",
    ]
    for pattern in patterns:
        await cache.delete_pattern(pattern)

    if coupon is not None:
        await cache.delete(f"{CACHE_PREFIX}:id:{coupon.coupon_id}")


class CouponService:
    """优惠券业务服务"""

    def __init__(self, coupon_repo: CouponRepository, cache: Optional[SimpleCache] = None):
        self.coupon_repo = coupon_repo
        self.cache = cache or coupon_cache
        self.cache_ttl = settings.coupon_cache_ttl
        self.validator = CouponValidator(coupon_repo)

    async def get_coupon(self, coupon_id: str, use_cache: bool = True) -> Coupon:
        """根据ID获取优惠券，不存在时抛出 CouponNotFoundError"""
        cache_key = f"{CACHE_PREFIX}:id:{coupon_id}"

        if use_cache:
            cached_coupon = await self.cache.get(cache_key)
            if cached_coupon:
                return Coupon(**cached_coupon)

        db_coupon = await self.coupon_repo.get_by_coupon_id(coupon_id)
        if not db_coupon:
            raise CouponNotFoundError(f"优惠券不存在: {coupon_id}")

        coupon = self.coupon_repo.to_model(db_coupon)

        if use_cache:
            await self.cache.set(cache_key, coupon.model_dump(mode="json"), ttl=self.cache_ttl)

        return coupon

    async def list_coupons(
        self,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        use_cache: bool = True
    ) -> CouponListResponse:
        """分页获取优惠券列表"""
        cache_key = f"{CACHE_PREFIX}:list:{page}:{limit}:{search or ''}"

        if use_cache:
            cached_list = await self.cache.get(cache_key)
            if cached_list:
                return CouponListResponse(**cached_list)

        db_coupons, total = await self.coupon_repo.list_coupons(
            limit=limit,
            offset=(page - 1) * limit,
            search=search.strip().upper() if search else None
        )
        response = CouponListResponse(
            data=[self.coupon_repo.to_model(db_coupon) for db_coupon in db_coupons],
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit) if limit else 0
        )

        if use_cache:
            # 列表随使用次数变化，缓存时间短一些
            await self.cache.set(cache_key, response.model_dump(mode="json"), ttl=self.cache_ttl // 6)

        return response

    async def create_coupon(self, coupon_data: CouponCreate) -> Coupon:
        """创建优惠券"""
        self._check_value(coupon_data.coupon_type, coupon_data.value)
        self._check_expires_at(coupon_data.expires_at)

        if await self.coupon_repo.code_exists(coupon_data.code):
            raise BusinessException(
                f"优惠券代码已存在: {coupon_data.code}",
                status_code=409,
                error_code="CouponCodeExists"
            )

        db_coupon = await self.coupon_repo.create(coupon_data.model_dump())
        coupon = self.coupon_repo.to_model(db_coupon)
        logger.info(f"创建优惠券 {coupon.code} ({coupon.coupon_id})")

        await clear_coupon_caches(self.cache)
        return coupon

    async def update_coupon(self, coupon_id: str, coupon_data: CouponUpdate) -> Coupon:
        """更新优惠券"""
        existing = await self.get_coupon(coupon_id, use_cache=False)
        update_data = coupon_data.model_dump(exclude_unset=True)

        self._check_value(
            update_data.get("coupon_type") or existing.coupon_type,
            update_data.get("value") or existing.value
        )
        self._check_expires_at(update_data.get("expires_at"))

        code = update_data.get("code")
        if code and await self.coupon_repo.code_exists(code, exclude_coupon_id=coupon_id):
            raise BusinessException(
                f"优惠券代码已存在: {code}",
                status_code=409,
                error_code="CouponCodeExists"
            )

        if update_data.get("max_uses") and update_data["max_uses"] < existing.used_count:
            raise BusinessException(
                f"使用次数上限不能小于已使用次数 {existing.used_count}",
                error_code="InvalidMaxUses"
            )

        db_coupon = await self.coupon_repo.update(coupon_id, update_data)
        coupon = self.coupon_repo.to_model(db_coupon)
        logger.info(f"更新优惠券 {coupon.code}: {sorted(update_data)}")

        await clear_coupon_caches(self.cache, coupon)
        return coupon

    async def toggle_coupon(self, coupon_id: str) -> Coupon:
        """切换优惠券启用状态"""
        existing = await self.get_coupon(coupon_id, use_cache=False)
        await self.coupon_repo.set_active([coupon_id], not existing.is_active)

        coupon = existing.model_copy(update={"is_active": not existing.is_active})
        logger.info(f"优惠券 {coupon.code} 已{'启用' if coupon.is_active else '停用'}")

        await clear_coupon_caches(self.cache, coupon)
        return coupon

    async def set_coupons_active(self, coupon_ids: List[str], is_active: bool) -> int:
        """批量启用/停用优惠券"""
        updated = await self.coupon_repo.set_active(coupon_ids, is_active)
        await self.cache.delete(*(f"{CACHE_PREFIX}:id:{coupon_id}" for coupon_id in coupon_ids))
        await clear_coupon_caches(self.cache)
        return updated

    async def delete_coupon(self, coupon_id: str) -> None:
        """删除优惠券"""
        existing = await self.get_coupon(coupon_id, use_cache=False)
        await self.coupon_repo.delete([coupon_id])
        logger.info(f"删除优惠券 {existing.code}")

        await clear_coupon_caches(self.cache, existing)

    async def get_analytics(self, use_cache: bool = True) -> CouponAnalytics:
        """获取优惠券统计"""
        cache_key = f"{CACHE_PREFIX}:analytics"

        if use_cache:
            cached = await self.cache.get(cache_key)
            if cached:
                return CouponAnalytics(**cached)

        analytics = CouponAnalytics(**await self.coupon_repo.get_analytics())

        if use_cache:
            await self.cache.set(cache_key, analytics.model_dump(mode="json"), ttl=300)

        return analytics

    async def validate_coupon(self, code: str, amount: Decimal) -> CouponValidation:
        """预览优惠券折扣，不占用使用次数，也不使用缓存"""
        return await self.validator.check(code, amount)

    def _check_value(self, coupon_type: CouponType, value: Decimal) -> None:
        if coupon_type == CouponType.PERCENTAGE and value > 100:
            raise BusinessException(
                "百分比优惠券的折扣值不能超过100",
                error_code="InvalidCouponValue"
            )

    def _check_expires_at(self, expires_at: Optional[datetime]) -> None:
        """过期时间不能早于当前时间"""
        if expires_at is not None and expires_at <= datetime.now(expires_at.tzinfo):
            raise BusinessException(
                "过期时间必须晚于当前时间",
                error_code="InvalidExpiresAt"
            )
