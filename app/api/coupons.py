"""
优惠券接口
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_coupon_service
from app.models.coupon import (
    Coupon,
    CouponAnalytics,
    CouponBulkStatusRequest,
    CouponCreate,
    CouponListResponse,
    CouponUpdate,
    CouponValidation,
    CouponValidationRequest,
)
from app.services.coupon_service import CouponService

router = APIRouter(prefix="/coupons", tags=["优惠券"])


@router.post("/validate", response_model=CouponValidation)
async def validate_coupon(
    request: CouponValidationRequest,
    service: CouponService = Depends(get_coupon_service)
):
    """校验优惠券并预览折扣，不占用使用次数"""
    return await service.validate_coupon(request.code, request.amount)


@router.get("", response_model=CouponListResponse)
async def list_coupons(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(None, max_length=50),
    service: CouponService = Depends(get_coupon_service)
):
    """分页获取优惠券列表"""
    return await service.list_coupons(page=page, limit=limit, search=search)


@router.get("/analytics", response_model=CouponAnalytics)
async def coupon_analytics(service: CouponService = Depends(get_coupon_service)):
    """优惠券统计"""
    return await service.get_analytics()


@router.post("/bulk-status")
async def bulk_set_status(
    request: CouponBulkStatusRequest,
    service: CouponService = Depends(get_coupon_service)
):
    """批量启用/停用优惠券"""
    updated = await service.set_coupons_active(request.coupon_ids, request.is_active)
    return {"success": True, "updated": updated}


@router.post("", response_model=Coupon, status_code=status.HTTP_201_CREATED)
async def create_coupon(
    coupon_data: CouponCreate,
    service: CouponService = Depends(get_coupon_service)
):
    """创建优惠券"""
    return await service.create_coupon(coupon_data)


@router.get("/{coupon_id}", response_model=Coupon)
async def get_coupon(coupon_id: str, service: CouponService = Depends(get_coupon_service)):
    return await service.get_coupon(coupon_id)


@router.patch("/{coupon_id}", response_model=Coupon)
async def update_coupon(
    coupon_id: str,
    coupon_data: CouponUpdate,
    service: CouponService = Depends(get_coupon_service)
):
    return await service.update_coupon(coupon_id, coupon_data)


@router.post("/{coupon_id}/toggle", response_model=Coupon)
async def toggle_coupon(coupon_id: str, service: CouponService = Depends(get_coupon_service)):
    """切换启用状态"""
    return await service.toggle_coupon(coupon_id)


@router.delete("/{coupon_id}")
async def delete_coupon(coupon_id: str, service: CouponService = Depends(get_coupon_service)):
    await service.delete_coupon(coupon_id)
    return {"success": True, "coupon_id": coupon_id}
