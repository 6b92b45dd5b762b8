"""
优惠券数据库操作层
"""

import uuid
from typing import List, Optional, Dict, Any, Tuple
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select, update, delete, and_, or_, desc, func, case
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.coupon import Coupon, CouponType, normalize_coupon_code
from app.models.database.coupon_db import CouponDB
from app.models.database.order_db import OrderDB


class CouponRepository:
    """优惠券数据库操作类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_code(self, code: str) -> Optional[CouponDB]:
        """根据优惠券代码获取优惠券"""
        result = await self.db.execute(
            select(CouponDB).where(CouponDB.code == normalize_coupon_code(code))
        )
        return result.scalar_one_or_none()

    async def get_by_coupon_id(self, coupon_id: str) -> Optional[CouponDB]:
        """根据优惠券ID获取优惠券"""
        result = await self.db.execute(
            select(CouponDB).where(CouponDB.coupon_id == coupon_id)
        )
        return result.scalar_one_or_none()

    async def code_exists(self, code: str, exclude_coupon_id: Optional[str] = None) -> bool:
        """检查优惠券代码是否已被占用"""
        conditions = [CouponDB.code == normalize_coupon_code(code)]
        if exclude_coupon_id:
            conditions.append(CouponDB.coupon_id != exclude_coupon_id)

        result = await self.db.execute(
            select(func.count(CouponDB.coupon_id)).where(and_(*conditions))
        )
        return (result.scalar() or 0) > 0

    async def list_coupons(
        self,
        limit: int = 10,
        offset: int = 0,
        search: Optional[str] = None
    ) -> Tuple[List[CouponDB], int]:
        """分页获取优惠券列表"""
        conditions = []
        if search:
            conditions.append(CouponDB.code.icontains(search, autoescape=True))

        query = select(CouponDB)
        count_query = select(func.count(CouponDB.coupon_id))
        if conditions:
            query = query.where(and_(*conditions))
            count_query = count_query.where(and_(*conditions))

        result = await self.db.execute(
            query.order_by(desc(CouponDB.created_at)).limit(limit).offset(offset)
        )
        total = await self.db.execute(count_query)
        return list(result.scalars().all()), total.scalar() or 0

    async def create(self, coupon_data: Dict[str, Any]) -> CouponDB:
        """创建优惠券"""
        coupon_data = self._to_columns(coupon_data)
        db_coupon = CouponDB(
            coupon_id=coupon_data.pop("coupon_id", None) or f"CPN_{uuid.uuid4().hex[:12].upper()}",
            used_count=0,
            **coupon_data
        )
        self.db.add(db_coupon)
        await self.db.flush()
        await self.db.refresh(db_coupon)
        return db_coupon

    async def update(self, coupon_id: str, update_data: Dict[str, Any]) -> Optional[CouponDB]:
        """更新优惠券"""
        update_data = self._to_columns(update_data)
        if update_data:
            await self.db.execute(
                update(CouponDB)
                .where(CouponDB.coupon_id == coupon_id)
                .values(**update_data, updated_at=func.now())
            )
        db_coupon = await self.get_by_coupon_id(coupon_id)
        if db_coupon is not None:
            await self.db.refresh(db_coupon)
        return db_coupon

    async def set_active(self, coupon_ids: List[str], is_active: bool) -> int:
        """批量启用/停用优惠券"""
        result = await self.db.execute(
            update(CouponDB)
            .where(CouponDB.coupon_id.in_(coupon_ids))
            .values(is_active=is_active, updated_at=func.now())
        )
        return result.rowcount

    async def delete(self, coupon_ids: List[str]) -> int:
        """删除优惠券"""
        result = await self.db.execute(
            delete(CouponDB).where(CouponDB.coupon_id.in_(coupon_ids))
        )
        return result.rowcount

    async def increment_usage_if_available(self, code: str) -> bool:
        """
        原子地增加优惠券使用次数

        单条条件UPDATE：仅当 max_uses 为0或 used_count < max_uses 时加1，
        返回是否有记录被修改。调用方必须在结算事务内执行。
        """
        result = await self.db.execute(
            update(CouponDB)
            .where(
                and_(
                    CouponDB.code == normalize_coupon_code(code),
                    or_(
                        CouponDB.max_uses == 0,
                        CouponDB.used_count < CouponDB.max_uses
                    )
                )
            )
            .values(
                used_count=CouponDB.used_count + 1,
                updated_at=func.now()
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def get_analytics(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """获取优惠券统计信息"""
        if now is None:
            now = datetime.now()

        not_expired = or_(CouponDB.expires_at.is_(None), CouponDB.expires_at > now)

        counts = await self.db.execute(
            select(
                func.count(CouponDB.coupon_id).label("total"),
                func.sum(case((and_(CouponDB.is_active.is_(True), not_expired), 1), else_=0)).label("active"),
                func.sum(case((CouponDB.is_active.is_(False), 1), else_=0)).label("inactive"),
                func.sum(case((CouponDB.expires_at <= now, 1), else_=0)).label("expired"),
                func.sum(
                    case((and_(CouponDB.max_uses > 0, CouponDB.used_count >= CouponDB.max_uses), 1), else_=0)
                ).label("exhausted"),
                func.coalesce(func.sum(CouponDB.used_count), 0).label("total_uses"),
            )
        )
        row = counts.fetchone()

        discount_total = await self.db.execute(
            select(func.coalesce(func.sum(OrderDB.discount_amount), 0)).where(
                and_(
                    OrderDB.applied_coupon_code.is_not(None),
                    OrderDB.order_status == "confirmed"
                )
            )
        )

        most_used = await self.db.execute(
            select(CouponDB).order_by(desc(CouponDB.used_count)).limit(5)
        )

        return {
            "total": row.total or 0,
            "active": row.active or 0,
            "inactive": row.inactive or 0,
            "expired": row.expired or 0,
            "exhausted": row.exhausted or 0,
            "total_uses": row.total_uses or 0,
            "total_discount_given": Decimal(str(discount_total.scalar() or 0)),
            "most_used": [self.to_model(c) for c in most_used.scalars().all()],
        }

    def _to_columns(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """枚举转为列值，代码统一大写"""
        data = dict(data)
        if isinstance(data.get("coupon_type"), CouponType):
            data["coupon_type"] = data["coupon_type"].value
        if data.get("code"):
            data["code"] = normalize_coupon_code(data["code"])
        return data

    def to_model(self, db_coupon: CouponDB) -> Coupon:
        """转换为Pydantic模型"""
        return Coupon(
            coupon_id=db_coupon.coupon_id,
            code=db_coupon.code,
            coupon_type=CouponType(db_coupon.coupon_type),
            value=db_coupon.value,
            is_active=db_coupon.is_active,
            expires_at=db_coupon.expires_at,
            max_uses=db_coupon.max_uses or 0,
            used_count=db_coupon.used_count or 0,
            min_purchase_amount=db_coupon.min_purchase_amount or Decimal("0"),
            description=db_coupon.description,
            created_at=db_coupon.created_at,
            updated_at=db_coupon.updated_at
        )
