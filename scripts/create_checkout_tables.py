"""
结算系统数据库初始化脚本
建库、建表、补充索引并写入示例优惠券，可重复执行
"""

import asyncio
import sys
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path

# 添加项目根目录到Python路径
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine

from app.core import database
from app.core.config import settings
from app.models.coupon import CouponCreate, CouponType
from app.repositories.coupon_repository import CouponRepository

EXTRA_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_coupons_active_expiry ON coupons(is_active, expires_at)",
    "CREATE INDEX IF NOT EXISTS idx_orders_student_status ON orders(student_id, order_status)",
    "CREATE INDEX IF NOT EXISTS idx_orders_payment_status ON orders(payment_status, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_order_items_course ON order_items(course_id)",
    "CREATE INDEX IF NOT EXISTS idx_payment_transactions_order ON payment_transactions(order_id, status)",
]


def sample_coupons() -> list:
    return [
        CouponCreate(
            code="WELCOME100",
            coupon_type=CouponType.FIXED,
            value=Decimal("100.00"),
            min_purchase_amount=Decimal("500.00"),
            expires_at=datetime.now() + timedelta(days=30),
            max_uses=1000,
            description="新用户专享100元优惠券"
        ),
        CouponCreate(
            code="SPRING20",
            coupon_type=CouponType.PERCENTAGE,
            value=Decimal("20"),
            min_purchase_amount=Decimal("800.00"),
            expires_at=datetime.now() + timedelta(days=60),
            max_uses=500,
            description="春季促销8折优惠券"
        ),
    ]


async def ensure_database() -> None:
    """PostgreSQL 下目标库不存在时创建"""
    url = make_url(settings.database_url_computed)
    if url.get_backend_name() != "postgresql":
        return

    server = create_async_engine(url.set(database="postgres"), isolation_level="AUTOCOMMIT")
    try:
        async with server.connect() as conn:
            exists = await conn.scalar(
                text("SELECT 1 FROM pg_database WHERE datname = :name"),
                {"name": url.database}
            )
            if exists:
                print(f"数据库 '{url.database}' 已存在")
            else:
                await conn.execute(text(f'CREATE DATABASE "{url.database}"'))
                print(f"数据库 '{url.database}' 创建成功")
    finally:
        await server.dispose()


async def create_indexes() -> None:
    async with database.engine.begin() as conn:
        for statement in EXTRA_INDEXES:
            await conn.execute(text(statement))
    print(f"已创建 {len(EXTRA_INDEXES)} 个索引")


async def seed_coupons() -> None:
    """写入示例优惠券，已存在的代码跳过"""
    async with database.get_session_maker()() as session:
        async with session.begin():
            repo = CouponRepository(session)
            for coupon in sample_coupons():
                if await repo.code_exists(coupon.code):
                    print(f"优惠券已存在: {coupon.code}")
                    continue
                await repo.create(coupon.model_dump())
                print(f"插入优惠券: {coupon.code}")


async def main() -> None:
    print("开始初始化结算系统数据库...")

    try:
        await ensure_database()
        await database.init_database()
        await database.create_all_tables()
        await create_indexes()
        await seed_coupons()
        print("结算系统数据库初始化完成！")
    except Exception as e:
        print(f"数据库初始化失败: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)
    finally:
        await database.close_database()


if __name__ == "__main__":
    asyncio.run(main())
