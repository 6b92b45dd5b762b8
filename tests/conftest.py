"""
测试配置文件 - pytest fixtures和共用配置
"""

import pytest
import pytest_asyncio
from decimal import Decimal
from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from app.core.database import Base
from app.models.checkout import CartItem, CheckoutRequest
from app.models.coupon import CouponType
from app.models.database import CouponDB, OrderDB, OrderItemDB, PaymentTransactionDB, EnrollmentDB
from app.models.order import PaymentMethod
from app.repositories.coupon_repository import CouponRepository
from app.services.checkout_service import CheckoutOrchestrator
from app.services.coupon_validator import CouponValidator
from app.services.payment_processor import MockPaymentProcessor, PaymentProcessorRouter
from app.services.transaction_manager import TransactionManager


@pytest_asyncio.fixture(scope="function")
async def test_db_engine(tmp_path):
    """测试数据库引擎 - 使用文件SQLite，多个会话可并发访问同一数据库"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'checkout_test.db'}",
        echo=False,
        poolclass=NullPool,
        connect_args={"timeout": 30}
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(test_db_engine) -> async_sessionmaker:
    """与应用一致的session工厂"""
    return async_sessionmaker(
        test_db_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


@pytest_asyncio.fixture
async def db_session(session_maker) -> AsyncSession:
    """测试数据库会话"""
    async with session_maker() as session:
        try:
            yield session
            transaction = session.get_transaction()
            if transaction is not None and transaction.is_active:
                await session.commit()
            else:
                await session.rollback()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@pytest.fixture
def transaction_manager(session_maker) -> TransactionManager:
    return TransactionManager(session_maker)


@pytest.fixture
def create_coupon(session_maker):
    """创建优惠券并提交，返回优惠券代码"""

    async def _create(
        code: str = "SAVE10",
        coupon_type: CouponType = CouponType.PERCENTAGE,
        value: Decimal = Decimal("10"),
        is_active: bool = True,
        expires_at: Optional[datetime] = None,
        max_uses: int = 0,
        used_count: int = 0,
        min_purchase_amount: Decimal = Decimal("0")
    ) -> str:
        async with session_maker() as session:
            async with session.begin():
                session.add(CouponDB(
                    coupon_id=f"CPN_{code}",
                    code=code,
                    coupon_type=coupon_type.value,
                    value=value,
                    is_active=is_active,
                    expires_at=expires_at if expires_at is not None else datetime.now() + timedelta(days=30),
                    max_uses=max_uses,
                    used_count=used_count,
                    min_purchase_amount=min_purchase_amount
                ))
        return code

    return _create


@pytest.fixture
def fetch_counts(session_maker):
    """统计各表记录数，用于验证回滚"""
    from sqlalchemy import select, func

    async def _fetch() -> dict:
        async with session_maker() as session:
            counts = {}
            for name, model, key in [
                ("orders", OrderDB, OrderDB.order_id),
                ("order_items", OrderItemDB, OrderItemDB.item_id),
                ("payments", PaymentTransactionDB, PaymentTransactionDB.transaction_id),
                ("enrollments", EnrollmentDB, EnrollmentDB.enrollment_id),
            ]:
                result = await session.execute(select(func.count(key)))
                counts[name] = result.scalar() or 0
            return counts

    return _fetch


@pytest.fixture
def used_count(session_maker):
    """读取优惠券已使用次数"""

    async def _used(code: str) -> int:
        async with session_maker() as session:
            db_coupon = await CouponRepository(session).get_by_code(code)
            return db_coupon.used_count

    return _used


@pytest_asyncio.fixture
async def make_orchestrator(session_maker, transaction_manager):
    """按需创建结算编排器，每次调用使用独立的校验会话"""
    sessions = []

    def _make(processor: Optional[MockPaymentProcessor] = None, timeout_seconds: float = 10.0) -> CheckoutOrchestrator:
        session = session_maker()
        sessions.append(session)
        return CheckoutOrchestrator(
            transaction_manager=transaction_manager,
            coupon_validator=CouponValidator(CouponRepository(session)),
            payment_router=PaymentProcessorRouter(
                test_processor=processor or MockPaymentProcessor(),
                allow_test_payments=True
            ),
            amount_tolerance=Decimal("0.01"),
            timeout_seconds=timeout_seconds
        )

    yield _make

    for session in sessions:
        await session.close()


@pytest.fixture
def build_request():
    """结算请求构造器"""
    return _build_request


def _build_request(
    prices=(Decimal("100.00"),),
    coupon_code: Optional[str] = None,
    total: Optional[Decimal] = None,
    subtotal: Optional[Decimal] = None,
    course_prefix: str = "course"
) -> CheckoutRequest:
    """构造结算请求，默认每个价格对应一门课程"""
    items = [
        CartItem(course_id=f"{course_prefix}_{i}", name=f"课程{i}", price=price)
        for i, price in enumerate(prices, start=1)
    ]
    computed = sum((item.line_total for item in items), Decimal("0"))
    return CheckoutRequest(
        cart_items=items,
        subtotal=computed if subtotal is None else subtotal,
        total=computed if total is None else total,
        payment_method=PaymentMethod.TEST,
        coupon_code=coupon_code,
        use_test_mode=True
    )
