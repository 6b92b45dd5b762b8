"""
接口依赖注入
"""

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session, get_session_maker
from app.repositories.coupon_repository import CouponRepository
from app.services.checkout_service import CheckoutOrchestrator
from app.services.common_cache import coupon_cache
from app.services.coupon_service import CouponService
from app.services.coupon_validator import CouponValidator
from app.services.payment_processor import PaymentProcessorRouter
from app.services.transaction_manager import TransactionManager

# 真实网关在应用启动时通过 register() 注册
payment_router = PaymentProcessorRouter()


async def get_current_student_id(x_user_id: str = Header(default="")) -> str:
    """从请求头获取当前学员ID"""
    student_id = x_user_id.strip()
    if not student_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="缺少用户身份信息"
        )
    return student_id


def get_payment_router() -> PaymentProcessorRouter:
    return payment_router


async def get_coupon_service(db: AsyncSession = Depends(get_db_session)) -> CouponService:
    return CouponService(CouponRepository(db), coupon_cache)


async def get_checkout_orchestrator(
    db: AsyncSession = Depends(get_db_session),
    router: PaymentProcessorRouter = Depends(get_payment_router)
) -> CheckoutOrchestrator:
    """结算编排器：校验使用请求会话，写入使用独立事务会话"""
    return CheckoutOrchestrator(
        transaction_manager=TransactionManager(get_session_maker()),
        coupon_validator=CouponValidator(CouponRepository(db)),
        payment_router=router,
        coupon_cache=coupon_cache
    )
