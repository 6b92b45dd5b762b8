"""
结算编排服务
校验优惠券、计算金额，并在一个事务内完成 下单 -> 支付 -> 选课 -> 占用优惠券名额，
任一步失败则全部回滚，原始错误类型原样返回给调用方。
"""

import asyncio
from datetime import datetime
from decimal import Decimal
from functools import partial
from typing import List, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    AmountMismatchError,
    CheckoutException,
    PaymentFailedError,
    TransactionAbortedError,
)
from app.models.checkout import CheckoutRequest, CheckoutReceipt
from app.models.coupon import Coupon
from app.models.database.enrollment_db import EnrollmentDB
from app.models.discount import DiscountResult
from app.models.order import OrderStatus, PaymentStatus, PaymentTransactionStatus
from app.repositories.enrollment_repository import EnrollmentRepository
from app.repositories.order_repository import OrderRepository
from app.services.common_cache import SimpleCache
from app.services.coupon_service import clear_coupon_caches
from app.services.coupon_validator import CouponValidator
from app.services.discount_calculator import DiscountCalculator, quantize_amount
from app.services.enrollment_batch_creator import EnrollmentBatchCreator
from app.services.payment_processor import PaymentProcessor, PaymentProcessorRouter, PaymentResult
from app.services.transaction_manager import TransactionManager

logger = structlog.get_logger(__name__)


class CheckoutOrchestrator:
    """结算编排器"""

    def __init__(
        self,
        transaction_manager: TransactionManager,
        coupon_validator: CouponValidator,
        payment_router: PaymentProcessorRouter,
        discount_calculator: Optional[DiscountCalculator] = None,
        enrollment_batch_creator: Optional[EnrollmentBatchCreator] = None,
        coupon_cache: Optional[SimpleCache] = None,
        amount_tolerance: Optional[Decimal] = None,
        timeout_seconds: Optional[float] = None
    ):
        self.transaction_manager = transaction_manager
        self.coupon_validator = coupon_validator
        self.payment_router = payment_router
        self.discount_calculator = discount_calculator or DiscountCalculator()
        self.enrollment_batch_creator = enrollment_batch_creator or EnrollmentBatchCreator(transaction_manager)
        self.coupon_cache = coupon_cache
        self.amount_tolerance = settings.checkout_amount_tolerance if amount_tolerance is None else amount_tolerance
        self.timeout_seconds = settings.checkout_timeout_seconds if timeout_seconds is None else timeout_seconds

    async def checkout(self, student_id: str, request: CheckoutRequest) -> CheckoutReceipt:
        """执行结算，失败时抛出带 kind 的 CheckoutException"""
        log = logger.bind(
            student_id=student_id,
            payment_method=request.payment_method.value,
            coupon_code=request.coupon_code
        )

        # 事务外的预检查，失败时没有任何写入
        subtotal = self.recompute_subtotal(request)
        self._ensure_amount_matches("subtotal", request.subtotal, subtotal)

        coupon: Optional[Coupon] = None
        if request.coupon_code:
            try:
                coupon = await self.coupon_validator.validate(request.coupon_code, subtotal)
            except CheckoutException as e:
                log.info("优惠券校验未通过", kind=e.kind.value)
                raise

        pricing = self.discount_calculator.compute(coupon, subtotal)
        self._ensure_amount_matches("total", request.total, pricing.final_total)

        processor = self.payment_router.resolve(request.payment_method, request.use_test_mode)

        operation = partial(
            self._execute,
            student_id=student_id,
            request=request,
            coupon=coupon,
            pricing=pricing,
            processor=processor
        )

        try:
            if self.timeout_seconds:
                receipt = await asyncio.wait_for(
                    self.transaction_manager.execute_in_transaction(operation),
                    timeout=self.timeout_seconds
                )
            else:
                receipt = await self.transaction_manager.execute_in_transaction(operation)
        except CheckoutException as e:
            log.warning("结算失败，事务已回滚", kind=e.kind.value, reason=e.message)
            raise
        except asyncio.TimeoutError as e:
            log.error("结算超时，事务已回滚", timeout_seconds=self.timeout_seconds)
            raise TransactionAbortedError("结算超时，事务已回滚") from e
        except SQLAlchemyError as e:
            log.error("结算数据库写入失败，事务已回滚", error=str(e))
            raise TransactionAbortedError("结算事务执行失败，已回滚") from e

        if coupon is not None and self.coupon_cache is not None:
            await clear_coupon_caches(self.coupon_cache, coupon)

        log.info(
            "结算成功",
            order_id=receipt.order_id,
            final_total=str(receipt.final_total),
            enrollments=len(receipt.enrollment_ids)
        )
        return receipt

    def recompute_subtotal(self, request: CheckoutRequest) -> Decimal:
        """按购物车明细重新计算小计"""
        return quantize_amount(sum((item.line_total for item in request.cart_items), Decimal("0")))

    def _ensure_amount_matches(self, field: str, client_amount: Decimal, server_amount: Decimal) -> None:
        if abs(quantize_amount(client_amount) - server_amount) > self.amount_tolerance:
            raise AmountMismatchError(
                f"{field} 与服务端计算结果不一致: 客户端 {client_amount}, 服务端 {server_amount}",
                details={"field": field, "client": str(client_amount), "server": str(server_amount)}
            )

    async def _execute(
        self,
        session: AsyncSession,
        student_id: str,
        request: CheckoutRequest,
        coupon: Optional[Coupon],
        pricing: DiscountResult,
        processor: PaymentProcessor
    ) -> CheckoutReceipt:
        """事务内的写操作，抛出异常即回滚"""
        order_repo = OrderRepository(session)

        db_order = await order_repo.create_order_with_items(
            student_id=student_id,
            cart_items=request.cart_items,
            subtotal=pricing.subtotal,
            discount_amount=pricing.discount,
            final_amount=pricing.final_total,
            payment_method=request.payment_method.value,
            coupon_code=coupon.code if coupon else None,
            billing_address=request.billing_address.model_dump() if request.billing_address else None,
            is_test_mode=request.use_test_mode
        )
        order_id = db_order.order_id

        payment = await self._charge(processor, order_repo, db_order.order_id, db_order.order_number, student_id, request, pricing)

        await order_repo.create_payment_transaction(
            order_id=order_id,
            student_id=student_id,
            amount=pricing.final_total,
            payment_method=request.payment_method.value,
            status=PaymentTransactionStatus.COMPLETED,
            gateway_transaction_id=payment.transaction_id,
            gateway_response=payment.raw
        )
        await order_repo.update_order_status(
            order_id,
            order_status=OrderStatus.PAID,
            payment_status=PaymentStatus.PAID,
            paid_at=datetime.now()
        )

        operations = [
            partial(
                self._create_enrollment,
                student_id=student_id,
                course_id=item.course_id,
                order_id=order_id,
                price_paid=item.price
            )
            for item in request.cart_items
            if item.course_id
        ]
        enrollment_ids: List[str] = []
        if operations:
            batch = await self.enrollment_batch_creator.create_purchase_enrollments_transaction(
                operations, session=session
            )
            if not batch.success:
                if isinstance(batch.failure, (CheckoutException, SQLAlchemyError)):
                    raise batch.failure
                raise TransactionAbortedError(f"选课失败: {'; '.join(batch.errors)}") from batch.failure
            enrollment_ids = [enrollment.enrollment_id for enrollment in batch.results]

        if coupon is not None:
            await self.transaction_manager.increment_coupon_usage(session, coupon.code)

        await order_repo.update_order_status(order_id, order_status=OrderStatus.CONFIRMED)

        return CheckoutReceipt(
            order_id=order_id,
            order_number=db_order.order_number,
            payment_status=PaymentStatus.PAID,
            enrollment_ids=enrollment_ids,
            subtotal=pricing.subtotal,
            discount=pricing.discount,
            final_total=pricing.final_total,
            coupon_code=coupon.code if coupon else None
        )

    async def _charge(
        self,
        processor: PaymentProcessor,
        order_repo: OrderRepository,
        order_id: str,
        order_number: str,
        student_id: str,
        request: CheckoutRequest,
        pricing: DiscountResult
    ) -> PaymentResult:
        """调用支付处理器，失败时标记订单失败并抛出 PaymentFailedError"""
        # 全额抵扣的订单无需经过支付网关
        if pricing.final_total == 0:
            return PaymentResult(success=True, message="订单金额为0，无需支付")

        context = {
            "order_id": order_id,
            "order_number": order_number,
            "student_id": student_id,
            "coupon_code": request.coupon_code,
        }
        try:
            result = await processor.charge(pricing.final_total, request.payment_method, context)
        except PaymentFailedError:
            raise
        except Exception as e:
            raise PaymentFailedError(f"支付失败: {e}") from e

        if not result.success:
            # 失败记录与订单一同回滚，仅用于事务内的状态一致
            await order_repo.create_payment_transaction(
                order_id=order_id,
                student_id=student_id,
                amount=pricing.final_total,
                payment_method=request.payment_method.value,
                status=PaymentTransactionStatus.FAILED,
                failure_reason=result.message,
                gateway_response=result.raw
            )
            await order_repo.update_order_status(
                order_id,
                order_status=OrderStatus.FAILED,
                payment_status=PaymentStatus.FAILED
            )
            raise PaymentFailedError(result.message or "支付被拒绝", details={"order_number": order_number})

        return result

    async def _create_enrollment(
        self,
        session: AsyncSession,
        student_id: str,
        course_id: str,
        order_id: str,
        price_paid: Decimal
    ) -> EnrollmentDB:
        return await EnrollmentRepository(session).create(
            student_id=student_id,
            course_id=course_id,
            order_id=order_id,
            price_paid=price_paid
        )
