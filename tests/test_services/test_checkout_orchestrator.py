"""
CheckoutOrchestrator结算一致性测试 - 使用真实数据库
"""

import asyncio
import pytest
from decimal import Decimal
from datetime import datetime, timedelta

from sqlalchemy import select

from app.core.exceptions import (
    AmountMismatchError,
    CheckoutErrorKind,
    CheckoutException,
    CouponExpiredError,
    DuplicateEnrollmentError,
    PaymentFailedError,
    TransactionAbortedError,
)
from app.models.checkout import CartItem, CheckoutRequest
from app.models.coupon import CouponType
from app.models.database.order_db import OrderDB
from app.models.order import OrderStatus, PaymentMethod, PaymentStatus
from app.repositories.coupon_repository import CouponRepository
from app.repositories.enrollment_repository import EnrollmentRepository
from app.services.checkout_service import CheckoutOrchestrator
from app.services.coupon_validator import CouponValidator
from app.services.payment_processor import MockPaymentProcessor, PaymentProcessorRouter

EMPTY = {"orders": 0, "order_items": 0, "payments": 0, "enrollments": 0}


@pytest.mark.asyncio
class TestCheckoutOrchestrator:
    """CheckoutOrchestrator测试类"""

    async def test_successful_checkout_with_coupon(
        self, make_orchestrator, build_request, create_coupon, used_count, fetch_counts, session_maker
    ):
        """成功结算：订单、支付流水、选课与优惠券使用次数一并提交"""
        await create_coupon("SAVE10", value=Decimal("10"), max_uses=5)
        processor = MockPaymentProcessor()
        orchestrator = make_orchestrator(processor)

        request = build_request(
            prices=(Decimal("60.00"), Decimal("40.00")),
            coupon_code="save10",
            total=Decimal("90.00")
        )
        receipt = await orchestrator.checkout("student_001", request)

        # 验证回执
        assert receipt.payment_status == PaymentStatus.PAID
        assert receipt.subtotal == Decimal("100.00")
        assert receipt.discount == Decimal("10.00")
        assert receipt.final_total == Decimal("90.00")
        assert receipt.coupon_code == "SAVE10"
        assert len(receipt.enrollment_ids) == 2

        # 验证持久化结果
        assert await fetch_counts() == {"orders": 1, "order_items": 2, "payments": 1, "enrollments": 2}
        assert await used_count("SAVE10") == 1
        assert processor.charges[0]["amount"] == Decimal("90.00")

        async with session_maker() as session:
            order = (await session.execute(select(OrderDB))).scalar_one()
            assert order.order_status == OrderStatus.CONFIRMED.value
            assert order.payment_status == PaymentStatus.PAID.value
            assert order.paid_at is not None
            assert order.applied_coupon_code == "SAVE10"

            enrollments = await EnrollmentRepository(session).get_order_enrollments(order.order_id)
            assert sorted(e.course_id for e in enrollments) == ["course_1", "course_2"]

    async def test_checkout_without_coupon(self, make_orchestrator, build_request, fetch_counts):
        receipt = await make_orchestrator().checkout("student_001", build_request())

        assert receipt.discount == Decimal("0")
        assert receipt.final_total == Decimal("100.00")
        assert receipt.coupon_code is None
        assert (await fetch_counts())["enrollments"] == 1

    async def test_payment_failure_rolls_back_everything(
        self, make_orchestrator, build_request, create_coupon, used_count, fetch_counts
    ):
        """支付失败：不留下订单、流水或选课，优惠券次数不变"""
        await create_coupon("SAVE10", max_uses=5)
        orchestrator = make_orchestrator(MockPaymentProcessor(should_succeed=False))

        with pytest.raises(PaymentFailedError) as exc_info:
            await orchestrator.checkout(
                "student_001",
                build_request(coupon_code="SAVE10", total=Decimal("90.00"))
            )

        assert exc_info.value.kind == CheckoutErrorKind.PAYMENT_FAILED
        assert await fetch_counts() == EMPTY
        assert await used_count("SAVE10") == 0

    async def test_duplicate_enrollment_rolls_back_payment_and_coupon(
        self, make_orchestrator, build_request, create_coupon, used_count, fetch_counts, transaction_manager
    ):
        """已选过其中一门课：整单回滚，保留原有选课"""
        await create_coupon("SAVE10", max_uses=5)
        await transaction_manager.execute_in_transaction(
            lambda session: EnrollmentRepository(session).create("student_001", "course_2")
        )
        orchestrator = make_orchestrator()

        with pytest.raises(DuplicateEnrollmentError) as exc_info:
            await orchestrator.checkout(
                "student_001",
                build_request(
                    prices=(Decimal("50.00"), Decimal("50.00")),
                    coupon_code="SAVE10",
                    total=Decimal("90.00")
                )
            )

        assert exc_info.value.kind == CheckoutErrorKind.DUPLICATE_ENROLLMENT
        assert await fetch_counts() == {"orders": 0, "order_items": 0, "payments": 0, "enrollments": 1}
        assert await used_count("SAVE10") == 0

    async def test_unexpected_enrollment_error_aborts(
        self, make_orchestrator, build_request, create_coupon, used_count, fetch_counts
    ):
        """选课出现非业务异常时整单回滚并报告事务中止"""
        await create_coupon("SAVE10", max_uses=5)
        orchestrator = make_orchestrator()

        async def enrollment_down(session, **kwargs):
            raise RuntimeError("选课服务不可用")

        orchestrator._create_enrollment = enrollment_down

        with pytest.raises(TransactionAbortedError) as exc_info:
            await orchestrator.checkout(
                "student_001",
                build_request(
                    prices=(Decimal("50.00"), Decimal("50.00")),
                    coupon_code="SAVE10",
                    total=Decimal("90.00")
                )
            )

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert await fetch_counts() == {"orders": 0, "order_items": 0, "payments": 0, "enrollments": 0}
        assert await used_count("SAVE10") == 0

    async def test_duplicate_course_in_same_cart(self, make_orchestrator, fetch_counts):
        """同一购物车重复课程也视为重复选课"""
        request = CheckoutRequest(
            cart_items=[
                CartItem(course_id="course_1", price=Decimal("30.00")),
                CartItem(course_id="course_1", price=Decimal("30.00")),
            ],
            subtotal=Decimal("60.00"),
            total=Decimal("60.00"),
            payment_method=PaymentMethod.TEST,
            use_test_mode=True
        )

        with pytest.raises(DuplicateEnrollmentError):
            await make_orchestrator().checkout("student_001", request)

        assert await fetch_counts() == EMPTY

    async def test_concurrent_checkouts_respect_max_uses(
        self, make_orchestrator, build_request, create_coupon, used_count, fetch_counts
    ):
        """10个并发结算争用3个名额：恰好3个成功，其余返回CouponExhausted"""
        await create_coupon("LIMITED", value=Decimal("10"), max_uses=3)

        async def attempt(i: int):
            orchestrator = make_orchestrator(MockPaymentProcessor(delay_seconds=0.01))
            return await orchestrator.checkout(
                f"student_{i:03d}",
                build_request(coupon_code="LIMITED", total=Decimal("90.00"))
            )

        results = await asyncio.gather(*(attempt(i) for i in range(10)), return_exceptions=True)

        succeeded = [r for r in results if not isinstance(r, BaseException)]
        failed = [r for r in results if isinstance(r, BaseException)]

        assert len(succeeded) == 3
        assert len(failed) == 7
        assert all(isinstance(e, CheckoutException) for e in failed)
        assert all(e.kind == CheckoutErrorKind.COUPON_EXHAUSTED for e in failed)

        assert await used_count("LIMITED") == 3
        counts = await fetch_counts()
        assert counts["orders"] == 3
        assert counts["enrollments"] == 3

    async def test_subtotal_mismatch(self, make_orchestrator, build_request, fetch_counts):
        """客户端小计与服务端不一致时在写入前拒绝"""
        processor = MockPaymentProcessor()

        with pytest.raises(AmountMismatchError) as exc_info:
            await make_orchestrator(processor).checkout(
                "student_001",
                build_request(subtotal=Decimal("95.00"))
            )

        assert exc_info.value.kind == CheckoutErrorKind.AMOUNT_MISMATCH
        assert processor.charges == []
        assert await fetch_counts() == EMPTY

    async def test_total_mismatch(self, make_orchestrator, build_request, create_coupon, used_count, fetch_counts):
        """客户端应付金额未扣除折扣时拒绝"""
        await create_coupon("SAVE10", max_uses=5)

        with pytest.raises(AmountMismatchError):
            await make_orchestrator().checkout(
                "student_001",
                build_request(coupon_code="SAVE10", total=Decimal("100.00"))
            )

        assert await fetch_counts() == EMPTY
        assert await used_count("SAVE10") == 0

    async def test_amount_within_tolerance(self, make_orchestrator, build_request):
        receipt = await make_orchestrator().checkout(
            "student_001",
            build_request(total=Decimal("100.01"))
        )

        assert receipt.final_total == Decimal("100.00")

    async def test_invalid_coupon_aborts_before_writes(self, make_orchestrator, build_request, create_coupon, fetch_counts):
        await create_coupon("OLD", expires_at=datetime.now() - timedelta(days=1))
        processor = MockPaymentProcessor()

        with pytest.raises(CouponExpiredError):
            await make_orchestrator(processor).checkout(
                "student_001",
                build_request(coupon_code="OLD", total=Decimal("90.00"))
            )

        assert processor.charges == []
        assert await fetch_counts() == EMPTY

    async def test_timeout_aborts_transaction(self, make_orchestrator, build_request, create_coupon, used_count, fetch_counts):
        """事务超时时回滚并返回TransactionAborted"""
        await create_coupon("SAVE10", max_uses=5)
        orchestrator = make_orchestrator(MockPaymentProcessor(delay_seconds=2.0), timeout_seconds=0.2)

        with pytest.raises(TransactionAbortedError) as exc_info:
            await orchestrator.checkout(
                "student_001",
                build_request(coupon_code="SAVE10", total=Decimal("90.00"))
            )

        assert exc_info.value.kind == CheckoutErrorKind.TRANSACTION_ABORTED
        assert await fetch_counts() == EMPTY
        assert await used_count("SAVE10") == 0

    async def test_product_items_create_no_enrollments(self, make_orchestrator, fetch_counts):
        request = CheckoutRequest(
            cart_items=[CartItem(product_id="ebook_1", price=Decimal("15.00"), quantity=2)],
            subtotal=Decimal("30.00"),
            total=Decimal("30.00"),
            payment_method=PaymentMethod.TEST,
            use_test_mode=True
        )

        receipt = await make_orchestrator().checkout("student_001", request)

        assert receipt.enrollment_ids == []
        assert await fetch_counts() == {"orders": 1, "order_items": 1, "payments": 1, "enrollments": 0}

    async def test_fully_discounted_order_skips_gateway(
        self, make_orchestrator, build_request, create_coupon, used_count
    ):
        await create_coupon("FREE", coupon_type=CouponType.FIXED, value=Decimal("200"), max_uses=1)
        processor = MockPaymentProcessor()

        receipt = await make_orchestrator(processor).checkout(
            "student_001",
            build_request(coupon_code="FREE", total=Decimal("0"))
        )

        assert receipt.final_total == Decimal("0.00")
        assert processor.charges == []
        assert await used_count("FREE") == 1

    async def test_test_payments_disabled(self, session_maker, transaction_manager, build_request, fetch_counts):
        async with session_maker() as session:
            orchestrator = CheckoutOrchestrator(
                transaction_manager=transaction_manager,
                coupon_validator=CouponValidator(CouponRepository(session)),
                payment_router=PaymentProcessorRouter(allow_test_payments=False),
                timeout_seconds=5
            )

            with pytest.raises(PaymentFailedError):
                await orchestrator.checkout("student_001", build_request())

        assert await fetch_counts() == EMPTY

    async def test_processor_exception_becomes_payment_failure(self, make_orchestrator, build_request, fetch_counts):
        """网关抛出的异常统一为PaymentFailed"""

        class BrokenProcessor(MockPaymentProcessor):
            async def charge(self, amount, method, context):
                raise ConnectionError("网关不可达")

        with pytest.raises(PaymentFailedError):
            await make_orchestrator(BrokenProcessor()).checkout("student_001", build_request())

        assert await fetch_counts() == EMPTY
