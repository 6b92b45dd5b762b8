"""
服务包初始化文件
"""

from .common_cache import SimpleCache, coupon_cache
from .discount_calculator import DiscountCalculator
from .coupon_validator import CouponValidator
from .transaction_manager import TransactionManager
from .enrollment_batch_creator import EnrollmentBatchCreator
from .payment_processor import PaymentProcessor, MockPaymentProcessor, PaymentProcessorRouter, PaymentResult
from .coupon_service import CouponService
from .checkout_service import CheckoutOrchestrator

__all__ = [
    "SimpleCache",
    "coupon_cache",
    "DiscountCalculator",
    "CouponValidator",
    "TransactionManager",
    "EnrollmentBatchCreator",
    "PaymentProcessor",
    "MockPaymentProcessor",
    "PaymentProcessorRouter",
    "PaymentResult",
    "CouponService",
    "CheckoutOrchestrator"
]
