"""
数据模型包初始化文件
"""

from .coupon import (
    Coupon,
    CouponType,
    CouponCreate,
    CouponUpdate,
    CouponValidation,
    CouponValidationRequest
)
from .order import Order, OrderItem, OrderStatus, PaymentStatus, PaymentMethod
from .checkout import CartItem, BillingAddress, CheckoutRequest, CheckoutReceipt, CheckoutError
from .discount import DiscountResult
from .enrollment import Enrollment, EnrollmentStatus, EnrollmentBatchResult

__all__ = [
    "Coupon",
    "CouponType",
    "CouponCreate",
    "CouponUpdate",
    "CouponValidation",
    "CouponValidationRequest",
    "Order",
    "OrderItem",
    "OrderStatus",
    "PaymentStatus",
    "PaymentMethod",
    "CartItem",
    "BillingAddress",
    "CheckoutRequest",
    "CheckoutReceipt",
    "CheckoutError",
    "DiscountResult",
    "Enrollment",
    "EnrollmentStatus",
    "EnrollmentBatchResult"
]
