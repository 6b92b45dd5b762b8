"""
业务异常定义
结算流程的每种失败都对应一个错误类型(kind)，沿调用链原样向上传递
"""

from enum import Enum
from typing import Optional, Dict, Any


class CheckoutErrorKind(str, Enum):
    """结算错误类型枚举"""
    COUPON_NOT_FOUND = "CouponNotFound"
    COUPON_INACTIVE = "CouponInactive"
    COUPON_EXPIRED = "CouponExpired"
    COUPON_BELOW_MINIMUM = "CouponBelowMinimum"
    COUPON_EXHAUSTED = "CouponExhausted"
    AMOUNT_MISMATCH = "AmountMismatch"
    PAYMENT_FAILED = "PaymentFailed"
    DUPLICATE_ENROLLMENT = "DuplicateEnrollment"
    TRANSACTION_ABORTED = "TransactionAborted"


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "BUSINESS_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}


class CheckoutException(BusinessException):
    """结算异常基类，kind 标识具体失败原因"""

    kind: CheckoutErrorKind = CheckoutErrorKind.TRANSACTION_ABORTED
    default_status_code: int = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message,
            status_code=self.default_status_code,
            error_code=self.kind.value,
            details=details
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message}


class CouponError(CheckoutException):
    """优惠券校验失败"""


class CouponNotFoundError(CouponError):
    kind = CheckoutErrorKind.COUPON_NOT_FOUND
    default_status_code = 404


class CouponInactiveError(CouponError):
    kind = CheckoutErrorKind.COUPON_INACTIVE


class CouponExpiredError(CouponError):
    kind = CheckoutErrorKind.COUPON_EXPIRED


class CouponBelowMinimumError(CouponError):
    kind = CheckoutErrorKind.COUPON_BELOW_MINIMUM


class CouponExhaustedError(CouponError):
    kind = CheckoutErrorKind.COUPON_EXHAUSTED
    default_status_code = 409


class AmountMismatchError(CheckoutException):
    kind = CheckoutErrorKind.AMOUNT_MISMATCH


class PaymentFailedError(CheckoutException):
    kind = CheckoutErrorKind.PAYMENT_FAILED
    default_status_code = 402


class DuplicateEnrollmentError(CheckoutException):
    kind = CheckoutErrorKind.DUPLICATE_ENROLLMENT
    default_status_code = 409


class TransactionAbortedError(CheckoutException):
    kind = CheckoutErrorKind.TRANSACTION_ABORTED
    default_status_code = 500
