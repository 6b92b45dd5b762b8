"""
Repository层初始化文件
"""

from .coupon_repository import CouponRepository
from .order_repository import OrderRepository
from .enrollment_repository import EnrollmentRepository

__all__ = [
    "CouponRepository",
    "OrderRepository",
    "EnrollmentRepository"
]
