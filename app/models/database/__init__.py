"""
数据库模型包初始化文件
"""

from .coupon_db import CouponDB
from .order_db import OrderDB, OrderItemDB, PaymentTransactionDB
from .enrollment_db import EnrollmentDB

__all__ = [
    "CouponDB",
    "OrderDB",
    "OrderItemDB",
    "PaymentTransactionDB",
    "EnrollmentDB"
]
