"""
订单数据库操作层
"""

import uuid
from typing import List, Optional, Dict, Any
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.checkout import CartItem
from app.models.order import Order, OrderItem, OrderStatus, PaymentStatus, PaymentTransactionStatus
from app.models.database.order_db import OrderDB, OrderItemDB, PaymentTransactionDB


def generate_order_number() -> str:
    """生成订单编号"""
    return f"ORD-{datetime.now().strftime('%Y%m%d%H%M%S')}-{uuid.uuid4().hex[:8].upper()}"


class OrderRepository:
    """订单数据库操作层"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_order_id(self, order_id: str) -> Optional[OrderDB]:
        """根据订单ID获取订单（包含订单项）"""
        result = await self.db.execute(
            select(OrderDB)
            .options(selectinload(OrderDB.order_items))
            .where(OrderDB.order_id == order_id)
        )
        return result.scalar_one_or_none()

    async def count_orders(self, student_id: Optional[str] = None) -> int:
        """统计订单数量"""
        query = select(func.count(OrderDB.order_id))
        if student_id:
            query = query.where(OrderDB.student_id == student_id)
        result = await self.db.execute(query)
        return result.scalar() or 0

    async def create_order_with_items(
        self,
        student_id: str,
        cart_items: List[CartItem],
        subtotal: Decimal,
        discount_amount: Decimal,
        final_amount: Decimal,
        payment_method: str,
        coupon_code: Optional[str] = None,
        billing_address: Optional[Dict[str, Any]] = None,
        is_test_mode: bool = False
    ) -> OrderDB:
        """创建待支付订单及订单项快照"""
        db_order = OrderDB(
            order_id=str(uuid.uuid4()),
            order_number=generate_order_number(),
            student_id=student_id,
            subtotal=subtotal,
            discount_amount=discount_amount,
            final_amount=final_amount,
            applied_coupon_code=coupon_code,
            order_status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            payment_method=payment_method,
            is_test_mode=is_test_mode,
            billing_address=billing_address
        )
        self.db.add(db_order)
        await self.db.flush()

        for item in cart_items:
            self.db.add(OrderItemDB(
                item_id=str(uuid.uuid4()),
                order_id=db_order.order_id,
                course_id=item.course_id,
                product_id=item.product_id,
                item_name=item.name,
                unit_price=item.price,
                quantity=item.quantity
            ))
        await self.db.flush()

        return db_order

    async def update_order_status(
        self,
        order_id: str,
        order_status: Optional[OrderStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        paid_at: Optional[datetime] = None
    ) -> bool:
        """更新订单状态"""
        update_data: Dict[str, Any] = {"updated_at": datetime.now()}

        if order_status:
            update_data["order_status"] = order_status.value
        if payment_status:
            update_data["payment_status"] = payment_status.value
        if paid_at:
            update_data["paid_at"] = paid_at

        result = await self.db.execute(
            update(OrderDB)
            .where(OrderDB.order_id == order_id)
            .values(**update_data)
        )

        return result.rowcount > 0

    async def create_payment_transaction(
        self,
        order_id: str,
        student_id: str,
        amount: Decimal,
        payment_method: str,
        status: PaymentTransactionStatus,
        gateway_transaction_id: Optional[str] = None,
        failure_reason: Optional[str] = None,
        gateway_response: Optional[Dict[str, Any]] = None
    ) -> PaymentTransactionDB:
        """记录支付流水"""
        transaction = PaymentTransactionDB(
            transaction_id=f"txn_{uuid.uuid4().hex}",
            order_id=order_id,
            student_id=student_id,
            amount=amount,
            payment_method=payment_method,
            gateway_transaction_id=gateway_transaction_id,
            status=status.value,
            failure_reason=failure_reason,
            gateway_response=gateway_response,
            processed_at=datetime.now() if status != PaymentTransactionStatus.PENDING else None
        )
        self.db.add(transaction)
        await self.db.flush()
        return transaction

    async def get_payment_transactions(self, order_id: str) -> List[PaymentTransactionDB]:
        """获取订单的支付流水"""
        result = await self.db.execute(
            select(PaymentTransactionDB).where(PaymentTransactionDB.order_id == order_id)
        )
        return list(result.scalars().all())

    def to_model(self, db_order: OrderDB) -> Order:
        """转换为Pydantic模型"""
        return Order(
            order_id=db_order.order_id,
            order_number=db_order.order_number,
            student_id=db_order.student_id,
            order_items=[
                OrderItem(
                    item_id=item.item_id,
                    course_id=item.course_id,
                    product_id=item.product_id,
                    item_name=item.item_name,
                    unit_price=item.unit_price,
                    quantity=item.quantity
                )
                for item in db_order.order_items
            ],
            subtotal=db_order.subtotal,
            discount_amount=db_order.discount_amount or Decimal("0"),
            final_amount=db_order.final_amount,
            applied_coupon_code=db_order.applied_coupon_code,
            order_status=OrderStatus(db_order.order_status),
            payment_status=PaymentStatus(db_order.payment_status),
            payment_method=db_order.payment_method,
            is_test_mode=db_order.is_test_mode,
            billing_address=db_order.billing_address,
            created_at=db_order.created_at,
            updated_at=db_order.updated_at,
            paid_at=db_order.paid_at
        )
