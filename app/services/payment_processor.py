"""
支付处理
结算事务只依赖 PaymentProcessor 接口，具体网关协议不在本服务内实现
"""

import asyncio
import logging
import uuid
from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from app.core.config import settings
from app.core.exceptions import PaymentFailedError
from app.models.order import PaymentMethod

logger = logging.getLogger(__name__)


class PaymentResult(BaseModel):
    """支付结果"""

    success: bool
    transaction_id: Optional[str] = None
    message: Optional[str] = None
    raw: Dict[str, Any] = Field(default_factory=dict, description="网关原始返回")


class PaymentProcessor:
    """支付处理器接口"""

    async def charge(self, amount: Decimal, method: PaymentMethod, context: Dict[str, Any]) -> PaymentResult:
        raise NotImplementedError


class MockPaymentProcessor(PaymentProcessor):
    """模拟支付处理器，用于测试模式"""

    def __init__(self, should_succeed: bool = True, delay_seconds: float = 0.0, failure_message: str = "模拟支付被拒绝"):
        self.should_succeed = should_succeed
        self.delay_seconds = delay_seconds
        self.failure_message = failure_message
        self.charges = []

    async def charge(self, amount: Decimal, method: PaymentMethod, context: Dict[str, Any]) -> PaymentResult:
        await asyncio.sleep(self.delay_seconds)
        self.charges.append({"amount": amount, "method": method, "context": dict(context)})

        if not self.should_succeed:
            return PaymentResult(success=False, message=self.failure_message, raw={"mock": True})

        return PaymentResult(
            success=True,
            transaction_id=f"mock_{uuid.uuid4().hex[:16]}",
            message="模拟支付成功",
            raw={"mock": True, "amount": str(amount)}
        )


class PaymentProcessorRouter:
    """根据支付方式和测试标记选择支付处理器"""

    def __init__(
        self,
        processors: Optional[Dict[PaymentMethod, PaymentProcessor]] = None,
        test_processor: Optional[PaymentProcessor] = None,
        allow_test_payments: Optional[bool] = None
    ):
        self.processors = dict(processors or {})
        self.test_processor = test_processor or MockPaymentProcessor()
        self.allow_test_payments = settings.allow_test_payments if allow_test_payments is None else allow_test_payments

    def register(self, method: PaymentMethod, processor: PaymentProcessor) -> None:
        """注册支付网关处理器"""
        self.processors[method] = processor

    def resolve(self, method: PaymentMethod, use_test_mode: bool = False) -> PaymentProcessor:
        """选择处理器，无可用处理器时抛出 PaymentFailedError"""
        if use_test_mode or method == PaymentMethod.TEST:
            if not self.allow_test_payments:
                raise PaymentFailedError("当前环境不允许测试支付")
            return self.test_processor

        processor = self.processors.get(method)
        if processor is None:
            raise PaymentFailedError(f"不支持的支付方式: {method.value}")
        return processor
