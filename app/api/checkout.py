"""
结算接口
"""

import logging

from fastapi import APIRouter, Depends

from app.api.deps import get_checkout_orchestrator, get_current_student_id
from app.models.checkout import CheckoutRequest, CheckoutReceipt
from app.services.checkout_service import CheckoutOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/checkout", tags=["结算"])


@router.post("", response_model=CheckoutReceipt)
async def checkout(
    request: CheckoutRequest,
    student_id: str = Depends(get_current_student_id),
    orchestrator: CheckoutOrchestrator = Depends(get_checkout_orchestrator)
):
    """
    提交结算

    成功返回订单回执；失败时整单回滚，返回 {"success": false, "error": {"kind", "message"}}
    """
    return await orchestrator.checkout(student_id, request)
