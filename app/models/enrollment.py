"""
选课相关数据模型
"""

from decimal import Decimal
from datetime import datetime
from typing import List, Optional, Any
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum


class EnrollmentStatus(str, Enum):
    """选课状态枚举"""
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Enrollment(BaseModel):
    """选课记录模型"""

    enrollment_id: str
    student_id: str
    course_id: str
    order_id: Optional[str] = None
    status: EnrollmentStatus = EnrollmentStatus.ACTIVE
    price_paid: Optional[Decimal] = None
    purchase_date: Optional[datetime] = None
    created_at: Optional[datetime] = None


class EnrollmentBatchResult(BaseModel):
    """批量选课结果"""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: bool
    results: List[Any] = Field(default_factory=list, description="按输入顺序的选课记录")
    errors: List[str] = Field(default_factory=list, description="错误信息")
    failure: Optional[Exception] = Field(None, exclude=True, description="首个失败的原始异常")
