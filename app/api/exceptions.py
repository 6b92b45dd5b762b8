"""
全局异常处理器
"""

import logging

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import BusinessException, CheckoutException

logger = logging.getLogger(__name__)

__all__ = [
    "BusinessException",
    "validation_exception_handler",
    "http_exception_handler",
    "database_exception_handler",
    "general_exception_handler",
    "business_exception_handler",
]


async def business_exception_handler(request: Request, exc: BusinessException) -> JSONResponse:
    """业务异常处理"""
    if isinstance(exc, CheckoutException):
        error = exc.to_dict()
    else:
        error = {"kind": exc.error_code, "message": exc.message}
    if exc.details:
        error["details"] = exc.details

    logger.info(f"业务异常 {request.url.path}: {error['kind']} - {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": error}
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """请求参数校验异常处理"""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "success": False,
            "error": {
                "kind": "ValidationError",
                "message": "请求参数校验失败",
                "details": jsonable_encoder(exc.errors())
            }
        }
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """HTTP异常处理"""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": {"kind": "HTTPError", "message": str(exc.detail)}
        }
    )


async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """数据库异常处理"""
    logger.error(f"数据库异常 {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": {"kind": "DatabaseError", "message": "数据库操作失败"}
        }
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """未知异常处理"""
    logger.exception(f"未处理的异常 {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": {"kind": "InternalError", "message": "服务器内部错误"}
        }
    )
