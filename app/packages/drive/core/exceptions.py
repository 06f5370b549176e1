"""异常处理模块：定义统一的业务异常，并把各类异常转换为标准响应体。"""

from typing import Any

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .config import get_settings
from .constants import (
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_INTERNAL_ERROR,
    INTERNAL_ERROR_MESSAGE,
)
from .logger import logger
from .responses import create_error_response


class AppException(HTTPException):
    """携带统一响应结构的业务异常，方便在全局处理中转换响应体。"""

    def __init__(self, msg: str, code: int = HTTP_STATUS_BAD_REQUEST, data=None) -> None:
        super().__init__(status_code=code, detail=msg)
        self.data = data


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:  # pragma: no cover - framework glue
    """将 FastAPI 的 ``HTTPException`` 转换为统一响应格式。"""
    payload = create_error_response(str(exc.detail), exc.status_code, getattr(exc, "data", None))
    return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))


def _serialize(obj: Any) -> Any:
    if isinstance(obj, Exception):
        return str(obj)
    if isinstance(obj, bytes):
        return obj.decode("utf-8", errors="replace")
    if isinstance(obj, dict):
        return {key: _serialize(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_serialize(item) for item in obj]
    return obj


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:  # pragma: no cover - framework glue
    """请求参数校验失败统一按 400 返回，附带字段错误明细。"""
    payload = create_error_response("请求参数验证失败", HTTP_STATUS_BAD_REQUEST, _serialize(exc.errors()))
    return JSONResponse(status_code=HTTP_STATUS_BAD_REQUEST, content=payload)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:  # pragma: no cover - framework glue
    """兜底处理：记录日志后返回脱敏的 500 响应。"""
    if get_settings().is_production:
        logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc)
    else:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    payload = create_error_response(INTERNAL_ERROR_MESSAGE, HTTP_STATUS_INTERNAL_ERROR)
    return JSONResponse(status_code=HTTP_STATUS_INTERNAL_ERROR, content=payload)
