"""统一响应结构：所有接口都返回 ``{success, msg, data, code}`` 形式的字典。"""

from typing import Any, Dict, Optional

from .constants import HTTP_STATUS_BAD_REQUEST, HTTP_STATUS_OK


def create_response(msg: str, data: Any = None, code: int = HTTP_STATUS_OK) -> Dict[str, Any]:
    """构造成功或失败的响应体，``success`` 由状态码推导。"""
    return {"success": code < HTTP_STATUS_BAD_REQUEST, "msg": msg, "data": data, "code": code}


def create_error_response(msg: str, code: int, data: Optional[Any] = None) -> Dict[str, Any]:
    """错误响应在标准结构上额外携带 ``error`` 字段。"""
    payload = create_response(msg, data, code)
    payload["error"] = msg
    return payload
