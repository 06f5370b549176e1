"""通用响应模型。"""

from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ResponseEnvelope(BaseModel, Generic[T]):
    """系统统一的响应外层结构。"""

    success: bool = True
    msg: str
    data: Optional[T] = None
    code: int


class PageData(BaseModel, Generic[T]):
    items: List[T]
    total: int
    page: int
    pageSize: int
