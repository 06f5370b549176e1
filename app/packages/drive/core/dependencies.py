"""依赖注入模块：封装 FastAPI 中复用度高的依赖函数。"""

from collections.abc import Generator
from typing import Callable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.packages.drive.core import rate_limit
from app.packages.drive.core.config import get_settings
from app.packages.drive.core.constants import (
    ACCESS_TOKEN_TYPE,
    HTTP_STATUS_FORBIDDEN,
    HTTP_STATUS_TOO_MANY_REQUESTS,
    HTTP_STATUS_UNAUTHORIZED,
)
from app.packages.drive.core.exceptions import AppException
from app.packages.drive.core.logger import logger
from app.packages.drive.core.security import decode_token, secrets_match
from app.packages.drive.crud.users import user_crud
from app.packages.drive.db.session import SessionLocal
from app.packages.drive.models.user import User
from app.packages.drive.services.blob_store import BlobStore, build_blob_store

security_scheme = HTTPBearer(auto_error=False)

_blob_store: Optional[BlobStore] = None


def get_db() -> Generator[Session, None, None]:
    """生成一个数据库会话，并在请求结束后自动关闭。"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_blob_store() -> BlobStore:
    """按配置懒加载数据块存储，进程内复用同一实例。"""
    global _blob_store
    if _blob_store is None:
        _blob_store = build_blob_store()
    return _blob_store


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    db: Session = Depends(get_db),
) -> User:
    """解析 ``Authorization`` 头部并返回当前认证用户，不存在或非法时抛出 401。"""
    if not credentials:
        raise AppException("缺少认证信息", HTTP_STATUS_UNAUTHORIZED)

    if credentials.scheme.lower() != ACCESS_TOKEN_TYPE:
        raise AppException("认证类型无效", HTTP_STATUS_UNAUTHORIZED)

    payload = decode_token(credentials.credentials)
    if payload is None:
        raise AppException("Token 无效或已过期", HTTP_STATUS_UNAUTHORIZED)

    user_id = payload.get("user_id")
    if user_id is None:
        raise AppException("Token 无效", HTTP_STATUS_UNAUTHORIZED)

    user = user_crud.get(db, user_id)
    if user is None:
        raise AppException("用户不存在", HTTP_STATUS_UNAUTHORIZED)
    return user


def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    """确保已认证用户仍处于激活状态，否则拒绝访问。"""
    if not current_user.is_active:
        raise AppException("用户未激活", HTTP_STATUS_FORBIDDEN)
    return current_user


def get_current_admin(current_user: User = Depends(get_current_active_user)) -> User:
    """仅允许管理员访问维护类接口。"""
    if not current_user.is_admin:
        raise AppException("需要管理员权限", HTTP_STATUS_FORBIDDEN)
    return current_user


def verify_cron_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
) -> None:
    """校验定时任务的 ``Bearer <CRON_SECRET>``；未配置密钥时接口整体关闭。"""
    secret = get_settings().cron_secret
    provided = credentials.credentials if credentials and credentials.scheme.lower() == ACCESS_TOKEN_TYPE else None
    if not secrets_match(provided, secret):
        logger.warning("Rejected cron request with invalid credentials")
        raise AppException("未授权的访问", HTTP_STATUS_UNAUTHORIZED)


def _client_key(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def rate_limiter(scope: str, limit_getter: Callable[[], int]) -> Callable[[Request], None]:
    """构造限流依赖：按 ``scope + 客户端地址`` 在固定窗口内计数，超限返回 429。"""

    def dependency(request: Request) -> None:
        settings = get_settings()
        if not settings.rate_limit_enabled:
            return
        key = f"{scope}:{_client_key(request)}"
        if not rate_limit.hit(key, limit_getter(), settings.rate_limit_window_seconds):
            raise AppException("请求过于频繁，请稍后再试", HTTP_STATUS_TOO_MANY_REQUESTS)

    return dependency


login_rate_limit = rate_limiter("login", lambda: get_settings().login_rate_limit)
upload_rate_limit = rate_limiter("upload", lambda: get_settings().upload_rate_limit)
