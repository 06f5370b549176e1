"""认证服务：封装注册、登录等核心业务流程。"""

from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.packages.drive.core.constants import (
    ACCESS_TOKEN_TYPE,
    HTTP_STATUS_CONFLICT,
    HTTP_STATUS_CREATED,
    HTTP_STATUS_FORBIDDEN,
    HTTP_STATUS_OK,
    HTTP_STATUS_UNAUTHORIZED,
)
from app.packages.drive.core.exceptions import AppException
from app.packages.drive.core.logger import logger
from app.packages.drive.core.responses import create_response
from app.packages.drive.core.security import create_access_token, get_password_hash, verify_password
from app.packages.drive.crud.users import user_crud
from app.packages.drive.models.user import User


def serialize_user(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "isActive": bool(user.is_active),
        "isAdmin": bool(user.is_admin),
        "storageUsed": int(user.storage_used or 0),
        "storageLimit": user.storage_limit,
    }


class AuthService:
    """负责处理用户注册与登录流程，并保持逻辑聚合。"""

    def register_user(
        self, db: Session, *, username: str, password: str, email: Optional[str] = None
    ) -> dict:
        """创建新用户，用户名与邮箱都不允许重复。"""
        username = username.strip()
        if user_crud.get_by_username(db, username):
            raise AppException(msg="用户名已存在", code=HTTP_STATUS_CONFLICT)
        if email and user_crud.get_by_email(db, email):
            raise AppException(msg="邮箱已被注册", code=HTTP_STATUS_CONFLICT)

        user = user_crud.create(
            db,
            {
                "username": username,
                "email": email,
                "hashed_password": get_password_hash(password),
                "is_active": True,
                "is_admin": False,
                "storage_used": 0,
            },
        )
        logger.info("User registered: %s", user.username)
        return create_response("注册成功", serialize_user(user), HTTP_STATUS_CREATED)

    def login(self, db: Session, *, username: str, password: str) -> dict:
        """校验用户凭证并签发访问令牌。"""
        user = user_crud.get_by_username(db, username.strip())
        if user is None or not verify_password(password, user.hashed_password):
            logger.info("Login failed for %s", username)
            raise AppException(msg="用户名或密码错误", code=HTTP_STATUS_UNAUTHORIZED)
        if not user.is_active:
            raise AppException(msg="用户未激活", code=HTTP_STATUS_FORBIDDEN)

        access_token = create_access_token({"user_id": user.id, "username": user.username})
        return create_response(
            "登录成功",
            {"access_token": access_token, "token_type": ACCESS_TOKEN_TYPE},
            HTTP_STATUS_OK,
        )


auth_service = AuthService()
