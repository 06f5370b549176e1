"""用户模型：账号信息与存储配额字段。"""

from typing import Optional

from sqlalchemy import BigInteger, Boolean, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import expression

from app.packages.drive.models.base import Base, SoftDeleteMixin, TimestampMixin


class User(TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    hashed_password: Mapped[str] = mapped_column(String(255))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default=expression.true())
    # 管理员标记，维护类接口据此鉴权
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, server_default=expression.false())
    # 已用空间（字节），随上传/删除增量维护，可通过对账接口重算
    storage_used: Mapped[int] = mapped_column(BigInteger, default=0, server_default="0", nullable=False)
    # 配额上限（字节），为空时使用 DEFAULT_STORAGE_LIMIT
    storage_limit: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
