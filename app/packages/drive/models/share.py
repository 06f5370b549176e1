"""分享链接模型：一个分享包含若干文件/文件夹，凭分享码与提取码公开访问。"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import expression

from app.packages.drive.models.base import Base, TimestampMixin


class ShareLink(TimestampMixin, Base):
    """分享记录；``expires_at`` 为空表示永久有效，``access_limit`` 为空表示不限次数。"""

    __tablename__ = "share_links"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    owner_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), index=True)
    share_code: Mapped[str] = mapped_column(String(32), unique=True, index=True)
    extract_code: Mapped[str] = mapped_column(String(16))
    # 链接中自带提取码，访问者无需手动输入
    auto_fill_code: Mapped[bool] = mapped_column(Boolean, default=False, server_default=expression.false())
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    access_limit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    access_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0")


class ShareItem(Base):
    __tablename__ = "share_items"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    share_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("share_links.id", ondelete="CASCADE"), index=True
    )
    file_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("file_nodes.id", ondelete="CASCADE"), index=True
    )

    __table_args__ = (
        UniqueConstraint("share_id", "file_id", name="uq_share_items_share_file"),
    )
