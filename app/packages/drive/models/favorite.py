"""收藏夹与收藏记录模型。"""

from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import expression

from app.packages.drive.models.base import Base, TimestampMixin


class FavoriteFolder(TimestampMixin, Base):
    """收藏夹；每个用户至多一个默认收藏夹。"""

    __tablename__ = "favorite_folders"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    owner_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), index=True)
    name: Mapped[str] = mapped_column(String(128))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, server_default=expression.false())


class Favorite(TimestampMixin, Base):
    __tablename__ = "favorites"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    owner_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), index=True)
    file_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("file_nodes.id", ondelete="CASCADE"), index=True
    )
    folder_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("favorite_folders.id", ondelete="CASCADE"), index=True
    )

    __table_args__ = (
        UniqueConstraint("folder_id", "file_id", name="uq_favorites_folder_file"),
    )
