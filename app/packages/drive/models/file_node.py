"""文件树节点模型（文件与文件夹合并为一张表）。

存储规则：
- path：以 '/' 开头的完整路径（含自身名称），如 "/Docs/2024"、"/Docs/a.txt"；
  重命名/移动时级联更新所有后代；
- is_folder：文件夹 size=0，无 storage_key/mime_type；
- storage_key：数据块存储键，分配后不再变化，重命名不影响；
- tags：去重后的非空字符串列表。
"""

import uuid
from typing import List, Optional

from sqlalchemy import JSON, BigInteger, Boolean, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import expression

from app.packages.drive.core.constants import MAX_NAME_LENGTH
from app.packages.drive.models.base import Base, SoftDeleteMixin, TimestampMixin


def _new_id() -> str:
    return str(uuid.uuid4())


class FileNode(TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "file_nodes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    owner_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), index=True)
    parent_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("file_nodes.id"), nullable=True, index=True
    )
    name: Mapped[str] = mapped_column(String(MAX_NAME_LENGTH))
    is_folder: Mapped[bool] = mapped_column(Boolean, default=False, server_default=expression.false())
    path: Mapped[str] = mapped_column(String(4096), index=True)
    size: Mapped[int] = mapped_column(BigInteger, default=0, server_default="0")
    mime_type: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    storage_key: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    url: Mapped[Optional[str]] = mapped_column(String(4096), nullable=True)
    tags: Mapped[List[str]] = mapped_column(JSON, default=list)

    # 两阶段清理：数据块删除失败时累计次数与最近一次错误
    purge_attempts: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    purge_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_file_nodes_owner_parent", "owner_id", "parent_id", "is_deleted"),
        Index("ix_file_nodes_purge", "is_deleted", "deleted_at"),
    )
