"""路径解析：计算文件夹的祖先链（面包屑）与新节点的规范路径。"""

from __future__ import annotations

from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from app.packages.drive.core.constants import HTTP_STATUS_INTERNAL_ERROR, HTTP_STATUS_NOT_FOUND
from app.packages.drive.core.exceptions import AppException
from app.packages.drive.core.logger import logger
from app.packages.drive.crud.file_node import file_node_crud
from app.packages.drive.models.file_node import FileNode
from app.packages.drive.utils.path_utils import build_path


def resolve_path(db: Session, owner_id: int, folder_id: str) -> List[Dict[str, str]]:
    """从根到 ``folder_id`` 的祖先链 ``[{id, name}, ...]``。

    沿 parent_id 向上回溯直到根；若出现重复 ID（数据中存在环）直接报错而不是死循环。
    """
    folder = file_node_crud.get_owned(db, owner_id, folder_id)
    if folder is None or not folder.is_folder:
        raise AppException("文件夹不存在", HTTP_STATUS_NOT_FOUND)

    chain: List[Dict[str, str]] = []
    visited: set[str] = set()
    current: Optional[FileNode] = folder
    while current is not None:
        if current.id in visited:
            logger.error("Cycle detected in folder chain of %s (owner %s)", folder_id, owner_id)
            raise AppException("文件夹层级存在循环", HTTP_STATUS_INTERNAL_ERROR)
        visited.add(current.id)
        chain.insert(0, {"id": current.id, "name": current.name})
        if current.parent_id is None:
            break
        current = file_node_crud.get_owned(db, owner_id, current.parent_id)
        if current is None:
            # 祖先已被删除或不属于当前用户，视为链路断裂
            raise AppException("文件夹不存在", HTTP_STATUS_NOT_FOUND)
    return chain


def node_path(parent: Optional[FileNode], name: str) -> str:
    """新节点的完整路径，父节点为空时位于根目录。"""
    return build_path(parent.path if parent is not None else None, name)
