"""名称冲突检查：找出候选名称中已在目标文件夹下存在的部分（仅提示，不阻断）。"""

from __future__ import annotations

from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from app.packages.drive.core.constants import ROOT_FOLDER_TOKEN
from app.packages.drive.crud.file_node import file_node_crud


def normalize_parent_id(folder_id: Optional[str]) -> Optional[str]:
    """``"root"``、空字符串与 ``None`` 都表示根目录。"""
    if folder_id is None:
        return None
    value = folder_id.strip()
    if not value or value == ROOT_FOLDER_TOKEN:
        return None
    return value


def find_conflicts(
    db: Session, owner_id: int, folder_id: Optional[str], names: Sequence[str]
) -> List[str]:
    parent_id = normalize_parent_id(folder_id)
    existing = file_node_crud.existing_child_names(db, owner_id, parent_id, list(names))
    # 按候选顺序输出并去重，大小写敏感
    return [name for name in dict.fromkeys(names) if name in existing]
