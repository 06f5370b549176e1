"""FileNode CRUD：文件树相关的查询都按 owner 隔离，并默认隐藏软删除节点。"""

from __future__ import annotations

from datetime import datetime
from typing import Collection, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import case, func, select
from sqlalchemy.orm import Query, Session, aliased

from app.packages.drive.crud.base import CRUDBase
from app.packages.drive.models.file_node import FileNode


class CRUDFileNode(CRUDBase[FileNode]):
    def owned(self, db: Session, owner_id: int, *, include_deleted: bool = False) -> Query:
        return self.query(db, include_deleted=include_deleted).filter(FileNode.owner_id == owner_id)

    def get_any(self, db: Session, node_id: str) -> Optional[FileNode]:
        """按 ID 获取节点（含软删除、不区分归属），用于区分 404 与 403。"""
        return self.query(db, include_deleted=True).filter(FileNode.id == node_id).first()

    def get_owned(self, db: Session, owner_id: int, node_id: str) -> Optional[FileNode]:
        return self.owned(db, owner_id).filter(FileNode.id == node_id).first()

    def get_owned_many(self, db: Session, owner_id: int, node_ids: Iterable[str]) -> List[FileNode]:
        ids = list(dict.fromkeys(node_ids))
        if not ids:
            return []
        return self.owned(db, owner_id).filter(FileNode.id.in_(ids)).all()

    def children_query(self, db: Session, owner_id: int, parent_id: Optional[str]) -> Query:
        query = self.owned(db, owner_id)
        if parent_id is None:
            return query.filter(FileNode.parent_id.is_(None))
        return query.filter(FileNode.parent_id == parent_id)

    def list_children(self, db: Session, owner_id: int, parent_id: Optional[str]) -> List[FileNode]:
        """直接子节点：文件夹在前，再按名称排序。"""
        return (
            self.children_query(db, owner_id, parent_id)
            .order_by(FileNode.is_folder.desc(), FileNode.name.asc())
            .all()
        )

    def find_child_by_name(
        self,
        db: Session,
        owner_id: int,
        parent_id: Optional[str],
        name: str,
        *,
        exclude_id: Optional[str] = None,
    ) -> Optional[FileNode]:
        query = self.children_query(db, owner_id, parent_id).filter(FileNode.name == name)
        if exclude_id is not None:
            query = query.filter(FileNode.id != exclude_id)
        return query.first()

    def existing_child_names(
        self, db: Session, owner_id: int, parent_id: Optional[str], names: Sequence[str]
    ) -> set[str]:
        if not names:
            return set()
        rows = (
            self.children_query(db, owner_id, parent_id)
            .filter(FileNode.name.in_(list(set(names))))
            .with_entities(FileNode.name)
            .all()
        )
        return {row[0] for row in rows}

    def descendants(self, db: Session, owner_id: int, root_ids: Iterable[str]) -> List[FileNode]:
        """按 parent_id 逐层展开，返回所有活动后代（不含根节点本身）。"""
        result: List[FileNode] = []
        seen: set[str] = set(root_ids)
        frontier = list(seen)
        while frontier:
            children = self.owned(db, owner_id).filter(FileNode.parent_id.in_(frontier)).all()
            frontier = []
            for child in children:
                if child.id in seen:
                    continue
                seen.add(child.id)
                result.append(child)
                if child.is_folder:
                    frontier.append(child.id)
        return result

    def stats(self, db: Session, owner_id: int) -> Tuple[int, int, int]:
        """返回 (文件数, 文件夹数, 文件总字节数)，仅统计活动节点。"""
        row = (
            self.owned(db, owner_id)
            .with_entities(
                func.coalesce(func.sum(case((FileNode.is_folder.is_(False), 1), else_=0)), 0),
                func.coalesce(func.sum(case((FileNode.is_folder.is_(True), 1), else_=0)), 0),
                func.coalesce(func.sum(case((FileNode.is_folder.is_(False), FileNode.size), else_=0)), 0),
            )
            .one()
        )
        return int(row[0]), int(row[1]), int(row[2])

    def list_tag_values(self, db: Session, owner_id: int) -> List[List[str]]:
        rows = self.owned(db, owner_id).with_entities(FileNode.tags).all()
        return [row[0] or [] for row in rows]

    # ----------------------- 清理相关 -----------------------
    def expired_query(self, db: Session, retention_date: datetime) -> Query:
        """软删除且删除时间早于保留期截止点的节点（跨用户）。"""
        return self.query(db, include_deleted=True).filter(
            FileNode.is_deleted.is_(True),
            FileNode.deleted_at.is_not(None),
            FileNode.deleted_at < retention_date,
        )

    def expired_files(self, db: Session, retention_date: datetime, limit: int) -> List[FileNode]:
        return (
            self.expired_query(db, retention_date)
            .filter(FileNode.is_folder.is_(False))
            .order_by(FileNode.deleted_at.asc(), FileNode.id.asc())
            .limit(limit)
            .all()
        )

    def expired_empty_folders(
        self,
        db: Session,
        retention_date: datetime,
        limit: int,
        *,
        purged_ids: Collection[str] = (),
    ) -> List[FileNode]:
        """待清理文件夹中，除 ``purged_ids`` 外已没有任何子节点（含软删除）的那些。

        调用方把每批结果并入 ``purged_ids`` 后再次查询，即可自底向上逐层清理。
        """
        child = aliased(FileNode)
        excluded = list(purged_ids)
        live_children = select(child.id).where(child.parent_id == FileNode.id)
        if excluded:
            live_children = live_children.where(child.id.not_in(excluded))
        query = self.expired_query(db, retention_date).filter(
            FileNode.is_folder.is_(True),
            ~live_children.correlate(FileNode).exists(),
        )
        if excluded:
            query = query.filter(FileNode.id.not_in(excluded))
        return query.order_by(FileNode.deleted_at.asc(), FileNode.id.asc()).limit(limit).all()

    def purge_rows(self, db: Session, node_ids: Sequence[str], retention_date: datetime) -> int:
        """批量物理删除：同时以 ID 与过期条件限定，避免误删新近删除的节点。"""
        if not node_ids:
            return 0
        return (
            self.expired_query(db, retention_date)
            .filter(FileNode.id.in_(list(node_ids)))
            .delete(synchronize_session=False)
        )


file_node_crud = CRUDFileNode(FileNode)
