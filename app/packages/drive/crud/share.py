"""分享链接 CRUD。"""

from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from app.packages.drive.crud.base import CRUDBase
from app.packages.drive.models.file_node import FileNode
from app.packages.drive.models.share import ShareItem, ShareLink


class CRUDShareLink(CRUDBase[ShareLink]):
    def get_by_code(self, db: Session, share_code: str) -> Optional[ShareLink]:
        return self.query(db).filter(ShareLink.share_code == share_code).first()

    def code_exists(self, db: Session, share_code: str) -> bool:
        return self.get_by_code(db, share_code) is not None

    def list_for_owner(self, db: Session, owner_id: int) -> List[ShareLink]:
        return (
            self.query(db)
            .filter(ShareLink.owner_id == owner_id)
            .order_by(ShareLink.create_time.desc(), ShareLink.id.desc())
            .all()
        )

    def delete_owned(self, db: Session, owner_id: int, share_ids: Iterable[int]) -> int:
        ids = list(dict.fromkeys(share_ids))
        if not ids:
            return 0
        owned = [
            row[0]
            for row in self.query(db)
            .filter(ShareLink.owner_id == owner_id, ShareLink.id.in_(ids))
            .with_entities(ShareLink.id)
            .all()
        ]
        if not owned:
            return 0
        db.query(ShareItem).filter(ShareItem.share_id.in_(owned)).delete(synchronize_session=False)
        return (
            self.query(db)
            .filter(ShareLink.id.in_(owned))
            .delete(synchronize_session=False)
        )

    def increment_access(self, db: Session, share: ShareLink) -> None:
        """原子地累加访问次数（不提交）。"""
        db.query(ShareLink).filter(ShareLink.id == share.id).update(
            {ShareLink.access_count: ShareLink.access_count + 1},
            synchronize_session=False,
        )
        db.expire(share, ["access_count"])


class CRUDShareItem(CRUDBase[ShareItem]):
    def shared_nodes(self, db: Session, share_id: int) -> List[FileNode]:
        """分享中仍处于活动状态的节点，文件夹在前。"""
        return (
            db.query(FileNode)
            .join(ShareItem, ShareItem.file_id == FileNode.id)
            .filter(ShareItem.share_id == share_id, FileNode.is_deleted.is_(False))
            .order_by(FileNode.is_folder.desc(), FileNode.name.asc())
            .all()
        )

    def nodes_by_share(self, db: Session, share_ids: Iterable[int]) -> Dict[int, List[FileNode]]:
        ids = list(share_ids)
        result: Dict[int, List[FileNode]] = {share_id: [] for share_id in ids}
        if not ids:
            return result
        rows = (
            db.query(ShareItem.share_id, FileNode)
            .join(FileNode, FileNode.id == ShareItem.file_id)
            .filter(ShareItem.share_id.in_(ids), FileNode.is_deleted.is_(False))
            .order_by(FileNode.is_folder.desc(), FileNode.name.asc())
            .all()
        )
        for share_id, node in rows:
            result[share_id].append(node)
        return result

    def delete_for_files(self, db: Session, file_ids: Iterable[str]) -> int:
        ids = list(dict.fromkeys(file_ids))
        if not ids:
            return 0
        return self.query(db).filter(ShareItem.file_id.in_(ids)).delete(synchronize_session=False)


share_link_crud = CRUDShareLink(ShareLink)
share_item_crud = CRUDShareItem(ShareItem)
