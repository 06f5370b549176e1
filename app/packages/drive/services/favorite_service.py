"""收藏服务：收藏夹管理、文件收藏/取消收藏，以及默认收藏夹的修复。"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from app.packages.drive.core.constants import (
    DEFAULT_FAVORITE_FOLDER_NAME,
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_FORBIDDEN,
    HTTP_STATUS_NOT_FOUND,
)
from app.packages.drive.core.enums import MaintenanceTypeEnum
from app.packages.drive.core.exceptions import AppException
from app.packages.drive.core.logger import logger
from app.packages.drive.core.timezone import format_datetime
from app.packages.drive.crud.favorite import favorite_crud, favorite_folder_crud
from app.packages.drive.crud.file_node import file_node_crud
from app.packages.drive.crud.maintenance_log import maintenance_log_crud
from app.packages.drive.models.favorite import Favorite, FavoriteFolder
from app.packages.drive.models.file_node import FileNode
from app.packages.drive.services.file_service import serialize_node
from app.packages.drive.utils.path_utils import normalize_name


def serialize_folder(folder: FavoriteFolder, file_count: int = 0) -> Dict[str, Any]:
    return {
        "id": folder.id,
        "name": folder.name,
        "description": folder.description,
        "isDefault": bool(folder.is_default),
        "fileCount": file_count,
        "createdAt": format_datetime(folder.create_time),
        "updatedAt": format_datetime(folder.update_time),
    }


class FavoriteService:
    def _get_folder(self, db: Session, owner_id: int, folder_id: int) -> FavoriteFolder:
        folder = favorite_folder_crud.get_owned(db, owner_id, folder_id)
        if folder is None:
            raise AppException("收藏夹不存在", HTTP_STATUS_NOT_FOUND)
        return folder

    # ----------------------------
    # 收藏夹
    # ----------------------------
    def list_folders(self, db: Session, owner_id: int) -> List[Dict[str, Any]]:
        counts = favorite_crud.count_by_folder(db, owner_id)
        return [
            serialize_folder(folder, counts.get(folder.id, 0))
            for folder in favorite_folder_crud.list_for_owner(db, owner_id)
        ]

    def get_or_create_default_folder(self, db: Session, owner_id: int, *, auto_commit: bool = True) -> FavoriteFolder:
        folder = favorite_folder_crud.get_default(db, owner_id)
        if folder is not None:
            return folder
        return favorite_folder_crud.create(
            db,
            {"owner_id": owner_id, "name": DEFAULT_FAVORITE_FOLDER_NAME, "is_default": True},
            auto_commit=auto_commit,
        )

    def create_folder(
        self,
        db: Session,
        owner_id: int,
        *,
        name: str,
        description: Optional[str] = None,
        is_default: bool = False,
    ) -> Dict[str, Any]:
        folder_name = normalize_name(name, label="收藏夹名称")
        try:
            if is_default:
                favorite_folder_crud.demote_defaults(db, owner_id)
            folder = favorite_folder_crud.create(
                db,
                {
                    "owner_id": owner_id,
                    "name": folder_name,
                    "description": description,
                    "is_default": is_default,
                },
                auto_commit=False,
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        return serialize_folder(folder)

    def update_folder(
        self,
        db: Session,
        owner_id: int,
        folder_id: int,
        *,
        name: Optional[str] = None,
        description: Optional[str] = None,
        is_default: Optional[bool] = None,
    ) -> Dict[str, Any]:
        folder = self._get_folder(db, owner_id, folder_id)
        try:
            if name is not None:
                folder.name = normalize_name(name, label="收藏夹名称")
            if description is not None:
                folder.description = description
            if is_default is True and not folder.is_default:
                favorite_folder_crud.demote_defaults(db, owner_id, keep_id=folder.id)
                folder.is_default = True
            elif is_default is False and folder.is_default:
                raise AppException("默认收藏夹不能直接取消，请将其他收藏夹设为默认", HTTP_STATUS_BAD_REQUEST)
            favorite_folder_crud.save(db, folder, auto_commit=False)
            db.commit()
        except Exception:
            db.rollback()
            raise
        counts = favorite_crud.count_by_folder(db, owner_id)
        return serialize_folder(folder, counts.get(folder.id, 0))

    def delete_folder(self, db: Session, owner_id: int, folder_id: int) -> None:
        """删除收藏夹：默认收藏夹禁止删除，其中的收藏迁入默认收藏夹，重复项丢弃。"""
        folder = self._get_folder(db, owner_id, folder_id)
        if folder.is_default:
            raise AppException("不能删除默认收藏夹", HTTP_STATUS_FORBIDDEN)
        try:
            default_folder = self.get_or_create_default_folder(db, owner_id, auto_commit=False)
            already = favorite_crud.file_ids_in_folder(db, default_folder.id)
            for favorite in favorite_crud.list_in_folder(db, folder.id):
                if favorite.file_id in already:
                    db.delete(favorite)
                    continue
                favorite.folder_id = default_folder.id
                already.add(favorite.file_id)
            db.flush()
            db.delete(folder)
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info("Favorite folder %s deleted for owner %s", folder_id, owner_id)

    # ----------------------------
    # 收藏记录
    # ----------------------------
    def add_to_folder(
        self, db: Session, owner_id: int, *, file_ids: Sequence[str], folder_id: Optional[int] = None
    ) -> int:
        ids = [fid for fid in dict.fromkeys(file_ids or []) if fid]
        if not ids:
            raise AppException("请提供有效的文件ID列表", HTTP_STATUS_BAD_REQUEST)
        try:
            if folder_id is None:
                folder = self.get_or_create_default_folder(db, owner_id, auto_commit=False)
            else:
                folder = self._get_folder(db, owner_id, folder_id)
            already = favorite_crud.file_ids_in_folder(db, folder.id)
            added = 0
            for node in file_node_crud.get_owned_many(db, owner_id, ids):
                if node.id in already:
                    continue
                db.add(Favorite(owner_id=owner_id, file_id=node.id, folder_id=folder.id))
                already.add(node.id)
                added += 1
            db.commit()
        except Exception:
            db.rollback()
            raise
        return added

    def remove_from_folder(
        self, db: Session, owner_id: int, *, file_ids: Sequence[str], folder_id: Optional[int] = None
    ) -> int:
        """从指定收藏夹移除；未指定收藏夹时从全部收藏夹移除。"""
        ids = [fid for fid in dict.fromkeys(file_ids or []) if fid]
        if not ids:
            raise AppException("请提供有效的文件ID列表", HTTP_STATUS_BAD_REQUEST)
        if folder_id is not None:
            self._get_folder(db, owner_id, folder_id)
        try:
            removed = favorite_crud.delete_for_files(db, ids, folder_id=folder_id, owner_id=owner_id)
            db.commit()
        except Exception:
            db.rollback()
            raise
        return removed

    def list_files(
        self,
        db: Session,
        owner_id: int,
        *,
        folder_id: Optional[int] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Dict[str, Any]:
        if folder_id is not None:
            self._get_folder(db, owner_id, folder_id)
        query = (
            db.query(Favorite, FileNode, FavoriteFolder)
            .join(FileNode, FileNode.id == Favorite.file_id)
            .join(FavoriteFolder, FavoriteFolder.id == Favorite.folder_id)
            .filter(Favorite.owner_id == owner_id, FileNode.is_deleted.is_(False))
        )
        if folder_id is not None:
            query = query.filter(Favorite.folder_id == folder_id)
        total = query.count()
        rows = (
            query.order_by(Favorite.create_time.desc(), Favorite.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        items = []
        for favorite, node, folder in rows:
            item = serialize_node(node)
            item.update(
                {
                    "favoriteId": favorite.id,
                    "favoriteFolderId": folder.id,
                    "favoriteFolderName": folder.name,
                }
            )
            items.append(item)
        return {"items": items, "total": total, "page": page, "pageSize": page_size}

    # ----------------------------
    # 维护
    # ----------------------------
    def fix_default_folders(self, db: Session) -> Dict[str, int]:
        """修复多默认收藏夹：每个用户保留最早创建的一个，其余取消默认。"""
        users_fixed = 0
        folders_demoted = 0
        try:
            for owner_id in favorite_folder_crud.owners_with_multiple_defaults(db):
                defaults = favorite_folder_crud.defaults_of(db, owner_id)
                for extra in defaults[1:]:
                    extra.is_default = False
                    favorite_folder_crud.save(db, extra, auto_commit=False)
                    folders_demoted += 1
                users_fixed += 1
            result = {"usersFixed": users_fixed, "foldersDemoted": folders_demoted}
            maintenance_log_crud.append(db, MaintenanceTypeEnum.FAVORITE_FIX.value, result)
            db.commit()
        except Exception:
            db.rollback()
            raise
        if users_fixed:
            logger.info("Fixed default favorite folders for %s users (%s demoted)", users_fixed, folders_demoted)
        return result


favorite_service = FavoriteService()
