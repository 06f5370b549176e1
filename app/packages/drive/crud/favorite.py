"""收藏夹/收藏记录 CRUD。"""

from __future__ import annotations

from typing import Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.packages.drive.crud.base import CRUDBase
from app.packages.drive.models.favorite import Favorite, FavoriteFolder


class CRUDFavoriteFolder(CRUDBase[FavoriteFolder]):
    def list_for_owner(self, db: Session, owner_id: int) -> List[FavoriteFolder]:
        """默认收藏夹在前，其余按创建时间升序。"""
        return (
            self.query(db)
            .filter(FavoriteFolder.owner_id == owner_id)
            .order_by(FavoriteFolder.is_default.desc(), FavoriteFolder.create_time.asc(), FavoriteFolder.id.asc())
            .all()
        )

    def get_owned(self, db: Session, owner_id: int, folder_id: int) -> Optional[FavoriteFolder]:
        return (
            self.query(db)
            .filter(FavoriteFolder.owner_id == owner_id, FavoriteFolder.id == folder_id)
            .first()
        )

    def get_default(self, db: Session, owner_id: int) -> Optional[FavoriteFolder]:
        return (
            self.query(db)
            .filter(FavoriteFolder.owner_id == owner_id, FavoriteFolder.is_default.is_(True))
            .order_by(FavoriteFolder.create_time.asc(), FavoriteFolder.id.asc())
            .first()
        )

    def demote_defaults(self, db: Session, owner_id: int, *, keep_id: Optional[int] = None) -> int:
        query = self.query(db).filter(
            FavoriteFolder.owner_id == owner_id, FavoriteFolder.is_default.is_(True)
        )
        if keep_id is not None:
            query = query.filter(FavoriteFolder.id != keep_id)
        return query.update({FavoriteFolder.is_default: False}, synchronize_session="fetch")

    def owners_with_multiple_defaults(self, db: Session) -> List[int]:
        rows = (
            self.query(db)
            .filter(FavoriteFolder.is_default.is_(True))
            .with_entities(FavoriteFolder.owner_id)
            .group_by(FavoriteFolder.owner_id)
            .having(func.count(FavoriteFolder.id) > 1)
            .all()
        )
        return [row[0] for row in rows]

    def defaults_of(self, db: Session, owner_id: int) -> List[FavoriteFolder]:
        return (
            self.query(db)
            .filter(FavoriteFolder.owner_id == owner_id, FavoriteFolder.is_default.is_(True))
            .order_by(FavoriteFolder.create_time.asc(), FavoriteFolder.id.asc())
            .all()
        )


class CRUDFavorite(CRUDBase[Favorite]):
    def count_by_folder(self, db: Session, owner_id: int) -> dict[int, int]:
        rows = (
            self.query(db)
            .filter(Favorite.owner_id == owner_id)
            .with_entities(Favorite.folder_id, func.count(Favorite.id))
            .group_by(Favorite.folder_id)
            .all()
        )
        return {folder_id: int(count) for folder_id, count in rows}

    def file_ids_in_folder(self, db: Session, folder_id: int) -> set[str]:
        rows = self.query(db).filter(Favorite.folder_id == folder_id).with_entities(Favorite.file_id).all()
        return {row[0] for row in rows}

    def list_in_folder(self, db: Session, folder_id: int) -> List[Favorite]:
        return self.query(db).filter(Favorite.folder_id == folder_id).all()

    def delete_for_files(self, db: Session, file_ids: Iterable[str], *, folder_id: Optional[int] = None, owner_id: Optional[int] = None) -> int:
        ids = list(dict.fromkeys(file_ids))
        if not ids:
            return 0
        query = self.query(db).filter(Favorite.file_id.in_(ids))
        if folder_id is not None:
            query = query.filter(Favorite.folder_id == folder_id)
        if owner_id is not None:
            query = query.filter(Favorite.owner_id == owner_id)
        return query.delete(synchronize_session=False)


favorite_folder_crud = CRUDFavoriteFolder(FavoriteFolder)
favorite_crud = CRUDFavorite(Favorite)
