"""收藏路由：收藏夹的增删改查以及文件的收藏/取消收藏。"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.packages.drive.api.v1.schemas.common import ResponseEnvelope
from app.packages.drive.api.v1.schemas.favorites import (
    AddedResponse,
    FavoriteFilesBody,
    FavoriteFilesResponse,
    FavoriteFolderCreateBody,
    FavoriteFolderListResponse,
    FavoriteFolderResponse,
    FavoriteFolderUpdateBody,
    RemovedResponse,
)
from app.packages.drive.core.constants import HTTP_STATUS_CREATED
from app.packages.drive.core.dependencies import get_current_active_user, get_db
from app.packages.drive.core.responses import create_response
from app.packages.drive.models.user import User
from app.packages.drive.services.favorite_service import favorite_service, serialize_folder

router = APIRouter(prefix="/storage/favorites", tags=["favorites"])


@router.get("/folders", response_model=FavoriteFolderListResponse)
def list_folders(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> FavoriteFolderListResponse:
    """列出收藏夹（默认收藏夹在前），首次访问时自动创建默认收藏夹。"""
    favorite_service.get_or_create_default_folder(db, current_user.id)
    return create_response("获取收藏夹成功", favorite_service.list_folders(db, current_user.id))


@router.post("/folders", response_model=FavoriteFolderResponse, status_code=HTTP_STATUS_CREATED)
def create_folder(
    payload: FavoriteFolderCreateBody,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> FavoriteFolderResponse:
    folder = favorite_service.create_folder(
        db,
        current_user.id,
        name=payload.name,
        description=payload.description,
        is_default=payload.isDefault,
    )
    return create_response("创建收藏夹成功", folder, HTTP_STATUS_CREATED)


@router.get("/folders/default", response_model=FavoriteFolderResponse)
def get_default_folder(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> FavoriteFolderResponse:
    folder = favorite_service.get_or_create_default_folder(db, current_user.id)
    return create_response("获取默认收藏夹成功", serialize_folder(folder))


@router.put("/folders/{folder_id}", response_model=FavoriteFolderResponse)
def update_folder(
    folder_id: int,
    payload: FavoriteFolderUpdateBody,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> FavoriteFolderResponse:
    folder = favorite_service.update_folder(
        db,
        current_user.id,
        folder_id,
        name=payload.name,
        description=payload.description,
        is_default=payload.isDefault,
    )
    return create_response("更新收藏夹成功", folder)


@router.delete("/folders/{folder_id}", response_model=ResponseEnvelope[None])
def delete_folder(
    folder_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> ResponseEnvelope[None]:
    favorite_service.delete_folder(db, current_user.id, folder_id)
    return create_response("删除收藏夹成功")


@router.post("/add", response_model=AddedResponse)
def add_favorites(
    payload: FavoriteFilesBody,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> AddedResponse:
    """未指定收藏夹时加入默认收藏夹，已收藏的文件会被跳过。"""
    added = favorite_service.add_to_folder(
        db, current_user.id, file_ids=payload.fileIds, folder_id=payload.folderId
    )
    return create_response("收藏成功", {"addedCount": added})


@router.post("/remove", response_model=RemovedResponse)
def remove_favorites(
    payload: FavoriteFilesBody,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> RemovedResponse:
    removed = favorite_service.remove_from_folder(
        db, current_user.id, file_ids=payload.fileIds, folder_id=payload.folderId
    )
    return create_response("取消收藏成功", {"removedCount": removed})


@router.get("", response_model=FavoriteFilesResponse)
def list_favorites(
    folder_id: Optional[int] = Query(None, alias="folderId"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200, alias="pageSize"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> FavoriteFilesResponse:
    data = favorite_service.list_files(
        db, current_user.id, folder_id=folder_id, page=page, page_size=page_size
    )
    return create_response("获取收藏列表成功", data)
