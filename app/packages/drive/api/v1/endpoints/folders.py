"""文件夹路由：创建、面包屑路径与目录内容。"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.packages.drive.api.v1.schemas.files import (
    FileNodeResponse,
    FolderContentsResponse,
    FolderCreateBody,
    FolderPathResponse,
)
from app.packages.drive.core.constants import HTTP_STATUS_CREATED
from app.packages.drive.core.dependencies import get_current_active_user, get_db
from app.packages.drive.core.responses import create_response
from app.packages.drive.models.user import User
from app.packages.drive.services.file_service import file_service

router = APIRouter(prefix="/folders", tags=["folders"])


@router.post("", response_model=FileNodeResponse, status_code=HTTP_STATUS_CREATED)
def create_folder(
    payload: FolderCreateBody,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> FileNodeResponse:
    folder = file_service.create_folder(
        db,
        current_user.id,
        name=payload.name,
        parent_id=payload.parentId,
        tags=payload.tags,
    )
    return create_response("创建文件夹成功", folder, HTTP_STATUS_CREATED)


@router.get("/{folder_id}/path", response_model=FolderPathResponse)
def get_folder_path(
    folder_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> FolderPathResponse:
    """返回从根到该文件夹的祖先链（含自身）。"""
    return create_response("获取路径成功", file_service.get_folder_path(db, current_user.id, folder_id))


@router.get("/{folder_id}/contents", response_model=FolderContentsResponse)
def get_folder_contents(
    folder_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> FolderContentsResponse:
    """``folder_id`` 为 ``root`` 时返回根目录内容。"""
    return create_response("获取目录内容成功", file_service.get_folder_contents(db, current_user.id, folder_id))
