"""存储空间路由：配额、统计、同名检查与标签管理。"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.packages.drive.api.v1.schemas.storage import (
    NameConflictBody,
    NameConflictResponse,
    QuotaResponse,
    StatsResponse,
    TagBody,
    TagChangeResponse,
    TagListResponse,
)
from app.packages.drive.core.dependencies import get_current_active_user, get_db
from app.packages.drive.core.exceptions import AppException
from app.packages.drive.core.responses import create_response
from app.packages.drive.models.user import User
from app.packages.drive.services.file_service import file_service
from app.packages.drive.services.name_conflicts import find_conflicts
from app.packages.drive.services.quota_service import quota_service

router = APIRouter(prefix="/storage", tags=["storage"])


@router.get("/quota", response_model=QuotaResponse)
def get_quota(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> QuotaResponse:
    return create_response("获取存储配额成功", quota_service.get_quota(db, current_user))


@router.get("/stats", response_model=StatsResponse)
def get_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> StatsResponse:
    stats = quota_service.get_storage_stats(db, current_user.id)
    return create_response(
        "获取存储统计成功",
        {
            "totalFiles": stats["fileCount"],
            "totalFolders": stats["folderCount"],
            "totalSize": stats["usedSize"],
        },
    )


@router.post("/files/check-name-conflicts", response_model=NameConflictResponse)
def check_name_conflicts(
    payload: NameConflictBody,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> NameConflictResponse:
    """上传前提示：返回目标文件夹下已存在的候选名称。"""
    names = [name for name in payload.fileNames if name]
    if not names:
        raise AppException("请提供要检查的文件名")
    conflicts = find_conflicts(db, current_user.id, payload.folderId, names)
    return create_response("检查完成", {"conflicts": conflicts})


@router.get("/tags", response_model=TagListResponse)
def list_tags(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> TagListResponse:
    return create_response("获取标签成功", file_service.list_tags(db, current_user.id))


@router.post("/tags", response_model=TagChangeResponse)
def add_tag(
    payload: TagBody,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> TagChangeResponse:
    updated = file_service.add_tag(db, current_user.id, tag=payload.tag, file_ids=payload.fileIds)
    return create_response("添加标签成功", {"updatedCount": updated})


@router.post("/tags/delete", response_model=TagChangeResponse)
def remove_tag(
    payload: TagBody,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> TagChangeResponse:
    updated = file_service.remove_tag(db, current_user.id, tag=payload.tag, file_ids=payload.fileIds)
    return create_response("移除标签成功", {"updatedCount": updated})
