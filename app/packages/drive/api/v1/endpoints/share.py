"""分享路由：所有者管理分享链接；访问者凭分享码与提取码浏览、下载与转存。

verify/open/folder/download 为公开接口，无需登录。
"""

from urllib.parse import quote

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.packages.drive.api.v1.schemas.share import (
    ShareCreateBody,
    ShareDeleteBody,
    ShareDeletedResponse,
    SharedDownloadBody,
    SharedFolderBody,
    SharedFolderResponse,
    ShareInfoResponse,
    ShareListResponse,
    ShareOpenBody,
    ShareResponse,
    ShareSaveBody,
    ShareSavedResponse,
    ShareVerifyBody,
)
from app.packages.drive.core.constants import HTTP_STATUS_CREATED
from app.packages.drive.core.dependencies import get_blob_store, get_current_active_user, get_db
from app.packages.drive.core.responses import create_response
from app.packages.drive.models.user import User
from app.packages.drive.services.blob_store import BlobStore
from app.packages.drive.services.share_service import share_service

router = APIRouter(prefix="/storage/share", tags=["share"])


@router.post("", response_model=ShareResponse, status_code=HTTP_STATUS_CREATED)
def create_share(
    payload: ShareCreateBody,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> ShareResponse:
    share = share_service.create_share(
        db,
        current_user.id,
        file_ids=payload.fileIds,
        expiry_days=payload.expiryDays,
        extract_code=payload.extractCode,
        access_limit=payload.accessLimit,
        auto_fill_code=payload.autoFillCode,
    )
    return create_response("创建分享成功", share, HTTP_STATUS_CREATED)


@router.get("", response_model=ShareListResponse)
def list_shares(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> ShareListResponse:
    return create_response("获取分享列表成功", share_service.list_shares(db, current_user.id))


@router.post("/delete", response_model=ShareDeletedResponse)
def delete_shares(
    payload: ShareDeleteBody,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> ShareDeletedResponse:
    deleted = share_service.delete_shares(db, current_user.id, payload.shareIds)
    return create_response("取消分享成功", {"deletedCount": deleted})


@router.post("/verify", response_model=ShareInfoResponse)
def verify_share(payload: ShareVerifyBody, db: Session = Depends(get_db)) -> ShareInfoResponse:
    """校验提取码；成功时计一次访问。"""
    data = share_service.verify_share(db, payload.shareCode, payload.extractCode)
    return create_response("验证成功", data)


@router.post("/open", response_model=ShareInfoResponse)
def open_share(payload: ShareOpenBody, db: Session = Depends(get_db)) -> ShareInfoResponse:
    data = share_service.open_share(db, payload.shareLink, payload.extractCode)
    return create_response("验证成功", data)


@router.post("/folder", response_model=SharedFolderResponse)
def browse_shared_folder(payload: SharedFolderBody, db: Session = Depends(get_db)) -> SharedFolderResponse:
    data = share_service.browse_folder(db, payload.shareCode, payload.extractCode, payload.folderId)
    return create_response("获取文件夹内容成功", data)


@router.post("/download")
def download_shared_file(
    payload: SharedDownloadBody,
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
) -> StreamingResponse:
    node, chunks = share_service.open_shared_content(
        db, payload.shareCode, payload.extractCode, payload.fileId, blob_store
    )
    headers = {
        "Content-Disposition": f"attachment; filename*=UTF-8''{quote(node['name'])}",
    }
    return StreamingResponse(chunks, media_type=node["mimeType"] or "application/octet-stream", headers=headers)


@router.post("/save", response_model=ShareSavedResponse)
def save_to_drive(
    payload: ShareSaveBody,
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    current_user: User = Depends(get_current_active_user),
) -> ShareSavedResponse:
    """把分享内容复制到自己的网盘，同名时自动追加序号。"""
    data = share_service.save_to_drive(
        db,
        current_user.id,
        share_code=payload.shareCode,
        extract_code=payload.extractCode,
        blob_store=blob_store,
        file_ids=payload.fileIds,
        target_folder_id=payload.targetFolderId,
    )
    return create_response("保存成功", data)
