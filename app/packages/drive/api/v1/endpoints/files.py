"""文件路由：列表、上传、下载、重命名、移动、删除与搜索。

注意：静态路径（search/recent/upload/move/delete/rename）必须声明在 ``/files/{file_id}`` 之前。
"""

from __future__ import annotations

import json
import os
from typing import List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.packages.drive.api.v1.schemas.files import (
    DeleteBody,
    DeleteResponse,
    FileNodeListResponse,
    FileNodeResponse,
    FilesPageResponse,
    MoveBody,
    MoveResponse,
    RenameBody,
    RenameByIdBody,
    UpdateFileBody,
)
from app.packages.drive.core.constants import HTTP_STATUS_CREATED, HTTP_STATUS_NOT_FOUND, RECENT_FILES_LIMIT
from app.packages.drive.core.dependencies import (
    get_blob_store,
    get_current_active_user,
    get_db,
    upload_rate_limit,
)
from app.packages.drive.core.exceptions import AppException
from app.packages.drive.core.responses import create_response
from app.packages.drive.models.user import User
from app.packages.drive.services.blob_store import BlobStore
from app.packages.drive.services.file_service import file_service

router = APIRouter(prefix="/files", tags=["files"])


def _parse_tags(raw: Optional[str]) -> List[str]:
    """表单中的标签既可以是 JSON 数组，也可以是逗号分隔的字符串。"""
    if not raw or not raw.strip():
        return []
    text = raw.strip()
    if text.startswith("["):
        try:
            parsed = json.loads(text)
        except ValueError as exc:
            raise AppException("标签格式不正确") from exc
        if not isinstance(parsed, list):
            raise AppException("标签格式不正确")
        return [str(item) for item in parsed]
    return [part for part in text.split(",")]


def _upload_size(upload: UploadFile) -> int:
    stream = upload.file
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


@router.get("", response_model=FilesPageResponse)
def list_files(
    folder_id: Optional[str] = Query(None, alias="folderId"),
    file_type: Optional[str] = Query(None, alias="type"),
    page: int = Query(1),
    page_size: int = Query(50, alias="pageSize"),
    sort_by: str = Query("name", alias="sortBy"),
    sort_order: str = Query("asc", alias="sortOrder"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> FilesPageResponse:
    """分页列出某个文件夹的直接子节点，文件夹始终排在文件之前。"""
    data = file_service.get_files(
        db,
        current_user.id,
        folder_id=folder_id,
        file_type=file_type,
        page=page,
        page_size=page_size,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return create_response("获取文件列表成功", data)


@router.get("/search", response_model=FileNodeListResponse)
def search_files(
    query: Optional[str] = Query(None),
    mode: str = Query("name"),
    file_type: Optional[str] = Query(None, alias="type"),
    tags: Optional[str] = Query(None),
    include_folders: bool = Query(True, alias="includeFolders"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> FileNodeListResponse:
    results = file_service.search_files(
        db,
        current_user.id,
        query=query,
        mode=mode,
        file_type=file_type,
        tags=_parse_tags(tags),
        include_folders=include_folders,
    )
    return create_response("搜索成功", results)


@router.get("/recent", response_model=FileNodeListResponse)
def recent_files(
    limit: int = Query(RECENT_FILES_LIMIT, ge=1),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> FileNodeListResponse:
    return create_response("获取最近文件成功", file_service.recent_files(db, current_user.id, limit=limit))


@router.post(
    "/upload",
    response_model=FileNodeListResponse,
    status_code=HTTP_STATUS_CREATED,
    dependencies=[Depends(upload_rate_limit)],
)
def upload_files(
    files: List[UploadFile] = File(...),
    folder_id: Optional[str] = Form(None, alias="folderId"),
    tags: Optional[str] = Form(None),
    paths: Optional[List[str]] = Form(None),
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    current_user: User = Depends(get_current_active_user),
) -> FileNodeListResponse:
    """上传一个或多个文件；``paths`` 与 ``files`` 一一对应时按相对路径自动创建子文件夹。"""
    materials = [
        (upload.filename or "", upload.file, _upload_size(upload), upload.content_type)
        for upload in files
    ]
    results = file_service.upload_files(
        db,
        current_user.id,
        files=materials,
        blob_store=blob_store,
        folder_id=folder_id,
        tags=_parse_tags(tags),
        relative_paths=paths,
    )
    return create_response("上传成功", results, HTTP_STATUS_CREATED)


@router.post("/move", response_model=MoveResponse)
def move_files(
    payload: MoveBody,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> MoveResponse:
    moved = file_service.move_files(
        db, current_user.id, file_ids=payload.fileIds, target_folder_id=payload.targetFolderId
    )
    return create_response("移动成功", {"movedCount": moved})


@router.post("/delete", response_model=DeleteResponse)
def delete_files(
    payload: DeleteBody,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> DeleteResponse:
    """软删除所选节点及其后代；没有任何节点被删除时返回 404。"""
    deleted = file_service.delete_files(db, current_user.id, file_ids=payload.fileIds)
    if deleted == 0:
        raise AppException("文件不存在或已删除", HTTP_STATUS_NOT_FOUND)
    return create_response("删除成功", {"deletedCount": deleted})


@router.post("/rename", response_model=FileNodeResponse)
def rename_file(
    payload: RenameBody,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> FileNodeResponse:
    node = file_service.rename_file(
        db, current_user.id, payload.fileId, new_name=payload.newName, tags=payload.tags
    )
    return create_response("重命名成功", node)


@router.get("/{file_id}", response_model=FileNodeResponse)
def get_file(
    file_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> FileNodeResponse:
    return create_response("获取文件成功", file_service.get_file(db, current_user.id, file_id))


@router.get("/{file_id}/content")
def download_file(
    file_id: str,
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    current_user: User = Depends(get_current_active_user),
) -> StreamingResponse:
    """以流的方式返回文件内容。"""
    node, chunks = file_service.open_content(db, current_user.id, file_id, blob_store)
    headers = {
        "Content-Disposition": f"attachment; filename*=UTF-8''{quote(node['name'])}",
    }
    return StreamingResponse(chunks, media_type=node["mimeType"] or "application/octet-stream", headers=headers)


@router.patch("/{file_id}", response_model=FileNodeResponse)
def update_file(
    file_id: str,
    payload: UpdateFileBody,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> FileNodeResponse:
    """修改名称和/或标签，未提供的字段保持不变。"""
    node = file_service.update_file(db, current_user.id, file_id, name=payload.name, tags=payload.tags)
    return create_response("更新成功", node)


@router.post("/{file_id}/rename", response_model=FileNodeResponse)
def rename_file_by_id(
    file_id: str,
    payload: RenameByIdBody,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> FileNodeResponse:
    node = file_service.rename_file(db, current_user.id, file_id, new_name=payload.newName, tags=payload.tags)
    return create_response("重命名成功", node)
