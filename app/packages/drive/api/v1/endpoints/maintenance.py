"""管理员维护路由：手动清理、默认收藏夹修复、配额对账与维护日志。"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from app.packages.drive.api.v1.schemas.maintenance import (
    CleanupBody,
    CleanupResponse,
    FixDefaultsResponse,
    MaintenanceLogsResponse,
    ReconcileBody,
    ReconcileResponse,
)
from app.packages.drive.core.dependencies import get_blob_store, get_current_admin, get_db
from app.packages.drive.core.logger import logger
from app.packages.drive.core.responses import create_response
from app.packages.drive.models.user import User
from app.packages.drive.services.blob_store import BlobStore
from app.packages.drive.services.cleanup_service import cleanup_service
from app.packages.drive.services.favorite_service import favorite_service
from app.packages.drive.services.quota_service import quota_service

router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@router.post("/cleanup", response_model=CleanupResponse)
def run_cleanup(
    payload: Optional[CleanupBody] = Body(None),
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    current_user: User = Depends(get_current_admin),
) -> CleanupResponse:
    """手动触发回收站清理，``retentionDays=0`` 表示清理全部软删除节点。"""
    retention_days = payload.retentionDays if payload else None
    logger.info("Manual cleanup requested by %s (retentionDays=%s)", current_user.username, retention_days)
    stats = cleanup_service.run(db, blob_store, retention_days=retention_days)
    return create_response("清理完成", stats)


@router.post("/favorites/fix-defaults", response_model=FixDefaultsResponse)
def fix_default_favorites(
    db: Session = Depends(get_db),
    _: User = Depends(get_current_admin),
) -> FixDefaultsResponse:
    return create_response("修复完成", favorite_service.fix_default_folders(db))


@router.post("/storage/reconcile", response_model=ReconcileResponse)
def reconcile_storage(
    payload: Optional[ReconcileBody] = Body(None),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_admin),
) -> ReconcileResponse:
    user_id = payload.userId if payload else None
    return create_response("对账完成", quota_service.reconcile_usage(db, user_id))


@router.get("/logs", response_model=MaintenanceLogsResponse)
def list_logs(
    log_type: Optional[str] = Query(None, alias="type"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=200, alias="pageSize"),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_admin),
) -> MaintenanceLogsResponse:
    data = cleanup_service.list_logs(db, log_type=log_type, page=page, page_size=page_size)
    return create_response("获取维护日志成功", data)
