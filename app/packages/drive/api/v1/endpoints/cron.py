"""定时任务入口：由外部调度器携带 ``Bearer <CRON_SECRET>`` 触发。"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.packages.drive.api.v1.schemas.maintenance import CleanupResponse
from app.packages.drive.core.dependencies import get_blob_store, get_db, verify_cron_token
from app.packages.drive.core.responses import create_response
from app.packages.drive.services.blob_store import BlobStore
from app.packages.drive.services.cleanup_service import cleanup_service

router = APIRouter(prefix="/cron", tags=["cron"])


@router.get("/cleanup", response_model=CleanupResponse, dependencies=[Depends(verify_cron_token)])
def run_cleanup(
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
) -> CleanupResponse:
    """按配置的保留期清理回收站。"""
    stats = cleanup_service.run(db, blob_store)
    return create_response("清理完成", stats)
