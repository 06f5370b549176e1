"""回收站清理：物理删除超过保留期的软删除节点。

两阶段清理：
1. 逐个删除过期文件的数据块；只有确认数据块已不存在（本次删除或原本缺失）的记录才进入物理删除集合；
   删除失败的记录累计 ``purge_attempts`` 并保留到下次运行，超过上限后写入死信日志再删除记录；
2. 过期文件夹只有在不再被任何（本批次之外的）子记录引用时才会被删除；
最终以 "ID + 过期条件" 一次性批量删除记录，单批数量受配置上限约束。
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.packages.drive.core.config import get_settings
from app.packages.drive.core.constants import HTTP_STATUS_BAD_REQUEST
from app.packages.drive.core.enums import MaintenanceTypeEnum
from app.packages.drive.core.exceptions import AppException
from app.packages.drive.core.logger import logger
from app.packages.drive.core.timezone import format_datetime, utcnow
from app.packages.drive.crud.file_node import file_node_crud
from app.packages.drive.crud.maintenance_log import maintenance_log_crud
from app.packages.drive.models.file_node import FileNode
from app.packages.drive.services.blob_store import BlobStore

_ERROR_TEXT_LIMIT = 1000


class CleanupService:
    def run(
        self,
        db: Session,
        blob_store: BlobStore,
        *,
        retention_days: Optional[int] = None,
        max_files: Optional[int] = None,
        max_folders: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        settings = get_settings()
        retention_days = settings.retention_days if retention_days is None else retention_days
        if retention_days < 0:
            raise AppException("retentionDays 不能小于 0", HTTP_STATUS_BAD_REQUEST)
        max_files = settings.max_files_per_run if max_files is None else max_files
        max_folders = settings.max_folders_per_run if max_folders is None else max_folders
        max_attempts = max(settings.purge_max_attempts, 1)

        started = time.monotonic()
        retention_date = (now or utcnow()) - timedelta(days=retention_days)
        if settings.maintenance_verbose:
            logger.info(
                "Cleanup started: retentionDays=%s retentionDate=%s maxFiles=%s maxFolders=%s",
                retention_days, retention_date.isoformat(), max_files, max_folders,
            )

        try:
            confirmed: List[str] = []
            dead_letters: List[Dict[str, Any]] = []
            deleted_files = 0
            error_count = 0

            for node in file_node_crud.expired_files(db, retention_date, max_files):
                try:
                    if node.storage_key and blob_store.delete(node.storage_key):
                        deleted_files += 1
                        if settings.maintenance_verbose:
                            logger.info("Blob deleted: %s", node.storage_key)
                    confirmed.append(node.id)
                except Exception as exc:
                    error_count += 1
                    self._record_failure(node, exc)
                    if node.purge_attempts >= max_attempts:
                        confirmed.append(node.id)
                        dead_letters.append(self._dead_letter(node))
                        logger.error(
                            "Giving up on blob %s of file %s after %s attempts: %s",
                            node.storage_key, node.id, node.purge_attempts, exc,
                        )
                    else:
                        logger.warning(
                            "Failed to delete blob %s of file %s (attempt %s/%s): %s",
                            node.storage_key, node.id, node.purge_attempts, max_attempts, exc,
                        )

            purge_set = set(confirmed)
            deleted_folders = 0
            # 逐层取出已无剩余子节点的文件夹，子文件夹总是先于父文件夹
            while deleted_folders < max_folders:
                batch = file_node_crud.expired_empty_folders(
                    db, retention_date, max_folders - deleted_folders, purged_ids=purge_set
                )
                if not batch:
                    break
                for folder in batch:
                    purge_set.add(folder.id)
                    confirmed.append(folder.id)
                    deleted_folders += 1

            # 先落库失败计数，再执行批量删除
            db.flush()
            deleted_records = file_node_crud.purge_rows(db, confirmed, retention_date)

            for entry in dead_letters:
                maintenance_log_crud.append(db, MaintenanceTypeEnum.PURGE_DEAD_LETTER.value, entry)

            stats = {
                "deletedFiles": deleted_files,
                "deletedFolders": deleted_folders,
                "deletedRecords": deleted_records,
                "errorCount": error_count,
                "duration": round(time.monotonic() - started, 3),
            }
            if settings.maintenance_save_history:
                maintenance_log_crud.append(
                    db,
                    MaintenanceTypeEnum.CLEANUP.value,
                    {**stats, "retentionDays": retention_days, "deadLettered": len(dead_letters)},
                )
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Cleanup run failed")
            raise

        logger.info(
            "Cleanup finished: files=%s folders=%s records=%s errors=%s duration=%ss",
            stats["deletedFiles"], stats["deletedFolders"], stats["deletedRecords"],
            stats["errorCount"], stats["duration"],
        )
        return stats

    @staticmethod
    def _record_failure(node: FileNode, exc: Exception) -> None:
        node.purge_attempts = int(node.purge_attempts or 0) + 1
        node.purge_error = str(exc)[:_ERROR_TEXT_LIMIT]

    @staticmethod
    def _dead_letter(node: FileNode) -> Dict[str, Any]:
        return {
            "fileId": node.id,
            "ownerId": node.owner_id,
            "storageKey": node.storage_key,
            "path": node.path,
            "attempts": node.purge_attempts,
            "error": node.purge_error,
        }

    def list_logs(
        self, db: Session, *, log_type: Optional[str] = None, page: int = 1, page_size: int = 20
    ) -> Dict[str, Any]:
        items, total = maintenance_log_crud.list_paginated(
            db, log_type=log_type, skip=(page - 1) * page_size, limit=page_size
        )
        return {
            "items": [
                {
                    "id": item.id,
                    "type": item.type,
                    "details": item.details or {},
                    "createdAt": format_datetime(item.create_time),
                }
                for item in items
            ],
            "total": total,
            "page": page,
            "pageSize": page_size,
        }


cleanup_service = CleanupService()
