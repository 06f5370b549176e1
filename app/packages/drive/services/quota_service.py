"""配额服务：维护用户的已用空间，并提供配额查询、容量校验与对账。"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import case
from sqlalchemy.orm import Session

from app.packages.drive.core.config import get_settings
from app.packages.drive.core.constants import HTTP_STATUS_BAD_REQUEST, HTTP_STATUS_NOT_FOUND
from app.packages.drive.core.enums import MaintenanceTypeEnum
from app.packages.drive.core.exceptions import AppException
from app.packages.drive.core.logger import logger
from app.packages.drive.crud.file_node import file_node_crud
from app.packages.drive.crud.maintenance_log import maintenance_log_crud
from app.packages.drive.crud.users import user_crud
from app.packages.drive.models.user import User


class QuotaService:
    def effective_limit(self, user: User) -> int:
        if user.storage_limit is None:
            return get_settings().default_storage_limit
        return int(user.storage_limit)

    def get_storage_stats(self, db: Session, owner_id: int) -> Dict[str, int]:
        """权威统计：直接汇总活动节点。"""
        file_count, folder_count, used_size = file_node_crud.stats(db, owner_id)
        return {"fileCount": file_count, "folderCount": folder_count, "usedSize": used_size}

    def get_quota(self, db: Session, user: User) -> Dict[str, Any]:
        """返回 ``{total, used, available, percentage}``。

        计数器为 0 时可能是历史数据未初始化，按实际汇总重算一次并回写。
        """
        total = self.effective_limit(user)
        used = int(user.storage_used or 0)
        if used == 0:
            used = self.get_storage_stats(db, user.id)["usedSize"]
            if used:
                user.storage_used = used
                user_crud.save(db, user)
                logger.info("Recomputed storage usage for user %s: %s bytes", user.id, used)

        available = max(0, total - used)
        if total > 0:
            percentage = round(min(100.0, used / total * 100), 2)
        else:
            percentage = 100.0
        return {"total": total, "used": used, "available": available, "percentage": percentage}

    def ensure_capacity(self, user: User, size: int) -> None:
        limit = self.effective_limit(user)
        used = int(user.storage_used or 0)
        if used + size > limit:
            raise AppException(
                "存储空间不足",
                HTTP_STATUS_BAD_REQUEST,
                {"used": used, "limit": limit, "required": size, "available": max(0, limit - used)},
            )

    def adjust_usage(self, db: Session, user_id: int, delta: int) -> None:
        """在调用方事务内原子地增减已用空间，结果不小于 0（不提交）。"""
        if not delta:
            return
        new_value = User.storage_used + delta
        db.query(User).filter(User.id == user_id).update(
            {User.storage_used: case((new_value < 0, 0), else_=new_value)},
            synchronize_session=False,
        )
        cached = db.get(User, user_id)
        if cached is not None:
            db.expire(cached, ["storage_used"])

    def reconcile_usage(self, db: Session, user_id: Optional[int] = None) -> List[Dict[str, Any]]:
        """按实际文件大小重算并回写已用空间，返回每个用户的前后对比。"""
        if user_id is not None:
            user = user_crud.get(db, user_id)
            if user is None:
                raise AppException("用户不存在", HTTP_STATUS_NOT_FOUND)
            users = [user]
        else:
            users = user_crud.list_active(db)

        results: List[Dict[str, Any]] = []
        try:
            for user in users:
                before = int(user.storage_used or 0)
                after = self.get_storage_stats(db, user.id)["usedSize"]
                if before != after:
                    user.storage_used = after
                    user_crud.save(db, user, auto_commit=False)
                    logger.info("Reconciled storage usage for user %s: %s -> %s", user.id, before, after)
                results.append({"userId": user.id, "username": user.username, "before": before, "after": after})
            maintenance_log_crud.append(
                db,
                MaintenanceTypeEnum.STORAGE_RECONCILE.value,
                {
                    "users": len(results),
                    "changed": sum(1 for item in results if item["before"] != item["after"]),
                },
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        return results


quota_service = QuotaService()
