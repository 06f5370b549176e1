"""维护日志 CRUD：只追加与分页查询。"""

from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.packages.drive.crud.base import CRUDBase
from app.packages.drive.models.maintenance_log import MaintenanceLog


class CRUDMaintenanceLog(CRUDBase[MaintenanceLog]):
    def append(self, db: Session, log_type: str, details: Dict[str, Any]) -> MaintenanceLog:
        """写入一条日志但不提交，随调用方事务一起落库。"""
        return self.create(db, {"type": log_type, "details": details}, auto_commit=False)

    def list_paginated(
        self, db: Session, *, log_type: Optional[str] = None, skip: int = 0, limit: int = 20
    ) -> Tuple[List[MaintenanceLog], int]:
        query = self.query(db)
        if log_type:
            query = query.filter(MaintenanceLog.type == log_type)
        total = query.count()
        items = (
            query.order_by(MaintenanceLog.create_time.desc(), MaintenanceLog.id.desc())
            .offset(max(skip, 0))
            .limit(max(limit, 1))
            .all()
        )
        return items, total


maintenance_log_crud = CRUDMaintenanceLog(MaintenanceLog)
