"""维护任务（清理、收藏夹修复、配额对账）的请求/响应模型。"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from app.packages.drive.api.v1.schemas.common import PageData, ResponseEnvelope


class CleanupStats(BaseModel):
    deletedFiles: int
    deletedFolders: int
    deletedRecords: int
    errorCount: int
    duration: float


class CleanupBody(BaseModel):
    retentionDays: Optional[int] = Field(None, ge=0)


class FixDefaultsData(BaseModel):
    usersFixed: int
    foldersDemoted: int


class ReconcileBody(BaseModel):
    userId: Optional[int] = None


class ReconcileItem(BaseModel):
    userId: int
    username: str
    before: int
    after: int


class MaintenanceLogData(BaseModel):
    id: int
    type: str
    details: Dict[str, Any]
    createdAt: Optional[str] = None


CleanupResponse = ResponseEnvelope[CleanupStats]
FixDefaultsResponse = ResponseEnvelope[FixDefaultsData]
ReconcileResponse = ResponseEnvelope[List[ReconcileItem]]
MaintenanceLogsResponse = ResponseEnvelope[PageData[MaintenanceLogData]]
