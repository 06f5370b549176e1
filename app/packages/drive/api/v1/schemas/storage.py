"""存储空间、名称冲突与标签相关的请求/响应模型。"""

from typing import List, Optional

from pydantic import BaseModel, Field

from app.packages.drive.api.v1.schemas.common import ResponseEnvelope


class QuotaData(BaseModel):
    total: int
    used: int
    available: int
    percentage: float


class StatsData(BaseModel):
    totalFiles: int
    totalFolders: int
    totalSize: int


class NameConflictBody(BaseModel):
    folderId: Optional[str] = None
    fileNames: List[str] = Field(..., min_length=1)


class NameConflictData(BaseModel):
    conflicts: List[str]


class TagBody(BaseModel):
    tag: str = Field(..., min_length=1)
    fileIds: List[str] = Field(..., min_length=1)


class TagChangeData(BaseModel):
    updatedCount: int


QuotaResponse = ResponseEnvelope[QuotaData]
StatsResponse = ResponseEnvelope[StatsData]
NameConflictResponse = ResponseEnvelope[NameConflictData]
TagListResponse = ResponseEnvelope[List[str]]
TagChangeResponse = ResponseEnvelope[TagChangeData]
