"""文件树 - 文件/文件夹 操作请求/响应模型。"""

from typing import List, Optional

from pydantic import BaseModel, Field

from app.packages.drive.api.v1.schemas.common import PageData, ResponseEnvelope


class FileNodeData(BaseModel):
    id: str
    name: str
    isFolder: bool
    parentId: Optional[str] = None
    path: str
    size: int
    mimeType: Optional[str] = None
    url: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None


class PathSegment(BaseModel):
    id: str
    name: str


class FolderContentsData(BaseModel):
    folder: Optional[FileNodeData] = None
    path: List[PathSegment]
    items: List[FileNodeData]


class FolderCreateBody(BaseModel):
    name: str = Field(..., min_length=1)
    parentId: Optional[str] = None
    tags: Optional[List[str]] = None


class MoveBody(BaseModel):
    fileIds: List[str] = Field(..., min_length=1)
    targetFolderId: Optional[str] = None


class DeleteBody(BaseModel):
    fileIds: List[str] = Field(..., min_length=1)


class RenameBody(BaseModel):
    fileId: str = Field(..., min_length=1)
    newName: str
    tags: Optional[List[str]] = None


class RenameByIdBody(BaseModel):
    newName: str
    tags: Optional[List[str]] = None


class UpdateFileBody(BaseModel):
    name: Optional[str] = None
    tags: Optional[List[str]] = None


class MovedData(BaseModel):
    movedCount: int


class DeletedData(BaseModel):
    deletedCount: int


FileNodeResponse = ResponseEnvelope[FileNodeData]
FileNodeListResponse = ResponseEnvelope[List[FileNodeData]]
FilesPageResponse = ResponseEnvelope[PageData[FileNodeData]]
FolderPathResponse = ResponseEnvelope[List[PathSegment]]
FolderContentsResponse = ResponseEnvelope[FolderContentsData]
MoveResponse = ResponseEnvelope[MovedData]
DeleteResponse = ResponseEnvelope[DeletedData]
