"""分享链接相关的请求/响应模型。"""

from typing import List, Optional

from pydantic import BaseModel, Field

from app.packages.drive.api.v1.schemas.common import ResponseEnvelope
from app.packages.drive.api.v1.schemas.files import FileNodeData


class SharedFileData(BaseModel):
    id: str
    name: str
    isFolder: bool
    size: int
    mimeType: Optional[str] = None
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None


class ShareData(BaseModel):
    id: int
    shareCode: str
    extractCode: str
    shareLink: str
    autoFillCode: bool
    expiresAt: Optional[str] = None
    accessLimit: Optional[int] = None
    accessCount: int = 0
    createdAt: Optional[str] = None
    files: List[SharedFileData] = Field(default_factory=list)


class ShareInfoData(BaseModel):
    shareCode: str
    ownerName: Optional[str] = None
    expiresAt: Optional[str] = None
    accessLimit: Optional[int] = None
    accessCount: int = 0
    createdAt: Optional[str] = None
    files: List[SharedFileData]


class SharedFolderData(BaseModel):
    folder: SharedFileData
    items: List[SharedFileData]


class ShareCreateBody(BaseModel):
    fileIds: List[str] = Field(..., min_length=1)
    # -1 表示永久有效；未提供时使用默认有效期
    expiryDays: Optional[int] = None
    extractCode: Optional[str] = None
    accessLimit: Optional[int] = None
    autoFillCode: bool = False


class ShareDeleteBody(BaseModel):
    shareIds: List[int] = Field(..., min_length=1)


class ShareVerifyBody(BaseModel):
    shareCode: str = Field(..., min_length=1)
    extractCode: Optional[str] = None


class ShareOpenBody(BaseModel):
    shareLink: str = Field(..., min_length=1)
    extractCode: Optional[str] = None


class SharedFolderBody(ShareVerifyBody):
    folderId: str = Field(..., min_length=1)


class SharedDownloadBody(ShareVerifyBody):
    fileId: str = Field(..., min_length=1)


class ShareSaveBody(ShareVerifyBody):
    fileIds: Optional[List[str]] = None
    targetFolderId: Optional[str] = None


class ShareDeletedData(BaseModel):
    deletedCount: int


class ShareSavedData(BaseModel):
    savedFiles: int
    savedFolders: int
    totalSize: int
    items: List[FileNodeData]


ShareResponse = ResponseEnvelope[ShareData]
ShareListResponse = ResponseEnvelope[List[ShareData]]
ShareInfoResponse = ResponseEnvelope[ShareInfoData]
SharedFolderResponse = ResponseEnvelope[SharedFolderData]
ShareDeletedResponse = ResponseEnvelope[ShareDeletedData]
ShareSavedResponse = ResponseEnvelope[ShareSavedData]
