"""收藏夹相关的请求/响应模型。"""

from typing import List, Optional

from pydantic import BaseModel, Field

from app.packages.drive.api.v1.schemas.common import PageData, ResponseEnvelope
from app.packages.drive.api.v1.schemas.files import FileNodeData


class FavoriteFolderData(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    isDefault: bool
    fileCount: int = 0
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None


class FavoriteFolderCreateBody(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    description: Optional[str] = None
    isDefault: bool = False


class FavoriteFolderUpdateBody(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=128)
    description: Optional[str] = None
    isDefault: Optional[bool] = None


class FavoriteFilesBody(BaseModel):
    fileIds: List[str] = Field(..., min_length=1)
    folderId: Optional[int] = None


class FavoriteFileData(FileNodeData):
    favoriteId: int
    favoriteFolderId: int
    favoriteFolderName: str


class AddedData(BaseModel):
    addedCount: int


class RemovedData(BaseModel):
    removedCount: int


FavoriteFolderResponse = ResponseEnvelope[FavoriteFolderData]
FavoriteFolderListResponse = ResponseEnvelope[List[FavoriteFolderData]]
FavoriteFilesResponse = ResponseEnvelope[PageData[FavoriteFileData]]
AddedResponse = ResponseEnvelope[AddedData]
RemovedResponse = ResponseEnvelope[RemovedData]
