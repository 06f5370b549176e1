"""模型包初始化，便于统一导入 ORM 实体并触发模型注册。"""

from app.packages.drive.models.favorite import Favorite, FavoriteFolder
from app.packages.drive.models.file_node import FileNode
from app.packages.drive.models.maintenance_log import MaintenanceLog
from app.packages.drive.models.share import ShareItem, ShareLink
from app.packages.drive.models.user import User

__all__ = [
    "Favorite",
    "FavoriteFolder",
    "FileNode",
    "MaintenanceLog",
    "ShareItem",
    "ShareLink",
    "User",
]
