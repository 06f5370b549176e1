"""枚举定义：约束文件类型筛选、排序字段与维护日志类型的可选值。"""

from enum import Enum


class FileTypeEnum(str, Enum):
    """按 MIME 大类筛选文件时允许的取值（前缀匹配）。"""

    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    APPLICATION = "application"
    TEXT = "text"


class SortFieldEnum(str, Enum):
    """文件列表允许的排序字段，值为对外暴露的字段名。"""

    NAME = "name"
    SIZE = "size"
    CREATED_AT = "createdAt"
    UPDATED_AT = "updatedAt"


class SortOrderEnum(str, Enum):
    ASC = "asc"
    DESC = "desc"


class SearchModeEnum(str, Enum):
    NAME = "name"
    TAG = "tag"


class MaintenanceTypeEnum(str, Enum):
    """维护日志类型。"""

    CLEANUP = "cleanup"
    PURGE_DEAD_LETTER = "purge_dead_letter"
    FAVORITE_FIX = "favorite_fix"
    STORAGE_RECONCILE = "storage_reconcile"
