"""时间工具：业务时间统一使用 UTC，展示时按配置时区转换。"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from app.packages.drive.core.config import get_settings


def utcnow() -> datetime:
    """返回带 UTC 时区的当前时间，删除时间与保留期计算都以此为准。"""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """数据库（如 SQLite）可能返回无时区的时间，这里统一补齐为 UTC。"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_local(value: Optional[datetime]) -> Optional[datetime]:
    """将 ``datetime`` 转换为配置时区。"""
    normalized = ensure_utc(value)
    if normalized is None:
        return None
    return normalized.astimezone(get_settings().timezone_info)


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    """格式化为 ISO-8601 字符串（配置时区）。"""
    localized = to_local(value)
    if localized is None:
        return None
    return localized.isoformat()
