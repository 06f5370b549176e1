"""Path utilities for the file tree.

Rules shared by the tree services:
- A node path always starts with '/', never ends with '/', and includes the node's own name;
- Names are single path segments: no '/' or '\\', and never '.' or '..';
- Moving or renaming a folder rewrites the prefix of every descendant path.
"""

from __future__ import annotations

from typing import Iterable, List, Optional
from urllib.parse import quote

from app.packages.drive.core.constants import HTTP_STATUS_BAD_REQUEST, MAX_NAME_LENGTH
from app.packages.drive.core.exceptions import AppException

_FORBIDDEN_CHARS = ("/", "\\")
_RESERVED_NAMES = {".", ".."}


def normalize_name(raw: Optional[str], *, label: str = "文件名") -> str:
    """Trim and validate a display name, raising a 400 ``AppException`` when invalid."""
    name = (raw or "").strip()
    if not name:
        raise AppException(f"{label}不能为空", HTTP_STATUS_BAD_REQUEST)
    if any(ch in name for ch in _FORBIDDEN_CHARS):
        raise AppException(f"{label}不能包含 / 或 \\", HTTP_STATUS_BAD_REQUEST)
    if name in _RESERVED_NAMES:
        raise AppException(f"{label}不合法", HTTP_STATUS_BAD_REQUEST)
    if len(name) > MAX_NAME_LENGTH:
        raise AppException(f"{label}过长", HTTP_STATUS_BAD_REQUEST)
    return name


def build_path(parent_path: Optional[str], name: str) -> str:
    if not parent_path:
        return "/" + name
    return "/" + "/".join(seg for seg in (parent_path.strip("/"), name) if seg)


def normalize_tags(tags: Optional[Iterable[str]]) -> List[str]:
    """Trim, drop empties and de-duplicate while keeping first-seen order."""
    result: List[str] = []
    for tag in tags or []:
        value = (tag or "").strip()
        if value and value not in result:
            result.append(value)
    return result


def content_url(api_prefix: str, node_id: str, name: str) -> str:
    return f"{api_prefix.rstrip('/')}/files/{node_id}/content?filename={quote(name)}"
