"""文件树服务：文件夹创建、上传、重命名、移动、删除、列表、搜索与标签。

约定：
- 所有操作都按 owner 隔离，软删除节点对查询不可见；
- 多行变更（删除 + 配额、移动 + 路径级联、上传记录 + 配额）在同一事务内提交，出错回滚；
- 上传先写数据块再写元数据，元数据写入失败时尽力删除已写入的数据块。
"""

from __future__ import annotations

import json
import mimetypes
import uuid
from typing import Any, BinaryIO, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from sqlalchemy import String, cast
from sqlalchemy.orm import Session

from app.packages.drive.core.config import get_settings
from app.packages.drive.core.constants import (
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_CONFLICT,
    HTTP_STATUS_FORBIDDEN,
    HTTP_STATUS_NOT_FOUND,
    RECENT_FILES_LIMIT,
    SEARCH_RESULT_LIMIT,
)
from app.packages.drive.core.enums import FileTypeEnum, SearchModeEnum, SortFieldEnum, SortOrderEnum
from app.packages.drive.core.exceptions import AppException
from app.packages.drive.core.logger import logger
from app.packages.drive.core.timezone import format_datetime, utcnow
from app.packages.drive.crud.favorite import favorite_crud
from app.packages.drive.crud.file_node import file_node_crud
from app.packages.drive.crud.share import share_item_crud
from app.packages.drive.crud.users import user_crud
from app.packages.drive.models.file_node import FileNode
from app.packages.drive.services.blob_store import BlobStore, new_storage_key
from app.packages.drive.services.name_conflicts import normalize_parent_id
from app.packages.drive.services.path_resolver import node_path, resolve_path
from app.packages.drive.services.quota_service import quota_service
from app.packages.drive.utils.path_utils import build_path, content_url, normalize_name, normalize_tags

DEFAULT_MIME_TYPE = "application/octet-stream"

_SORT_COLUMNS = {
    SortFieldEnum.NAME.value: FileNode.name,
    SortFieldEnum.SIZE.value: FileNode.size,
    SortFieldEnum.CREATED_AT.value: FileNode.create_time,
    SortFieldEnum.UPDATED_AT.value: FileNode.update_time,
}


def serialize_node(node: FileNode) -> Dict[str, Any]:
    return {
        "id": node.id,
        "name": node.name,
        "isFolder": bool(node.is_folder),
        "parentId": node.parent_id,
        "path": node.path,
        "size": int(node.size or 0),
        "mimeType": node.mime_type,
        "url": node.url,
        "tags": list(node.tags or []),
        "createdAt": format_datetime(node.create_time),
        "updatedAt": format_datetime(node.update_time),
    }


def _guess_mime(name: str, content_type: Optional[str]) -> str:
    value = (content_type or "").split(";")[0].strip().lower()
    if value and value != DEFAULT_MIME_TYPE:
        return value
    guessed, _ = mimetypes.guess_type(name)
    return guessed or DEFAULT_MIME_TYPE


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class FileService:
    # ----------------------------
    # 内部校验
    # ----------------------------
    def _get_node_for_owner(self, db: Session, owner_id: int, node_id: str) -> FileNode:
        """不存在/已删除 → 404；属于其他用户 → 403。"""
        node = file_node_crud.get_any(db, node_id)
        if node is None:
            raise AppException("文件不存在", HTTP_STATUS_NOT_FOUND)
        if node.owner_id != owner_id:
            raise AppException("无权操作该文件", HTTP_STATUS_FORBIDDEN)
        if node.is_deleted:
            raise AppException("文件不存在", HTTP_STATUS_NOT_FOUND)
        return node

    def _get_target_folder(self, db: Session, owner_id: int, folder_id: Optional[str]) -> Optional[FileNode]:
        parent_id = normalize_parent_id(folder_id)
        if parent_id is None:
            return None
        folder = file_node_crud.get_owned(db, owner_id, parent_id)
        if folder is None or not folder.is_folder:
            raise AppException("目标文件夹不存在", HTTP_STATUS_NOT_FOUND)
        return folder

    def _ensure_name_available(
        self,
        db: Session,
        owner_id: int,
        parent_id: Optional[str],
        name: str,
        *,
        exclude_id: Optional[str] = None,
    ) -> None:
        existing = file_node_crud.find_child_by_name(db, owner_id, parent_id, name, exclude_id=exclude_id)
        if existing is not None:
            raise AppException(f"已存在同名文件或文件夹: {name}", HTTP_STATUS_CONFLICT, {"name": name})

    def _cascade_paths(self, db: Session, owner_id: int, root: FileNode) -> int:
        """按父链逐层重算后代路径（含回收站中的后代），返回更新的节点数。"""
        updated = 0
        seen = {root.id}
        frontier = {root.id: root.path}
        while frontier:
            children = (
                file_node_crud.owned(db, owner_id, include_deleted=True)
                .filter(FileNode.parent_id.in_(list(frontier)))
                .all()
            )
            next_frontier: Dict[str, str] = {}
            for child in children:
                if child.id in seen:
                    continue
                seen.add(child.id)
                child.path = build_path(frontier[child.parent_id], child.name)
                updated += 1
                if child.is_folder:
                    next_frontier[child.id] = child.path
            frontier = next_frontier
        return updated

    def _ancestor_ids(self, db: Session, owner_id: int, folder: FileNode) -> set[str]:
        """目标文件夹自身及其全部祖先的 ID。"""
        ids: set[str] = set()
        current: Optional[FileNode] = folder
        while current is not None and current.id not in ids:
            ids.add(current.id)
            if current.parent_id is None:
                break
            current = file_node_crud.get_owned(db, owner_id, current.parent_id)
        return ids

    # ----------------------------
    # 创建
    # ----------------------------
    def create_folder(
        self,
        db: Session,
        owner_id: int,
        *,
        name: str,
        parent_id: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> Dict[str, Any]:
        folder_name = normalize_name(name, label="文件夹名称")
        parent = self._get_target_folder(db, owner_id, parent_id)
        target_parent_id = parent.id if parent else None
        self._ensure_name_available(db, owner_id, target_parent_id, folder_name)

        try:
            node = file_node_crud.create(
                db,
                {
                    "owner_id": owner_id,
                    "parent_id": target_parent_id,
                    "name": folder_name,
                    "is_folder": True,
                    "path": node_path(parent, folder_name),
                    "size": 0,
                    "tags": normalize_tags(tags),
                },
                auto_commit=False,
            )
            # 提交前在事务内复查同名节点
            self._ensure_name_available(db, owner_id, target_parent_id, folder_name, exclude_id=node.id)
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info("Folder created: owner=%s path=%s", owner_id, node.path)
        return serialize_node(node)

    def _ensure_folder_chain(
        self, db: Session, owner_id: int, parent: Optional[FileNode], parts: Sequence[str]
    ) -> Optional[FileNode]:
        """文件夹上传：逐级查找或创建相对路径中的文件夹（不提交）。"""
        current = parent
        for part in parts:
            current_id = current.id if current else None
            existing = file_node_crud.find_child_by_name(db, owner_id, current_id, part)
            if existing is not None:
                if not existing.is_folder:
                    raise AppException(f"已存在同名文件: {part}", HTTP_STATUS_CONFLICT, {"name": part})
                current = existing
                continue
            current = file_node_crud.create(
                db,
                {
                    "owner_id": owner_id,
                    "parent_id": current_id,
                    "name": part,
                    "is_folder": True,
                    "path": node_path(current, part),
                    "size": 0,
                    "tags": [],
                },
                auto_commit=False,
            )
        return current

    def upload_file(
        self,
        db: Session,
        owner_id: int,
        *,
        filename: str,
        stream: BinaryIO,
        size: int,
        blob_store: BlobStore,
        content_type: Optional[str] = None,
        folder_id: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
        relative_path: Optional[str] = None,
    ) -> Dict[str, Any]:
        """上传单个文件：先写数据块，再在一个事务中写入节点记录并累加配额。"""
        name = normalize_name(filename)
        folder_parts: List[str] = []
        if relative_path and "/" in relative_path:
            folder_parts = [normalize_name(p, label="文件夹名称") for p in relative_path.split("/")[:-1] if p.strip()]

        parent = self._get_target_folder(db, owner_id, folder_id)
        user = user_crud.get(db, owner_id)
        if user is None:
            raise AppException("用户不存在", HTTP_STATUS_NOT_FOUND)
        if not folder_parts:
            self._ensure_name_available(db, owner_id, parent.id if parent else None, name)
        quota_service.ensure_capacity(user, max(int(size or 0), 0))

        storage_key = new_storage_key(owner_id, name)
        written = blob_store.write(storage_key, stream)
        try:
            quota_service.ensure_capacity(user, written)
            target = self._ensure_folder_chain(db, owner_id, parent, folder_parts)
            target_id = target.id if target else None
            self._ensure_name_available(db, owner_id, target_id, name)
            node_id = str(uuid.uuid4())
            node = file_node_crud.create(
                db,
                {
                    "id": node_id,
                    "owner_id": owner_id,
                    "parent_id": target_id,
                    "name": name,
                    "is_folder": False,
                    "path": node_path(target, name),
                    "size": written,
                    "mime_type": _guess_mime(name, content_type),
                    "storage_key": storage_key,
                    "url": content_url(get_settings().api_v1_str, node_id, name),
                    "tags": normalize_tags(tags),
                },
                auto_commit=False,
            )
            self._ensure_name_available(db, owner_id, target_id, name, exclude_id=node.id)
            quota_service.adjust_usage(db, owner_id, written)
            db.commit()
        except Exception:
            db.rollback()
            self._discard_blob(blob_store, storage_key)
            raise
        logger.info("File uploaded: owner=%s path=%s size=%s", owner_id, node.path, written)
        return serialize_node(node)

    def upload_files(
        self,
        db: Session,
        owner_id: int,
        *,
        files: Sequence[Tuple[str, BinaryIO, int, Optional[str]]],
        blob_store: BlobStore,
        folder_id: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
        relative_paths: Optional[Sequence[Optional[str]]] = None,
    ) -> List[Dict[str, Any]]:
        """批量上传，``files`` 为 ``(文件名, 流, 大小, content_type)`` 列表；遇到第一个错误即中止。"""
        if not files:
            raise AppException("未提供文件", HTTP_STATUS_BAD_REQUEST)
        tag_list = normalize_tags(tags)
        results: List[Dict[str, Any]] = []
        for index, (filename, stream, size, content_type) in enumerate(files):
            relative_path = None
            if relative_paths and index < len(relative_paths):
                relative_path = relative_paths[index]
            results.append(
                self.upload_file(
                    db,
                    owner_id,
                    filename=filename,
                    stream=stream,
                    size=size,
                    content_type=content_type,
                    folder_id=folder_id,
                    tags=tag_list,
                    relative_path=relative_path,
                    blob_store=blob_store,
                )
            )
        return results

    @staticmethod
    def _discard_blob(blob_store: BlobStore, storage_key: str) -> None:
        try:
            blob_store.delete(storage_key)
        except Exception:
            logger.warning("Failed to remove orphaned blob %s after metadata failure", storage_key, exc_info=True)

    # ----------------------------
    # 重命名 / 更新
    # ----------------------------
    def rename_file(
        self,
        db: Session,
        owner_id: int,
        file_id: str,
        *,
        new_name: str,
        tags: Optional[Iterable[str]] = None,
    ) -> Dict[str, Any]:
        return self.update_file(db, owner_id, file_id, name=new_name, tags=tags, require_name=True)

    def update_file(
        self,
        db: Session,
        owner_id: int,
        file_id: str,
        *,
        name: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
        require_name: bool = False,
    ) -> Dict[str, Any]:
        """修改名称和/或标签；文件夹改名时级联更新所有后代路径，数据块 key 保持不变。"""
        node = self._get_node_for_owner(db, owner_id, file_id)
        new_name = normalize_name(name) if (name is not None or require_name) else node.name
        new_tags = normalize_tags(tags) if tags is not None else None

        name_changed = new_name != node.name
        tags_changed = new_tags is not None and new_tags != list(node.tags or [])
        if not name_changed and not tags_changed:
            return serialize_node(node)

        if name_changed:
            self._ensure_name_available(db, owner_id, node.parent_id, new_name, exclude_id=node.id)

        try:
            if tags_changed:
                node.tags = new_tags
            if name_changed:
                old_path = node.path
                parent_path = old_path.rsplit("/", 1)[0]
                node.name = new_name
                node.path = build_path(parent_path or None, new_name)
                if node.is_folder:
                    cascaded = self._cascade_paths(db, owner_id, node)
                    logger.info("Folder renamed: %s -> %s (%s descendants)", old_path, node.path, cascaded)
                else:
                    node.url = content_url(get_settings().api_v1_str, node.id, new_name)
            file_node_crud.save(db, node, auto_commit=False)
            if name_changed:
                self._ensure_name_available(db, owner_id, node.parent_id, new_name, exclude_id=node.id)
            db.commit()
        except Exception:
            db.rollback()
            raise
        return serialize_node(node)

    # ----------------------------
    # 移动
    # ----------------------------
    def move_files(
        self, db: Session, owner_id: int, *, file_ids: Sequence[str], target_folder_id: Optional[str]
    ) -> int:
        ids = [fid for fid in dict.fromkeys(file_ids or []) if fid]
        if not ids:
            raise AppException("请选择要移动的文件", HTTP_STATUS_BAD_REQUEST)
        target = self._get_target_folder(db, owner_id, target_folder_id)
        nodes = file_node_crud.get_owned_many(db, owner_id, ids)
        if len(nodes) != len(ids):
            # 全部或不移动：逐个定位缺失项，区分 404 与 403
            found = {node.id for node in nodes}
            for missing_id in ids:
                if missing_id not in found:
                    self._get_node_for_owner(db, owner_id, missing_id)

        target_id = target.id if target else None
        if target is not None:
            blocked = self._ancestor_ids(db, owner_id, target)
            if any(node.id in blocked for node in nodes):
                raise AppException("不能将文件夹移动到其自身或子文件夹中", HTTP_STATUS_BAD_REQUEST)

        moved_ids = {node.id for node in nodes}
        seen_names: set[str] = set()
        for node in nodes:
            if node.name in seen_names:
                raise AppException(f"移动的项目中存在同名文件: {node.name}", HTTP_STATUS_CONFLICT, {"name": node.name})
            seen_names.add(node.name)
        clashing = [
            child.name
            for child in file_node_crud.children_query(db, owner_id, target_id)
            .filter(FileNode.name.in_(list(seen_names)))
            .all()
            if child.id not in moved_ids
        ]
        if clashing:
            raise AppException(
                f"目标文件夹中已存在同名文件: {', '.join(sorted(clashing))}",
                HTTP_STATUS_CONFLICT,
                {"conflicts": sorted(clashing)},
            )

        try:
            for node in nodes:
                node.parent_id = target_id
                node.path = node_path(target, node.name)
            # 先落库所有父节点变更，嵌套选择的节点才不会被祖先的级联覆盖
            db.flush()
            for node in nodes:
                if node.is_folder:
                    self._cascade_paths(db, owner_id, node)
            db.flush()
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info("Moved %s nodes to %s for owner %s", len(nodes), target.path if target else "/", owner_id)
        return len(nodes)

    # ----------------------------
    # 删除（软删除）
    # ----------------------------
    def delete_files(self, db: Session, owner_id: int, *, file_ids: Sequence[str]) -> int:
        """软删除所选节点及其全部后代，释放配额并移除相关收藏与分享条目；返回所选节点中实际删除的数量。"""
        ids = [fid for fid in dict.fromkeys(file_ids or []) if fid]
        if not ids:
            return 0
        try:
            nodes = (
                file_node_crud.owned(db, owner_id)
                .filter(FileNode.id.in_(ids))
                .with_for_update()
                .all()
            )
            if not nodes:
                return 0
            descendants = file_node_crud.descendants(db, owner_id, [n.id for n in nodes if n.is_folder])
            affected = {n.id: n for n in [*nodes, *descendants]}

            deleted_at = utcnow()
            freed = 0
            for node in affected.values():
                node.is_deleted = True
                node.deleted_at = deleted_at
                if not node.is_folder:
                    freed += int(node.size or 0)
            db.flush()
            favorite_crud.delete_for_files(db, affected.keys())
            share_item_crud.delete_for_files(db, affected.keys())
            quota_service.adjust_usage(db, owner_id, -freed)
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info(
            "Soft-deleted %s nodes (%s selected) for owner %s, freed %s bytes",
            len(affected), len(nodes), owner_id, freed,
        )
        return len(nodes)

    # ----------------------------
    # 查询
    # ----------------------------
    def get_files(
        self,
        db: Session,
        owner_id: int,
        *,
        folder_id: Optional[str] = None,
        file_type: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
        sort_by: str = SortFieldEnum.NAME.value,
        sort_order: str = SortOrderEnum.ASC.value,
    ) -> Dict[str, Any]:
        max_page_size = get_settings().max_page_size
        if page < 1:
            raise AppException("page 必须大于等于 1", HTTP_STATUS_BAD_REQUEST)
        if page_size < 1 or page_size > max_page_size:
            raise AppException(f"pageSize 必须在 1 到 {max_page_size} 之间", HTTP_STATUS_BAD_REQUEST)
        if sort_by not in _SORT_COLUMNS:
            raise AppException(f"不支持的排序字段: {sort_by}", HTTP_STATUS_BAD_REQUEST)
        if sort_order not in {SortOrderEnum.ASC.value, SortOrderEnum.DESC.value}:
            raise AppException(f"不支持的排序方向: {sort_order}", HTTP_STATUS_BAD_REQUEST)
        if file_type and file_type not in {item.value for item in FileTypeEnum}:
            raise AppException(f"不支持的文件类型: {file_type}", HTTP_STATUS_BAD_REQUEST)

        folder = self._get_target_folder(db, owner_id, folder_id)
        query = file_node_crud.children_query(db, owner_id, folder.id if folder else None)
        if file_type:
            query = query.filter(
                FileNode.is_folder.is_(False),
                FileNode.mime_type.like(f"{file_type}/%"),
            )
        total = query.count()

        column = _SORT_COLUMNS[sort_by]
        ordering = column.asc() if sort_order == SortOrderEnum.ASC.value else column.desc()
        items = (
            query.order_by(FileNode.is_folder.desc(), ordering, FileNode.id.asc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return {
            "items": [serialize_node(item) for item in items],
            "total": total,
            "page": page,
            "pageSize": page_size,
        }

    def get_folder_path(self, db: Session, owner_id: int, folder_id: str) -> List[Dict[str, str]]:
        return resolve_path(db, owner_id, folder_id)

    def get_folder_contents(self, db: Session, owner_id: int, folder_id: Optional[str]) -> Dict[str, Any]:
        folder = self._get_target_folder(db, owner_id, folder_id)
        children = file_node_crud.list_children(db, owner_id, folder.id if folder else None)
        return {
            "folder": serialize_node(folder) if folder else None,
            "path": resolve_path(db, owner_id, folder.id) if folder else [],
            "items": [serialize_node(child) for child in children],
        }

    def get_file(self, db: Session, owner_id: int, file_id: str) -> Dict[str, Any]:
        return serialize_node(self._get_node_for_owner(db, owner_id, file_id))

    def open_content(
        self, db: Session, owner_id: int, file_id: str, blob_store: BlobStore
    ) -> Tuple[Dict[str, Any], Iterator[bytes]]:
        """打开文件内容用于流式下载，同时刷新访问时间（最近文件以此排序）。"""
        node = self._get_node_for_owner(db, owner_id, file_id)
        if node.is_folder:
            raise AppException("文件夹不支持下载", HTTP_STATUS_BAD_REQUEST)
        if not node.storage_key:
            raise AppException("文件内容不存在", HTTP_STATUS_NOT_FOUND)
        try:
            chunks = blob_store.open(node.storage_key)
        except FileNotFoundError as exc:
            logger.warning("Blob %s missing for file %s", node.storage_key, node.id)
            raise AppException("文件内容不存在", HTTP_STATUS_NOT_FOUND) from exc
        node.update_time = utcnow()
        file_node_crud.save(db, node)
        return serialize_node(node), chunks

    def search_files(
        self,
        db: Session,
        owner_id: int,
        *,
        query: Optional[str] = None,
        mode: str = SearchModeEnum.NAME.value,
        file_type: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
        include_folders: bool = True,
    ) -> List[Dict[str, Any]]:
        """按名称（不区分大小写的包含匹配）或标签（精确匹配）搜索，最多返回 100 条。"""
        keyword = (query or "").strip()
        required_tags = normalize_tags(tags)
        if mode not in {item.value for item in SearchModeEnum}:
            raise AppException(f"不支持的搜索模式: {mode}", HTTP_STATUS_BAD_REQUEST)
        if mode == SearchModeEnum.TAG.value and keyword:
            required_tags = normalize_tags([keyword, *required_tags])
            keyword = ""
        if not keyword and not required_tags:
            raise AppException("搜索关键词不能为空", HTTP_STATUS_BAD_REQUEST)
        if file_type and file_type not in {item.value for item in FileTypeEnum}:
            raise AppException(f"不支持的文件类型: {file_type}", HTTP_STATUS_BAD_REQUEST)

        q = file_node_crud.owned(db, owner_id)
        if keyword:
            q = q.filter(FileNode.name.ilike(f"%{_escape_like(keyword)}%", escape="\\"))
        for tag in required_tags:
            # JSON 文本预筛，再在内存中做精确匹配
            q = q.filter(cast(FileNode.tags, String).like(f"%{_escape_like(json.dumps(tag))}%", escape="\\"))
        if file_type:
            q = q.filter(FileNode.is_folder.is_(False), FileNode.mime_type.like(f"{file_type}/%"))
        elif not include_folders:
            q = q.filter(FileNode.is_folder.is_(False))

        candidates = q.order_by(FileNode.is_folder.desc(), FileNode.update_time.desc(), FileNode.id.asc()).all()
        results: List[Dict[str, Any]] = []
        for node in candidates:
            node_tags = set(node.tags or [])
            if any(tag not in node_tags for tag in required_tags):
                continue
            results.append(serialize_node(node))
            if len(results) >= SEARCH_RESULT_LIMIT:
                break
        return results

    def recent_files(self, db: Session, owner_id: int, *, limit: int = RECENT_FILES_LIMIT) -> List[Dict[str, Any]]:
        limit = min(max(int(limit), 1), get_settings().max_page_size)
        items = (
            file_node_crud.owned(db, owner_id)
            .filter(FileNode.is_folder.is_(False))
            .order_by(FileNode.update_time.desc(), FileNode.id.asc())
            .limit(limit)
            .all()
        )
        return [serialize_node(item) for item in items]

    # ----------------------------
    # 标签
    # ----------------------------
    def list_tags(self, db: Session, owner_id: int) -> List[str]:
        collected: set[str] = set()
        for values in file_node_crud.list_tag_values(db, owner_id):
            collected.update(tag for tag in values if tag)
        return sorted(collected)

    def add_tag(self, db: Session, owner_id: int, *, tag: str, file_ids: Sequence[str]) -> int:
        return self._change_tag(db, owner_id, tag=tag, file_ids=file_ids, add=True)

    def remove_tag(self, db: Session, owner_id: int, *, tag: str, file_ids: Sequence[str]) -> int:
        return self._change_tag(db, owner_id, tag=tag, file_ids=file_ids, add=False)

    def _change_tag(self, db: Session, owner_id: int, *, tag: str, file_ids: Sequence[str], add: bool) -> int:
        value = (tag or "").strip()
        if not value:
            raise AppException("标签不能为空", HTTP_STATUS_BAD_REQUEST)
        ids = [fid for fid in dict.fromkeys(file_ids or []) if fid]
        if not ids:
            raise AppException("请选择文件", HTTP_STATUS_BAD_REQUEST)

        changed = 0
        try:
            for node in file_node_crud.get_owned_many(db, owner_id, ids):
                current = list(node.tags or [])
                if add and value not in current:
                    node.tags = [*current, value]
                elif not add and value in current:
                    node.tags = [item for item in current if item != value]
                else:
                    continue
                file_node_crud.save(db, node, auto_commit=False)
                changed += 1
            db.commit()
        except Exception:
            db.rollback()
            raise
        return changed


file_service = FileService()
