"""分享服务：创建/撤销分享链接，凭分享码与提取码公开浏览、下载，以及转存到自己的网盘。

约定：
- 分享只记录被选中的根节点，文件夹内容在访问时按 parent_id 实时展开，已删除的节点不可见；
- 过期时间与访问次数在每次访问时校验，``verify``/``open`` 才累加访问次数；
- 转存会复制数据块到新的 key，与源文件互不影响，配额校验与扣减在同一事务内完成。
"""

from __future__ import annotations

import os
import secrets
import uuid
from datetime import timedelta
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple
from urllib.parse import parse_qs, urlsplit

from sqlalchemy.orm import Session

from app.packages.drive.core.config import get_settings
from app.packages.drive.core.constants import (
    EXTRACT_CODE_ALPHABET,
    EXTRACT_CODE_LENGTH,
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_FORBIDDEN,
    HTTP_STATUS_INTERNAL_ERROR,
    HTTP_STATUS_NOT_FOUND,
    SHARE_CODE_ALPHABET,
    SHARE_CODE_LENGTH,
    SHARE_NEVER_EXPIRES,
)
from app.packages.drive.core.exceptions import AppException
from app.packages.drive.core.logger import logger
from app.packages.drive.core.security import secrets_match
from app.packages.drive.core.timezone import ensure_utc, format_datetime, utcnow
from app.packages.drive.crud.file_node import file_node_crud
from app.packages.drive.crud.share import share_item_crud, share_link_crud
from app.packages.drive.crud.users import user_crud
from app.packages.drive.models.file_node import FileNode
from app.packages.drive.models.share import ShareLink
from app.packages.drive.services.blob_store import BlobStore, new_storage_key
from app.packages.drive.services.file_service import serialize_node
from app.packages.drive.services.name_conflicts import normalize_parent_id
from app.packages.drive.services.path_resolver import node_path
from app.packages.drive.services.quota_service import quota_service
from app.packages.drive.utils.path_utils import content_url

_CODE_ATTEMPTS = 5
_MAX_EXTRACT_CODE_LENGTH = 16


def _random_code(length: int, alphabet: str) -> str:
    return "".join(secrets.choice(alphabet) for _ in range(length))


def build_share_link(share_code: str, extract_code: str, auto_fill_code: bool) -> str:
    link = f"{get_settings().share_base_url.rstrip('/')}/s/{share_code}"
    if auto_fill_code:
        link = f"{link}?code={extract_code}"
    return link


def parse_share_link(raw: str) -> Tuple[str, Optional[str]]:
    """从分享链接中取出 ``(分享码, 链接自带的提取码)``；传入的也可以是分享码本身。"""
    text = (raw or "").strip()
    parts = urlsplit(text)
    segments = [segment for segment in parts.path.split("/") if segment]
    share_code = segments[-1] if segments else ""
    codes = parse_qs(parts.query).get("code")
    return share_code, (codes[0] if codes else None)


def serialize_shared_node(node: FileNode) -> Dict[str, Any]:
    """公开访问时的节点信息，不暴露所有者的路径与内部地址。"""
    return {
        "id": node.id,
        "name": node.name,
        "isFolder": bool(node.is_folder),
        "size": int(node.size or 0),
        "mimeType": node.mime_type,
        "createdAt": format_datetime(node.create_time),
        "updatedAt": format_datetime(node.update_time),
    }


def serialize_share(share: ShareLink, nodes: Iterable[FileNode]) -> Dict[str, Any]:
    return {
        "id": share.id,
        "shareCode": share.share_code,
        "extractCode": share.extract_code,
        "shareLink": build_share_link(share.share_code, share.extract_code, bool(share.auto_fill_code)),
        "autoFillCode": bool(share.auto_fill_code),
        "expiresAt": format_datetime(share.expires_at),
        "accessLimit": share.access_limit,
        "accessCount": int(share.access_count or 0),
        "createdAt": format_datetime(share.create_time),
        "files": [serialize_shared_node(node) for node in nodes],
    }


class ShareService:
    # ----------------------------
    # 分享管理（所有者）
    # ----------------------------
    def create_share(
        self,
        db: Session,
        owner_id: int,
        *,
        file_ids: Iterable[str],
        expiry_days: Optional[int] = None,
        extract_code: Optional[str] = None,
        access_limit: Optional[int] = None,
        auto_fill_code: bool = False,
    ) -> Dict[str, Any]:
        """创建分享；``expiry_days`` 为 -1 表示永久有效，未提供时使用默认有效期。"""
        ids = list(dict.fromkeys(file_ids))
        if not ids:
            raise AppException("请选择要分享的文件", HTTP_STATUS_BAD_REQUEST)

        days = get_settings().share_default_expiry_days if expiry_days is None else expiry_days
        if days != SHARE_NEVER_EXPIRES and days < 1:
            raise AppException("有效期必须为正整数天数或 -1（永久）", HTTP_STATUS_BAD_REQUEST)
        if access_limit is not None and access_limit < 1:
            raise AppException("访问次数上限必须大于 0", HTTP_STATUS_BAD_REQUEST)

        code = (extract_code or "").strip()
        if code:
            if len(code) > _MAX_EXTRACT_CODE_LENGTH or not code.isalnum():
                raise AppException("提取码只能包含字母和数字，且不超过 16 位", HTTP_STATUS_BAD_REQUEST)
        else:
            code = _random_code(EXTRACT_CODE_LENGTH, EXTRACT_CODE_ALPHABET)

        nodes = file_node_crud.get_owned_many(db, owner_id, ids)
        if len(nodes) != len(ids):
            raise AppException("部分文件不存在或没有权限", HTTP_STATUS_FORBIDDEN)

        share_code = self._new_share_code(db)
        expires_at = None if days == SHARE_NEVER_EXPIRES else utcnow() + timedelta(days=days)
        try:
            share = share_link_crud.create(
                db,
                {
                    "owner_id": owner_id,
                    "share_code": share_code,
                    "extract_code": code,
                    "auto_fill_code": bool(auto_fill_code),
                    "expires_at": expires_at,
                    "access_limit": access_limit,
                    "access_count": 0,
                },
                auto_commit=False,
            )
            for node_id in ids:
                share_item_crud.create(db, {"share_id": share.id, "file_id": node_id}, auto_commit=False)
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info("Share created: owner=%s share=%s files=%s", owner_id, share.id, len(ids))
        order = {node_id: index for index, node_id in enumerate(ids)}
        return serialize_share(share, sorted(nodes, key=lambda node: order[node.id]))

    def _new_share_code(self, db: Session) -> str:
        for _ in range(_CODE_ATTEMPTS):
            candidate = _random_code(SHARE_CODE_LENGTH, SHARE_CODE_ALPHABET)
            if not share_link_crud.code_exists(db, candidate):
                return candidate
        raise AppException("生成分享码失败，请重试", HTTP_STATUS_INTERNAL_ERROR)

    def list_shares(self, db: Session, owner_id: int) -> List[Dict[str, Any]]:
        shares = share_link_crud.list_for_owner(db, owner_id)
        nodes = share_item_crud.nodes_by_share(db, [share.id for share in shares])
        return [serialize_share(share, nodes.get(share.id, [])) for share in shares]

    def delete_shares(self, db: Session, owner_id: int, share_ids: Iterable[int]) -> int:
        """撤销分享；不属于当前用户的分享会被忽略。"""
        try:
            deleted = share_link_crud.delete_owned(db, owner_id, share_ids)
            db.commit()
        except Exception:
            db.rollback()
            raise
        if deleted:
            logger.info("Shares revoked: owner=%s count=%s", owner_id, deleted)
        return deleted

    # ----------------------------
    # 公开访问
    # ----------------------------
    def _resolve_share(
        self,
        db: Session,
        share_code: Optional[str],
        extract_code: Optional[str],
        *,
        check_limit: bool = False,
    ) -> ShareLink:
        code = (share_code or "").strip()
        if not code:
            raise AppException("分享码不能为空", HTTP_STATUS_BAD_REQUEST)
        share = share_link_crud.get_by_code(db, code)
        if share is None:
            raise AppException("分享链接不存在", HTTP_STATUS_NOT_FOUND)

        expires_at = ensure_utc(share.expires_at)
        if expires_at is not None and expires_at <= utcnow():
            raise AppException("分享链接已过期", HTTP_STATUS_FORBIDDEN)
        if check_limit and share.access_limit is not None and int(share.access_count or 0) >= share.access_limit:
            raise AppException("分享链接已达到访问次数上限", HTTP_STATUS_FORBIDDEN)

        provided = (extract_code or "").strip()
        if not provided:
            if share.auto_fill_code:
                return share
            raise AppException("请输入提取码", HTTP_STATUS_FORBIDDEN, {"needsExtractCode": True})
        if not secrets_match(provided, share.extract_code):
            raise AppException("提取码错误", HTTP_STATUS_FORBIDDEN, {"needsExtractCode": True})
        return share

    def _public_info(self, db: Session, share: ShareLink) -> Dict[str, Any]:
        owner = user_crud.get(db, share.owner_id)
        return {
            "shareCode": share.share_code,
            "ownerName": owner.username if owner else None,
            "expiresAt": format_datetime(share.expires_at),
            "accessLimit": share.access_limit,
            "accessCount": int(share.access_count or 0),
            "createdAt": format_datetime(share.create_time),
            "files": [serialize_shared_node(node) for node in share_item_crud.shared_nodes(db, share.id)],
        }

    def verify_share(self, db: Session, share_code: Optional[str], extract_code: Optional[str]) -> Dict[str, Any]:
        """校验分享码与提取码，成功后累加一次访问次数并返回分享内容。"""
        share = self._resolve_share(db, share_code, extract_code, check_limit=True)
        try:
            share_link_crud.increment_access(db, share)
            db.commit()
        except Exception:
            db.rollback()
            raise
        return self._public_info(db, share)

    def open_share(self, db: Session, share_link: str, extract_code: Optional[str] = None) -> Dict[str, Any]:
        """通过完整链接访问分享：提取码优先取参数，其次取链接中的 ``?code=``。"""
        share_code, link_code = parse_share_link(share_link)
        if not share_code:
            raise AppException("分享链接格式不正确", HTTP_STATUS_BAD_REQUEST)
        return self.verify_share(db, share_code, extract_code or link_code)

    def _get_shared_node(self, db: Session, share: ShareLink, node_id: str) -> FileNode:
        """节点必须是分享的根节点或位于某个被分享的文件夹之内。"""
        node = file_node_crud.get_owned(db, share.owner_id, node_id)
        if node is None:
            raise AppException("文件不存在", HTTP_STATUS_NOT_FOUND)
        root_ids = {item.id for item in share_item_crud.shared_nodes(db, share.id)}
        seen: set[str] = set()
        current: Optional[FileNode] = node
        while current is not None and current.id not in seen:
            if current.id in root_ids:
                return node
            seen.add(current.id)
            if current.parent_id is None:
                break
            current = file_node_crud.get_owned(db, share.owner_id, current.parent_id)
        raise AppException("无权访问该文件", HTTP_STATUS_FORBIDDEN)

    def browse_folder(
        self, db: Session, share_code: Optional[str], extract_code: Optional[str], folder_id: str
    ) -> Dict[str, Any]:
        share = self._resolve_share(db, share_code, extract_code)
        folder = self._get_shared_node(db, share, folder_id)
        if not folder.is_folder:
            raise AppException("目标不是文件夹", HTTP_STATUS_BAD_REQUEST)
        children = file_node_crud.list_children(db, share.owner_id, folder.id)
        return {
            "folder": serialize_shared_node(folder),
            "items": [serialize_shared_node(child) for child in children],
        }

    def open_shared_content(
        self,
        db: Session,
        share_code: Optional[str],
        extract_code: Optional[str],
        file_id: str,
        blob_store: BlobStore,
    ) -> Tuple[Dict[str, Any], Iterator[bytes]]:
        share = self._resolve_share(db, share_code, extract_code)
        node = self._get_shared_node(db, share, file_id)
        if node.is_folder:
            raise AppException("文件夹不支持下载", HTTP_STATUS_BAD_REQUEST)
        if not node.storage_key:
            raise AppException("文件内容不存在", HTTP_STATUS_NOT_FOUND)
        try:
            chunks = blob_store.open(node.storage_key)
        except FileNotFoundError as exc:
            logger.warning("Blob %s missing for shared file %s", node.storage_key, node.id)
            raise AppException("文件内容不存在", HTTP_STATUS_NOT_FOUND) from exc
        return serialize_shared_node(node), chunks

    # ----------------------------
    # 转存
    # ----------------------------
    def _unique_name(self, db: Session, owner_id: int, parent_id: Optional[str], name: str, is_folder: bool) -> str:
        """目标文件夹中已有同名节点时追加 ``(n)``，文件保留扩展名。"""
        if file_node_crud.find_child_by_name(db, owner_id, parent_id, name) is None:
            return name
        stem, ext = (name, "") if is_folder else os.path.splitext(name)
        index = 1
        while True:
            candidate = f"{stem}({index}){ext}"
            if file_node_crud.find_child_by_name(db, owner_id, parent_id, candidate) is None:
                return candidate
            index += 1

    def save_to_drive(
        self,
        db: Session,
        user_id: int,
        *,
        share_code: Optional[str],
        extract_code: Optional[str],
        blob_store: BlobStore,
        file_ids: Optional[Iterable[str]] = None,
        target_folder_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """把分享中的文件（默认全部）连同文件夹结构复制到当前用户的目标文件夹。"""
        share = self._resolve_share(db, share_code, extract_code)
        selected = list(dict.fromkeys(file_ids or []))
        if selected:
            roots = [self._get_shared_node(db, share, node_id) for node_id in selected]
        else:
            roots = share_item_crud.shared_nodes(db, share.id)
        if not roots:
            raise AppException("分享中没有可保存的文件", HTTP_STATUS_NOT_FOUND)

        user = user_crud.get(db, user_id)
        if user is None:
            raise AppException("用户不存在", HTTP_STATUS_NOT_FOUND)
        target: Optional[FileNode] = None
        parent_id = normalize_parent_id(target_folder_id)
        if parent_id is not None:
            target = file_node_crud.get_owned(db, user_id, parent_id)
            if target is None or not target.is_folder:
                raise AppException("目标文件夹不存在", HTTP_STATUS_NOT_FOUND)
        target_id = target.id if target else None

        # (根节点, 按父先子后排列的后代)
        plan = [
            (root, file_node_crud.descendants(db, share.owner_id, [root.id]) if root.is_folder else [])
            for root in roots
        ]
        # 同时选中文件夹及其内部节点时只复制一次
        covered = {node.id for _, nodes in plan for node in nodes}
        plan = [(root, nodes) for root, nodes in plan if root.id not in covered]
        required = sum(
            int(node.size or 0) for root, nodes in plan for node in [root, *nodes] if not node.is_folder
        )
        quota_service.ensure_capacity(user, required)

        copied_keys: List[str] = []
        saved_roots: List[FileNode] = []
        file_count = folder_count = written_total = 0
        try:
            for root, nodes in plan:
                name = self._unique_name(db, user_id, target_id, root.name, bool(root.is_folder))
                saved = self._copy_node(db, user_id, root, target, name, blob_store, copied_keys)
                saved_roots.append(saved)
                mapping = {root.id: saved}
                for node in nodes:
                    parent = mapping[node.parent_id]
                    mapping[node.id] = self._copy_node(db, user_id, node, parent, node.name, blob_store, copied_keys)
                for created in mapping.values():
                    if created.is_folder:
                        folder_count += 1
                    else:
                        file_count += 1
                        written_total += int(created.size or 0)
            quota_service.ensure_capacity(user, written_total)
            quota_service.adjust_usage(db, user_id, written_total)
            db.commit()
        except Exception:
            db.rollback()
            for key in copied_keys:
                self._discard_blob(blob_store, key)
            raise
        logger.info(
            "Share saved: share=%s user=%s files=%s folders=%s size=%s",
            share.id, user_id, file_count, folder_count, written_total,
        )
        return {
            "savedFiles": file_count,
            "savedFolders": folder_count,
            "totalSize": written_total,
            "items": [serialize_node(node) for node in saved_roots],
        }

    def _copy_node(
        self,
        db: Session,
        owner_id: int,
        source: FileNode,
        parent: Optional[FileNode],
        name: str,
        blob_store: BlobStore,
        copied_keys: List[str],
    ) -> FileNode:
        """复制单个节点的元数据（文件同时复制数据块），不提交。"""
        node_id = str(uuid.uuid4())
        values: Dict[str, Any] = {
            "id": node_id,
            "owner_id": owner_id,
            "parent_id": parent.id if parent else None,
            "name": name,
            "is_folder": bool(source.is_folder),
            "path": node_path(parent, name),
            "size": 0,
            "tags": list(source.tags or []),
        }
        if not source.is_folder:
            if not source.storage_key:
                raise AppException(f"文件内容不存在: {source.name}", HTTP_STATUS_NOT_FOUND)
            storage_key = new_storage_key(owner_id, name)
            try:
                written = blob_store.copy(source.storage_key, storage_key)
            except FileNotFoundError as exc:
                logger.warning("Blob %s missing while saving shared file %s", source.storage_key, source.id)
                raise AppException(f"文件内容不存在: {source.name}", HTTP_STATUS_NOT_FOUND) from exc
            copied_keys.append(storage_key)
            values.update(
                size=written,
                mime_type=source.mime_type,
                storage_key=storage_key,
                url=content_url(get_settings().api_v1_str, node_id, name),
            )
        return file_node_crud.create(db, values, auto_commit=False)

    @staticmethod
    def _discard_blob(blob_store: BlobStore, storage_key: str) -> None:
        try:
            blob_store.delete(storage_key)
        except Exception:
            logger.warning("Failed to remove copied blob %s after save failure", storage_key, exc_info=True)


share_service = ShareService()
