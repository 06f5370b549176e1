"""数据块存储：按不透明的 key 读写文件内容，提供本地文件系统与 S3 两种实现。

元数据（名称、路径、归属）全部保存在数据库中，这里只关心字节本身；
key 在分配后不再变化，重命名/移动都不会触碰数据块。
"""

from __future__ import annotations

import io
import os
import shutil
import uuid
from pathlib import Path
from typing import BinaryIO, Iterator, Optional, Union

import boto3
from botocore.exceptions import ClientError

from app.packages.drive.core.config import Settings, get_settings
from app.packages.drive.core.constants import HTTP_STATUS_BAD_REQUEST, HTTP_STATUS_INTERNAL_ERROR
from app.packages.drive.core.exceptions import AppException
from app.packages.drive.core.logger import logger

Payload = Union[bytes, BinaryIO]


def new_storage_key(owner_id: int, filename: str) -> str:
    """生成新的数据块 key：``<owner>/<uuid><ext>``，保留扩展名便于排查。"""
    ext = os.path.splitext(filename)[1].lower()
    if len(ext) > 16:
        ext = ""
    return f"{owner_id}/{uuid.uuid4().hex}{ext}"


class BlobStore:
    """数据块存储接口。缺失的 key 在 ``open``/``read`` 时抛出 ``FileNotFoundError``。"""

    def write(self, key: str, payload: Payload) -> int:
        """写入内容并返回写入的字节数。"""
        raise NotImplementedError

    def open(self, key: str) -> Iterator[bytes]:
        """以分块迭代器的形式读取内容，用于流式下载。"""
        raise NotImplementedError

    def read(self, key: str) -> bytes:
        return b"".join(self.open(key))

    def copy(self, src_key: str, dst_key: str) -> int:
        """复制数据块到新的 key，返回复制的字节数；源不存在时抛出 ``FileNotFoundError``。"""
        return self.write(dst_key, self.read(src_key))

    def delete(self, key: str) -> bool:
        """删除数据块；存在并已删除返回 ``True``，原本不存在返回 ``False``。"""
        raise NotImplementedError

    def exists(self, key: str) -> bool:
        raise NotImplementedError


# ------------------------------------------
# 本地文件系统实现
# ------------------------------------------


class LocalBlobStore(BlobStore):
    def __init__(self, root: Union[str, Path], *, chunk_size: int = 1024 * 1024):
        self.root = Path(root).resolve()
        self.chunk_size = max(int(chunk_size), 1)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:  # pragma: no cover - 极端情况下可能失败
            raise AppException(f"无法创建本地存储目录: {exc}", HTTP_STATUS_INTERNAL_ERROR) from exc

    # 统一的安全路径拼接，防止路径遍历
    def _resolve(self, key: str) -> Path:
        candidate = (self.root / key.strip().lstrip("/")).resolve()
        try:
            candidate.relative_to(self.root)
        except ValueError as exc:
            raise AppException("非法存储键: 越权访问", HTTP_STATUS_BAD_REQUEST) from exc
        if candidate == self.root:
            raise AppException("非法存储键", HTTP_STATUS_BAD_REQUEST)
        return candidate

    def write(self, key: str, payload: Payload) -> int:
        target = self._resolve(key)
        target.parent.mkdir(parents=True, exist_ok=True)
        stream = io.BytesIO(payload) if isinstance(payload, (bytes, bytearray)) else payload
        tmp = target.with_name(target.name + ".part")
        written = 0
        try:
            with open(tmp, "wb") as fh:
                while True:
                    chunk = stream.read(self.chunk_size)
                    if not chunk:
                        break
                    fh.write(chunk)
                    written += len(chunk)
            os.replace(tmp, target)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
        return written

    def open(self, key: str) -> Iterator[bytes]:
        target = self._resolve(key)
        if not target.is_file():
            raise FileNotFoundError(key)
        return self._iter_file(target)

    def _iter_file(self, target: Path) -> Iterator[bytes]:
        with open(target, "rb") as fh:
            while True:
                chunk = fh.read(self.chunk_size)
                if not chunk:
                    break
                yield chunk

    def copy(self, src_key: str, dst_key: str) -> int:
        source = self._resolve(src_key)
        if not source.is_file():
            raise FileNotFoundError(src_key)
        target = self._resolve(dst_key)
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_name(target.name + ".part")
        try:
            shutil.copyfile(source, tmp)
            os.replace(tmp, target)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
        return target.stat().st_size

    def delete(self, key: str) -> bool:
        target = self._resolve(key)
        if not target.exists():
            return False
        target.unlink()
        return True

    def exists(self, key: str) -> bool:
        return self._resolve(key).is_file()


# ------------------------------------------
# S3 实现（boto3）
# ------------------------------------------


class S3BlobStore(BlobStore):
    def __init__(
        self,
        *,
        bucket: str,
        region: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        prefix: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        chunk_size: int = 1024 * 1024,
        client=None,
    ):
        self.bucket = bucket
        self.prefix = (prefix or "").strip("/")
        self.chunk_size = max(int(chunk_size), 1)
        self._client = client or boto3.client(
            "s3",
            region_name=region,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            endpoint_url=endpoint_url,
        )

    # 拼接基于 prefix 的对象 key
    def _join_key(self, key: str) -> str:
        key_norm = key.strip().lstrip("/")
        if not key_norm:
            raise AppException("非法存储键", HTTP_STATUS_BAD_REQUEST)
        return f"{self.prefix}/{key_norm}" if self.prefix else key_norm

    @staticmethod
    def _is_missing(exc: ClientError) -> bool:
        code = str(exc.response.get("Error", {}).get("Code", ""))
        return code in {"404", "NoSuchKey", "NotFound"}

    def write(self, key: str, payload: Payload) -> int:
        stream = io.BytesIO(payload) if isinstance(payload, (bytes, bytearray)) else payload
        counter = _CountingReader(stream)
        self._client.upload_fileobj(counter, self.bucket, self._join_key(key))
        return counter.count

    def open(self, key: str) -> Iterator[bytes]:
        try:
            resp = self._client.get_object(Bucket=self.bucket, Key=self._join_key(key))
        except ClientError as exc:
            if self._is_missing(exc):
                raise FileNotFoundError(key) from exc
            raise
        return resp["Body"].iter_chunks(chunk_size=self.chunk_size)

    def copy(self, src_key: str, dst_key: str) -> int:
        source = self._join_key(src_key)
        try:
            head = self._client.head_object(Bucket=self.bucket, Key=source)
        except ClientError as exc:
            if self._is_missing(exc):
                raise FileNotFoundError(src_key) from exc
            raise
        # 服务端复制，不经过本进程
        self._client.copy_object(
            Bucket=self.bucket,
            Key=self._join_key(dst_key),
            CopySource={"Bucket": self.bucket, "Key": source},
        )
        return int(head.get("ContentLength", 0))

    def delete(self, key: str) -> bool:
        # S3 删除不存在的对象同样成功，先探测以区分两种情况
        existed = self.exists(key)
        if existed:
            self._client.delete_object(Bucket=self.bucket, Key=self._join_key(key))
        return existed

    def exists(self, key: str) -> bool:
        try:
            self._client.head_object(Bucket=self.bucket, Key=self._join_key(key))
        except ClientError as exc:
            if self._is_missing(exc):
                return False
            raise
        return True


class _CountingReader:
    """包装上传流以统计实际写入的字节数。"""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream
        self.count = 0

    def read(self, size: int = -1) -> bytes:
        chunk = self._stream.read(size)
        self.count += len(chunk)
        return chunk


def build_blob_store(settings: Optional[Settings] = None) -> BlobStore:
    """根据 ``BLOB_BACKEND`` 构造数据块存储实例。"""
    settings = settings or get_settings()
    backend = (settings.blob_backend or "").upper()
    if backend == "LOCAL":
        return LocalBlobStore(settings.storage_directory, chunk_size=settings.upload_chunk_size)
    if backend == "S3":
        if not settings.s3_bucket:
            raise AppException("S3 配置不完整", HTTP_STATUS_INTERNAL_ERROR)
        logger.info("Blob store initialized with S3 bucket %s", settings.s3_bucket)
        return S3BlobStore(
            bucket=settings.s3_bucket,
            region=settings.s3_region,
            access_key_id=settings.s3_access_key_id,
            secret_access_key=settings.s3_secret_access_key,
            prefix=settings.s3_prefix,
            endpoint_url=settings.s3_endpoint_url,
            chunk_size=settings.upload_chunk_size,
        )
    raise AppException("不支持的存储类型", HTTP_STATUS_INTERNAL_ERROR)
