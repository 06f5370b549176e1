"""回收站清理任务的测试：保留期边界、分批上限、两阶段删除与死信记录。"""

import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from app.packages.drive.models.file_node import FileNode
from app.packages.drive.models.maintenance_log import MaintenanceLog
from app.packages.drive.models.user import User
from app.packages.drive.services.blob_store import LocalBlobStore
from app.packages.drive.services.cleanup_service import cleanup_service

CRON_SECRET = "test-cron-secret"
# 人为构造的删除时间都早于该时间点，避免与其他用例产生的回收站数据互相影响
EPOCH = datetime(2000, 1, 10, tzinfo=timezone.utc)
CUTOFF = datetime(2010, 1, 1, tzinfo=timezone.utc)


class FailingBlobStore(LocalBlobStore):
    def delete(self, key: str) -> bool:
        raise OSError(f"storage offline: {key}")


def _purge_synthetic_rows(db) -> None:
    db.query(FileNode).filter(FileNode.deleted_at.is_not(None), FileNode.deleted_at < CUTOFF).delete(
        synchronize_session=False
    )
    db.commit()


@pytest.fixture()
def db(db_session_fixture):
    _purge_synthetic_rows(db_session_fixture)
    yield db_session_fixture
    db_session_fixture.rollback()
    _purge_synthetic_rows(db_session_fixture)


@pytest.fixture()
def blob_store(tmp_path):
    return LocalBlobStore(tmp_path / "blobs")


@pytest.fixture()
def owner(db):
    user = User(username=f"cleanup_{uuid.uuid4().hex[:8]}", hashed_password="x", is_active=True, storage_used=0)
    db.add(user)
    db.commit()
    return user


def _trashed_file(db, owner, blob_store, name, deleted_at, parent=None):
    key = f"{owner.id}/{uuid.uuid4().hex}.bin"
    blob_store.write(key, b"payload")
    node = FileNode(
        owner_id=owner.id,
        parent_id=parent.id if parent else None,
        name=name,
        is_folder=False,
        path=f"{parent.path if parent else ''}/{name}",
        size=7,
        storage_key=key,
        tags=[],
        is_deleted=True,
        deleted_at=deleted_at,
    )
    db.add(node)
    db.commit()
    return SimpleNamespace(id=node.id, path=node.path, storage_key=node.storage_key)


def _trashed_folder(db, owner, name, deleted_at, parent=None, path=None):
    node = FileNode(
        owner_id=owner.id,
        parent_id=parent.id if parent else None,
        name=name,
        is_folder=True,
        path=path or f"{parent.path if parent else ''}/{name}",
        size=0,
        tags=[],
        is_deleted=True,
        deleted_at=deleted_at,
    )
    db.add(node)
    db.commit()
    return SimpleNamespace(id=node.id, path=node.path, storage_key=node.storage_key)


def _exists(db, node_id) -> bool:
    db.expire_all()
    return db.get(FileNode, node_id) is not None


def test_retention_boundary(db, owner, blob_store):
    """删除时间恰在截止点之后的节点保留，早于截止点的节点被清理。"""
    retention_date = EPOCH - timedelta(days=7)
    fresh = _trashed_file(db, owner, blob_store, "fresh.txt", retention_date + timedelta(seconds=1))
    stale = _trashed_file(db, owner, blob_store, "stale.txt", retention_date - timedelta(seconds=1))

    stats = cleanup_service.run(db, blob_store, retention_days=7, now=EPOCH)

    assert stats["deletedFiles"] == 1
    assert stats["deletedRecords"] == 1
    assert stats["errorCount"] == 0
    assert _exists(db, fresh.id)
    assert not _exists(db, stale.id)
    assert blob_store.exists(fresh.storage_key)
    assert not blob_store.exists(stale.storage_key)


def test_bounded_batch_purges_one_per_run(db, owner, blob_store):
    older = _trashed_file(db, owner, blob_store, "older.txt", EPOCH - timedelta(days=30))
    newer = _trashed_file(db, owner, blob_store, "newer.txt", EPOCH - timedelta(days=20))

    first = cleanup_service.run(db, blob_store, retention_days=7, max_files=1, now=EPOCH)
    assert first["deletedFiles"] == 1
    assert not _exists(db, older.id)
    assert _exists(db, newer.id)

    second = cleanup_service.run(db, blob_store, retention_days=7, max_files=1, now=EPOCH)
    assert second["deletedFiles"] == 1
    assert not _exists(db, newer.id)

    third = cleanup_service.run(db, blob_store, retention_days=7, max_files=1, now=EPOCH)
    assert third["deletedFiles"] == 0
    assert third["deletedRecords"] == 0


def test_folder_purged_only_after_children(db, owner, blob_store):
    folder = _trashed_folder(db, owner, "Old", EPOCH - timedelta(days=30))
    child = _trashed_file(db, owner, blob_store, "inner.txt", EPOCH - timedelta(days=30), parent=folder)
    recent = _trashed_file(db, owner, blob_store, "recent.txt", EPOCH - timedelta(days=1), parent=folder)

    stats = cleanup_service.run(db, blob_store, retention_days=7, now=EPOCH)
    assert stats["deletedFolders"] == 0
    assert not _exists(db, child.id)
    assert _exists(db, folder.id)

    later = EPOCH + timedelta(days=30)
    stats = cleanup_service.run(db, blob_store, retention_days=7, now=later)
    assert stats["deletedFiles"] == 1
    assert stats["deletedFolders"] == 1
    assert not _exists(db, recent.id)
    assert not _exists(db, folder.id)


def test_nested_folders_purge_bottom_up_by_parent_chain(db, owner, blob_store):
    """子文件夹的缓存路径比父文件夹短时，仍按父子关系先清理子文件夹。"""
    outer = _trashed_folder(db, owner, "Alongername", EPOCH - timedelta(days=30))
    inner = _trashed_folder(db, owner, "C", EPOCH - timedelta(days=30), parent=outer, path="/A/C")

    first = cleanup_service.run(db, blob_store, retention_days=7, max_folders=1, now=EPOCH)
    assert first["deletedFolders"] == 1
    assert first["deletedRecords"] == 1
    assert not _exists(db, inner.id)
    assert _exists(db, outer.id)

    second = cleanup_service.run(db, blob_store, retention_days=7, max_folders=1, now=EPOCH)
    assert second["deletedFolders"] == 1
    assert not _exists(db, outer.id)


def test_folder_chain_purged_in_single_run(db, owner, blob_store):
    top = _trashed_folder(db, owner, "Top", EPOCH - timedelta(days=30))
    middle = _trashed_folder(db, owner, "Middle", EPOCH - timedelta(days=30), parent=top)
    bottom = _trashed_folder(db, owner, "Bottom", EPOCH - timedelta(days=30), parent=middle)
    leaf = _trashed_file(db, owner, blob_store, "leaf.txt", EPOCH - timedelta(days=30), parent=bottom)

    stats = cleanup_service.run(db, blob_store, retention_days=7, now=EPOCH)
    assert stats["deletedFiles"] == 1
    assert stats["deletedFolders"] == 3
    assert stats["deletedRecords"] == 4
    for node in (top, middle, bottom, leaf):
        assert not _exists(db, node.id)


def test_missing_blob_still_purges_record(db, owner, blob_store):
    node = _trashed_file(db, owner, blob_store, "ghost.txt", EPOCH - timedelta(days=30))
    blob_store.delete(node.storage_key)

    stats = cleanup_service.run(db, blob_store, retention_days=7, now=EPOCH)
    assert stats["deletedFiles"] == 0
    assert stats["deletedRecords"] == 1
    assert not _exists(db, node.id)


def test_failed_blob_delete_is_retried_then_dead_lettered(db, owner, tmp_path, monkeypatch):
    from app.packages.drive.core.config import get_settings

    monkeypatch.setattr(get_settings(), "purge_max_attempts", 2)
    store = FailingBlobStore(tmp_path / "failing")
    node = _trashed_file(db, owner, store, "stuck.txt", EPOCH - timedelta(days=30))

    first = cleanup_service.run(db, store, retention_days=7, now=EPOCH)
    assert first["errorCount"] == 1
    assert first["deletedRecords"] == 0
    db.expire_all()
    kept = db.get(FileNode, node.id)
    assert kept.purge_attempts == 1
    assert "storage offline" in kept.purge_error

    second = cleanup_service.run(db, store, retention_days=7, now=EPOCH)
    assert second["errorCount"] == 1
    assert second["deletedRecords"] == 1
    assert not _exists(db, node.id)

    entry = (
        db.query(MaintenanceLog)
        .filter(MaintenanceLog.type == "purge_dead_letter")
        .order_by(MaintenanceLog.id.desc())
        .first()
    )
    assert entry is not None
    assert entry.details["fileId"] == node.id
    assert entry.details["storageKey"] == node.storage_key
    assert entry.details["attempts"] == 2


def test_cleanup_writes_history(db, owner, blob_store):
    _trashed_file(db, owner, blob_store, "logged.txt", EPOCH - timedelta(days=30))
    cleanup_service.run(db, blob_store, retention_days=7, now=EPOCH)

    entry = (
        db.query(MaintenanceLog)
        .filter(MaintenanceLog.type == "cleanup")
        .order_by(MaintenanceLog.id.desc())
        .first()
    )
    assert entry.details["deletedRecords"] == 1
    assert entry.details["retentionDays"] == 7


def test_negative_retention_is_rejected(db, blob_store):
    from app.packages.drive.core.exceptions import AppException

    with pytest.raises(AppException) as exc_info:
        cleanup_service.run(db, blob_store, retention_days=-1, now=EPOCH)
    assert exc_info.value.status_code == 400


def test_cron_cleanup_requires_secret(client: TestClient):
    assert client.get("/api/v1/cron/cleanup").status_code == 401
    wrong = client.get("/api/v1/cron/cleanup", headers={"Authorization": "Bearer nope"})
    assert wrong.status_code == 401
    assert wrong.json()["msg"] == "未授权的访问"


def test_cron_cleanup_runs_with_secret(client: TestClient):
    response = client.get("/api/v1/cron/cleanup", headers={"Authorization": f"Bearer {CRON_SECRET}"})
    assert response.status_code == 200
    assert set(response.json()["data"]) == {
        "deletedFiles",
        "deletedFolders",
        "deletedRecords",
        "errorCount",
        "duration",
    }


def test_cron_cleanup_disabled_without_secret(client: TestClient, monkeypatch):
    from app.packages.drive.core.config import get_settings

    monkeypatch.setattr(get_settings(), "cron_secret", "")
    response = client.get("/api/v1/cron/cleanup", headers={"Authorization": "Bearer "})
    assert response.status_code == 401


def test_admin_cleanup_with_zero_retention(client: TestClient, auth_headers, admin_headers):
    """retentionDays=0 会立即清理刚删除的文件。"""
    uploaded = client.post(
        "/api/v1/files/upload",
        files=[("files", ("purge-me.txt", b"bye", "text/plain"))],
        headers=auth_headers,
    ).json()["data"][0]
    client.post("/api/v1/files/delete", json={"fileIds": [uploaded["id"]]}, headers=auth_headers)

    response = client.post("/api/v1/maintenance/cleanup", json={"retentionDays": 0}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["deletedRecords"] >= 1

    logs = client.get("/api/v1/maintenance/logs", params={"type": "cleanup"}, headers=admin_headers)
    assert logs.status_code == 200
    assert logs.json()["data"]["items"][0]["type"] == "cleanup"


def test_admin_cleanup_rejects_negative_retention(client: TestClient, admin_headers):
    response = client.post("/api/v1/maintenance/cleanup", json={"retentionDays": -1}, headers=admin_headers)
    assert response.status_code == 400
