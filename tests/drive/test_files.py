"""文件上传、下载、重命名、移动、删除、搜索与标签的集成测试。"""

from fastapi.testclient import TestClient

from app.packages.drive.models.file_node import FileNode


def _create_folder(client: TestClient, headers, name, parent_id=None):
    body = {"name": name, "parentId": parent_id}
    response = client.post("/api/v1/folders", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def _upload(client: TestClient, headers, name, content=b"data", folder_id=None, **extra):
    data = dict(extra)
    if folder_id:
        data["folderId"] = folder_id
    response = client.post(
        "/api/v1/files/upload",
        files=[("files", (name, content, "text/plain"))],
        data=data,
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["data"][0]


def test_upload_and_download(client: TestClient, auth_headers):
    folder = _create_folder(client, auth_headers, "Docs")
    node = _upload(client, auth_headers, "hello.txt", b"hello world", folder["id"], tags="work, draft")
    assert node["path"] == "/Docs/hello.txt"
    assert node["parentId"] == folder["id"]
    assert node["size"] == 11
    assert node["mimeType"] == "text/plain"
    assert node["tags"] == ["work", "draft"]
    assert node["url"].endswith(f"/files/{node['id']}/content?filename=hello.txt")

    response = client.get(f"/api/v1/files/{node['id']}/content", headers=auth_headers)
    assert response.status_code == 200
    assert response.content == b"hello world"
    assert "hello.txt" in response.headers["content-disposition"]


def test_upload_multiple_files_with_json_tags(client: TestClient, auth_headers):
    response = client.post(
        "/api/v1/files/upload",
        files=[
            ("files", ("one.txt", b"1", "text/plain")),
            ("files", ("two.txt", b"22", "text/plain")),
        ],
        data={"tags": '["batch"]'},
        headers=auth_headers,
    )
    assert response.status_code == 201
    items = response.json()["data"]
    assert [item["name"] for item in items] == ["one.txt", "two.txt"]
    assert all(item["tags"] == ["batch"] for item in items)


def test_upload_with_relative_paths_creates_folders(client: TestClient, auth_headers):
    response = client.post(
        "/api/v1/files/upload",
        files=[
            ("files", ("main.py", b"print(1)", "text/x-python")),
            ("files", ("util.py", b"pass", "text/x-python")),
        ],
        data={"paths": ["proj/src/main.py", "proj/src/util.py"]},
        headers=auth_headers,
    )
    assert response.status_code == 201
    paths = [item["path"] for item in response.json()["data"]]
    assert paths == ["/proj/src/main.py", "/proj/src/util.py"]


def test_upload_duplicate_name_conflicts(client: TestClient, auth_headers):
    _upload(client, auth_headers, "dup.txt")
    response = client.post(
        "/api/v1/files/upload",
        files=[("files", ("dup.txt", b"again", "text/plain"))],
        headers=auth_headers,
    )
    assert response.status_code == 409


def test_list_files_pagination_and_sorting(client: TestClient, auth_headers):
    folder = _create_folder(client, auth_headers, "Sorted")
    _create_folder(client, auth_headers, "zz-sub", folder["id"])
    _upload(client, auth_headers, "small.txt", b"1", folder["id"])
    _upload(client, auth_headers, "large.txt", b"12345", folder["id"])

    response = client.get(
        "/api/v1/files",
        params={"folderId": folder["id"], "sortBy": "size", "sortOrder": "desc"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total"] == 3
    assert [item["name"] for item in data["items"]] == ["zz-sub", "large.txt", "small.txt"]

    page = client.get(
        "/api/v1/files",
        params={"folderId": folder["id"], "page": 2, "pageSize": 2},
        headers=auth_headers,
    ).json()["data"]
    assert page["page"] == 2
    assert page["pageSize"] == 2
    assert [item["name"] for item in page["items"]] == ["small.txt"]


def test_list_files_rejects_bad_parameters(client: TestClient, auth_headers):
    assert client.get("/api/v1/files", params={"pageSize": 0}, headers=auth_headers).status_code == 400
    assert client.get("/api/v1/files", params={"page": 0}, headers=auth_headers).status_code == 400
    assert client.get("/api/v1/files", params={"sortBy": "owner"}, headers=auth_headers).status_code == 400
    assert client.get("/api/v1/files", params={"type": "binary"}, headers=auth_headers).status_code == 400


def test_list_files_filters_by_mime_family(client: TestClient, auth_headers):
    folder = _create_folder(client, auth_headers, "Media")
    _create_folder(client, auth_headers, "image-sub", folder["id"])
    response = client.post(
        "/api/v1/files/upload",
        files=[
            ("files", ("photo.png", b"\x89PNG", "image/png")),
            ("files", ("scan.jpg", b"\xff\xd8", "image/jpeg")),
            ("files", ("notes.txt", b"text", "text/plain")),
        ],
        data={"folderId": folder["id"]},
        headers=auth_headers,
    )
    assert response.status_code == 201, response.text

    data = client.get(
        "/api/v1/files", params={"folderId": folder["id"], "type": "image"}, headers=auth_headers
    ).json()["data"]
    assert data["total"] == 2
    assert sorted(item["name"] for item in data["items"]) == ["photo.png", "scan.jpg"]
    assert all(not item["isFolder"] and item["mimeType"].startswith("image/") for item in data["items"])

    text_only = client.get(
        "/api/v1/files", params={"folderId": folder["id"], "type": "text"}, headers=auth_headers
    ).json()["data"]
    assert [item["name"] for item in text_only["items"]] == ["notes.txt"]


def test_rename_file_updates_path_and_url(client: TestClient, auth_headers):
    node = _upload(client, auth_headers, "old.txt")
    response = client.post(
        f"/api/v1/files/{node['id']}/rename", json={"newName": "new.txt"}, headers=auth_headers
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["name"] == "new.txt"
    assert data["path"] == "/new.txt"
    assert data["url"].endswith("filename=new.txt")

    # 数据块 key 不变，内容仍可下载
    content = client.get(f"/api/v1/files/{node['id']}/content", headers=auth_headers)
    assert content.content == b"data"


def test_rename_conflicts_and_validation(client: TestClient, auth_headers):
    first = _upload(client, auth_headers, "first.txt")
    _upload(client, auth_headers, "second.txt")

    conflict = client.post(
        "/api/v1/files/rename",
        json={"fileId": first["id"], "newName": "second.txt"},
        headers=auth_headers,
    )
    assert conflict.status_code == 409

    invalid = client.post(
        "/api/v1/files/rename",
        json={"fileId": first["id"], "newName": "bad/name.txt"},
        headers=auth_headers,
    )
    assert invalid.status_code == 400

    missing = client.post(
        "/api/v1/files/rename",
        json={"fileId": "missing-id", "newName": "x.txt"},
        headers=auth_headers,
    )
    assert missing.status_code == 404


def test_rename_foreign_file_is_forbidden(client: TestClient, auth_headers, admin_headers):
    node = _upload(client, admin_headers, "admin-only.txt")
    response = client.post(
        f"/api/v1/files/{node['id']}/rename", json={"newName": "mine.txt"}, headers=auth_headers
    )
    assert response.status_code == 403
    client.post("/api/v1/files/delete", json={"fileIds": [node["id"]]}, headers=admin_headers)


def test_rename_folder_cascades_descendant_paths(client: TestClient, auth_headers):
    docs = _create_folder(client, auth_headers, "Docs")
    year = _create_folder(client, auth_headers, "2024", docs["id"])
    node = _upload(client, auth_headers, "report.txt", folder_id=year["id"])

    response = client.patch(f"/api/v1/files/{docs['id']}", json={"name": "Papers"}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["data"]["path"] == "/Papers"

    moved = client.get(f"/api/v1/files/{node['id']}", headers=auth_headers).json()["data"]
    assert moved["path"] == "/Papers/2024/report.txt"
    year_data = client.get(f"/api/v1/files/{year['id']}", headers=auth_headers).json()["data"]
    assert year_data["path"] == "/Papers/2024"


def test_rename_folder_updates_trashed_descendants(client: TestClient, auth_headers, db_session_fixture):
    outer = _create_folder(client, auth_headers, "A")
    inner = _create_folder(client, auth_headers, "C", outer["id"])
    trashed = _upload(client, auth_headers, "old.txt", folder_id=inner["id"])
    response = client.post("/api/v1/files/delete", json={"fileIds": [inner["id"]]}, headers=auth_headers)
    assert response.status_code == 200

    response = client.patch(f"/api/v1/files/{outer['id']}", json={"name": "Alongername"}, headers=auth_headers)
    assert response.status_code == 200

    db_session_fixture.expire_all()
    assert db_session_fixture.get(FileNode, inner["id"]).path == "/Alongername/C"
    assert db_session_fixture.get(FileNode, trashed["id"]).path == "/Alongername/C/old.txt"


def test_patch_updates_tags_only(client: TestClient, auth_headers):
    node = _upload(client, auth_headers, "tagged.txt")
    response = client.patch(
        f"/api/v1/files/{node['id']}", json={"tags": ["a", " a ", "b", ""]}, headers=auth_headers
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["name"] == "tagged.txt"
    assert data["tags"] == ["a", "b"]


def test_move_files_and_paths(client: TestClient, auth_headers):
    source = _create_folder(client, auth_headers, "Source")
    target = _create_folder(client, auth_headers, "Target")
    inner = _create_folder(client, auth_headers, "Inner", source["id"])
    leaf = _upload(client, auth_headers, "leaf.txt", folder_id=inner["id"])

    response = client.post(
        "/api/v1/files/move",
        json={"fileIds": [inner["id"]], "targetFolderId": target["id"]},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert response.json()["data"] == {"movedCount": 1}

    leaf_data = client.get(f"/api/v1/files/{leaf['id']}", headers=auth_headers).json()["data"]
    assert leaf_data["path"] == "/Target/Inner/leaf.txt"

    path = client.get(f"/api/v1/folders/{inner['id']}/path", headers=auth_headers).json()["data"]
    assert [segment["name"] for segment in path] == ["Target", "Inner"]


def test_move_folder_with_nested_selection(client: TestClient, auth_headers):
    outer = _create_folder(client, auth_headers, "Outer")
    child = _upload(client, auth_headers, "child.txt", folder_id=outer["id"])
    destination = _create_folder(client, auth_headers, "Destination")

    response = client.post(
        "/api/v1/files/move",
        json={"fileIds": [outer["id"], child["id"]], "targetFolderId": destination["id"]},
        headers=auth_headers,
    )
    assert response.status_code == 200
    child_data = client.get(f"/api/v1/files/{child['id']}", headers=auth_headers).json()["data"]
    assert child_data["parentId"] == destination["id"]
    assert child_data["path"] == "/Destination/child.txt"


def test_move_into_own_subtree_is_rejected(client: TestClient, auth_headers):
    parent = _create_folder(client, auth_headers, "Parent")
    child = _create_folder(client, auth_headers, "Child", parent["id"])

    into_child = client.post(
        "/api/v1/files/move",
        json={"fileIds": [parent["id"]], "targetFolderId": child["id"]},
        headers=auth_headers,
    )
    assert into_child.status_code == 400

    into_self = client.post(
        "/api/v1/files/move",
        json={"fileIds": [parent["id"]], "targetFolderId": parent["id"]},
        headers=auth_headers,
    )
    assert into_self.status_code == 400


def test_move_name_clash_in_target(client: TestClient, auth_headers):
    target = _create_folder(client, auth_headers, "Box")
    _upload(client, auth_headers, "same.txt", folder_id=target["id"])
    loose = _upload(client, auth_headers, "same.txt")

    response = client.post(
        "/api/v1/files/move",
        json={"fileIds": [loose["id"]], "targetFolderId": target["id"]},
        headers=auth_headers,
    )
    assert response.status_code == 409
    assert response.json()["data"] == {"conflicts": ["same.txt"]}


def test_move_to_root(client: TestClient, auth_headers):
    folder = _create_folder(client, auth_headers, "Nest")
    node = _upload(client, auth_headers, "up.txt", folder_id=folder["id"])
    response = client.post(
        "/api/v1/files/move",
        json={"fileIds": [node["id"]], "targetFolderId": "root"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    data = client.get(f"/api/v1/files/{node['id']}", headers=auth_headers).json()["data"]
    assert data["parentId"] is None
    assert data["path"] == "/up.txt"


def test_move_rejects_missing_or_foreign_ids(client: TestClient, auth_headers, admin_headers):
    target = _create_folder(client, auth_headers, "Dest")
    mine = _upload(client, auth_headers, "mine.txt")
    foreign = _upload(client, admin_headers, "theirs.txt")

    missing = client.post(
        "/api/v1/files/move",
        json={"fileIds": [mine["id"], "missing-id"], "targetFolderId": target["id"]},
        headers=auth_headers,
    )
    assert missing.status_code == 404

    forbidden = client.post(
        "/api/v1/files/move",
        json={"fileIds": [mine["id"], foreign["id"]], "targetFolderId": target["id"]},
        headers=auth_headers,
    )
    assert forbidden.status_code == 403

    # 整批被拒绝时合法的节点也保持原位
    data = client.get(f"/api/v1/files/{mine['id']}", headers=auth_headers).json()["data"]
    assert data["parentId"] is None
    assert data["path"] == "/mine.txt"


def test_delete_folder_hides_descendants(client: TestClient, auth_headers):
    folder = _create_folder(client, auth_headers, "Trash")
    node = _upload(client, auth_headers, "gone.txt", folder_id=folder["id"])

    response = client.post("/api/v1/files/delete", json={"fileIds": [folder["id"]]}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["data"] == {"deletedCount": 1}

    assert client.get(f"/api/v1/files/{node['id']}", headers=auth_headers).status_code == 404
    assert client.get(f"/api/v1/files/{folder['id']}", headers=auth_headers).status_code == 404
    names = [item["name"] for item in client.get("/api/v1/files", headers=auth_headers).json()["data"]["items"]]
    assert "Trash" not in names


def test_delete_is_idempotent(client: TestClient, auth_headers):
    """重复删除同一文件返回 404，且不会重复扣减已用空间。"""
    keep = _upload(client, auth_headers, "keep.txt", b"1234")
    node = _upload(client, auth_headers, "once.txt", b"123456")
    used_before = client.get("/api/v1/storage/quota", headers=auth_headers).json()["data"]["used"]
    assert used_before == 10

    first = client.post("/api/v1/files/delete", json={"fileIds": [node["id"]]}, headers=auth_headers)
    assert first.status_code == 200
    second = client.post("/api/v1/files/delete", json={"fileIds": [node["id"]]}, headers=auth_headers)
    assert second.status_code == 404

    quota = client.get("/api/v1/storage/quota", headers=auth_headers).json()["data"]
    assert quota["used"] == 4
    assert client.get(f"/api/v1/files/{keep['id']}", headers=auth_headers).status_code == 200


def test_delete_requires_ids(client: TestClient, auth_headers):
    response = client.post("/api/v1/files/delete", json={"fileIds": []}, headers=auth_headers)
    assert response.status_code == 400


def test_download_folder_is_rejected(client: TestClient, auth_headers):
    folder = _create_folder(client, auth_headers, "NoDownload")
    response = client.get(f"/api/v1/files/{folder['id']}/content", headers=auth_headers)
    assert response.status_code == 400


def test_search_by_name_and_tag(client: TestClient, auth_headers):
    _create_folder(client, auth_headers, "Report Archive")
    _upload(client, auth_headers, "Annual-REPORT.pdf", tags="finance")
    _upload(client, auth_headers, "notes.txt", tags="finance,personal")

    by_name = client.get("/api/v1/files/search", params={"query": "report"}, headers=auth_headers)
    assert by_name.status_code == 200
    names = [item["name"] for item in by_name.json()["data"]]
    assert names[0] == "Report Archive"
    assert set(names) == {"Report Archive", "Annual-REPORT.pdf"}

    files_only = client.get(
        "/api/v1/files/search", params={"query": "report", "includeFolders": "false"}, headers=auth_headers
    ).json()["data"]
    assert [item["name"] for item in files_only] == ["Annual-REPORT.pdf"]

    by_tag = client.get(
        "/api/v1/files/search", params={"query": "personal", "mode": "tag"}, headers=auth_headers
    ).json()["data"]
    assert [item["name"] for item in by_tag] == ["notes.txt"]

    # 标签必须精确匹配
    partial = client.get(
        "/api/v1/files/search", params={"query": "fin", "mode": "tag"}, headers=auth_headers
    ).json()["data"]
    assert partial == []


def test_search_requires_keyword(client: TestClient, auth_headers):
    response = client.get("/api/v1/files/search", params={"query": "  "}, headers=auth_headers)
    assert response.status_code == 400


def test_recent_files_follow_access(client: TestClient, auth_headers):
    first = _upload(client, auth_headers, "first.bin")
    _upload(client, auth_headers, "second.bin")
    client.get(f"/api/v1/files/{first['id']}/content", headers=auth_headers)

    response = client.get("/api/v1/files/recent", params={"limit": 2}, headers=auth_headers)
    assert response.status_code == 200
    assert [item["name"] for item in response.json()["data"]] == ["first.bin", "second.bin"]


def test_tags_endpoints(client: TestClient, auth_headers):
    one = _upload(client, auth_headers, "one.md")
    two = _upload(client, auth_headers, "two.md", tags="old")

    added = client.post(
        "/api/v1/storage/tags",
        json={"tag": "shared", "fileIds": [one["id"], two["id"]]},
        headers=auth_headers,
    )
    assert added.json()["data"] == {"updatedCount": 2}

    tags = client.get("/api/v1/storage/tags", headers=auth_headers).json()["data"]
    assert tags == ["old", "shared"]

    removed = client.post(
        "/api/v1/storage/tags/delete",
        json={"tag": "old", "fileIds": [one["id"], two["id"]]},
        headers=auth_headers,
    )
    assert removed.json()["data"] == {"updatedCount": 1}
    assert client.get("/api/v1/storage/tags", headers=auth_headers).json()["data"] == ["shared"]

    empty = client.post("/api/v1/storage/tags", json={"tag": " ", "fileIds": [one["id"]]}, headers=auth_headers)
    assert empty.status_code == 400
