"""收藏夹与收藏记录的集成测试。"""

from fastapi.testclient import TestClient

from app.packages.drive.models.favorite import FavoriteFolder
from app.packages.drive.services.favorite_service import favorite_service


def _upload(client: TestClient, headers, name):
    response = client.post(
        "/api/v1/files/upload",
        files=[("files", (name, b"fav", "text/plain"))],
        headers=headers,
    )
    return response.json()["data"][0]


def _folders(client: TestClient, headers):
    return client.get("/api/v1/storage/favorites/folders", headers=headers).json()["data"]


def test_default_folder_created_on_first_access(client: TestClient, auth_headers):
    folders = _folders(client, auth_headers)
    assert len(folders) == 1
    assert folders[0]["name"] == "默认收藏夹"
    assert folders[0]["isDefault"] is True


def test_add_list_and_remove_favorites(client: TestClient, auth_headers):
    one = _upload(client, auth_headers, "one.txt")
    two = _upload(client, auth_headers, "two.txt")

    added = client.post(
        "/api/v1/storage/favorites/add", json={"fileIds": [one["id"], two["id"]]}, headers=auth_headers
    )
    assert added.status_code == 200
    assert added.json()["data"] == {"addedCount": 2}

    again = client.post("/api/v1/storage/favorites/add", json={"fileIds": [one["id"]]}, headers=auth_headers)
    assert again.json()["data"] == {"addedCount": 0}

    listing = client.get("/api/v1/storage/favorites", headers=auth_headers).json()["data"]
    assert listing["total"] == 2
    assert {item["name"] for item in listing["items"]} == {"one.txt", "two.txt"}
    assert all(item["favoriteFolderName"] == "默认收藏夹" for item in listing["items"])

    removed = client.post("/api/v1/storage/favorites/remove", json={"fileIds": [one["id"]]}, headers=auth_headers)
    assert removed.json()["data"] == {"removedCount": 1}
    assert _folders(client, auth_headers)[0]["fileCount"] == 1


def test_deleted_file_leaves_favorites(client: TestClient, auth_headers):
    node = _upload(client, auth_headers, "temp.txt")
    client.post("/api/v1/storage/favorites/add", json={"fileIds": [node["id"]]}, headers=auth_headers)
    client.post("/api/v1/files/delete", json={"fileIds": [node["id"]]}, headers=auth_headers)

    listing = client.get("/api/v1/storage/favorites", headers=auth_headers).json()["data"]
    assert listing["total"] == 0


def test_new_default_folder_demotes_previous(client: TestClient, auth_headers):
    _folders(client, auth_headers)
    created = client.post(
        "/api/v1/storage/favorites/folders",
        json={"name": "Work", "isDefault": True},
        headers=auth_headers,
    )
    assert created.status_code == 201

    folders = _folders(client, auth_headers)
    defaults = [folder for folder in folders if folder["isDefault"]]
    assert [folder["name"] for folder in defaults] == ["Work"]


def test_cannot_unset_or_delete_default_folder(client: TestClient, auth_headers):
    default = _folders(client, auth_headers)[0]

    unset = client.put(
        f"/api/v1/storage/favorites/folders/{default['id']}", json={"isDefault": False}, headers=auth_headers
    )
    assert unset.status_code == 400

    deleted = client.delete(f"/api/v1/storage/favorites/folders/{default['id']}", headers=auth_headers)
    assert deleted.status_code == 403
    assert deleted.json()["msg"] == "不能删除默认收藏夹"


def test_delete_folder_moves_favorites_to_default(client: TestClient, auth_headers):
    shared = _upload(client, auth_headers, "shared.txt")
    only = _upload(client, auth_headers, "only.txt")
    client.post("/api/v1/storage/favorites/add", json={"fileIds": [shared["id"]]}, headers=auth_headers)

    extra = client.post(
        "/api/v1/storage/favorites/folders", json={"name": "Extra"}, headers=auth_headers
    ).json()["data"]
    client.post(
        "/api/v1/storage/favorites/add",
        json={"fileIds": [shared["id"], only["id"]], "folderId": extra["id"]},
        headers=auth_headers,
    )

    response = client.delete(f"/api/v1/storage/favorites/folders/{extra['id']}", headers=auth_headers)
    assert response.status_code == 200

    folders = _folders(client, auth_headers)
    assert len(folders) == 1
    assert folders[0]["fileCount"] == 2


def test_update_folder_rename(client: TestClient, auth_headers):
    extra = client.post(
        "/api/v1/storage/favorites/folders", json={"name": "Old", "description": "d"}, headers=auth_headers
    ).json()["data"]
    response = client.put(
        f"/api/v1/storage/favorites/folders/{extra['id']}", json={"name": "Renamed"}, headers=auth_headers
    )
    assert response.status_code == 200
    assert response.json()["data"]["name"] == "Renamed"
    assert response.json()["data"]["description"] == "d"


def test_fix_default_folders(client: TestClient, user_account, admin_headers, db_session_fixture):
    """同一用户存在多个默认收藏夹时，保留最早的一个。"""
    owner_id = user_account["id"]
    first = favorite_service.get_or_create_default_folder(db_session_fixture, owner_id)
    db_session_fixture.add(FavoriteFolder(owner_id=owner_id, name="Second", is_default=True))
    db_session_fixture.commit()

    response = client.post("/api/v1/maintenance/favorites/fix-defaults", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["usersFixed"] >= 1
    assert data["foldersDemoted"] >= 1

    folders = _folders(client, user_account["headers"])
    defaults = [folder for folder in folders if folder["isDefault"]]
    assert [folder["id"] for folder in defaults] == [first.id]
