"""测试夹具：为 pytest 提供数据库、数据块目录与客户端的共享配置。"""

import os
import shutil
import tempfile
import uuid
from typing import Dict, Generator

TEST_DB_PATH = os.path.join(os.path.dirname(__file__), "test.db")
TEST_DATABASE_URL = f"sqlite:///{TEST_DB_PATH}"
TEST_STORAGE_ROOT = tempfile.mkdtemp(prefix="drive-blobs-")
TEST_CRON_SECRET = "test-cron-secret"

# 必须在导入应用之前设置，配置对象会被缓存
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["STORAGE_ROOT"] = TEST_STORAGE_ROOT
os.environ["BLOB_BACKEND"] = "LOCAL"
os.environ["CRON_SECRET"] = TEST_CRON_SECRET
os.environ["RATE_LIMIT_BACKEND"] = "memory"
os.environ["LOGIN_RATE_LIMIT"] = "1000"
os.environ["UPLOAD_RATE_LIMIT"] = "1000"
os.environ["LOG_DIR"] = os.path.join(TEST_STORAGE_ROOT, "log")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from app.main import app  # noqa: E402
from app.packages.drive.core import rate_limit  # noqa: E402
from app.packages.drive.core.dependencies import get_db  # noqa: E402
from app.packages.drive.db import session as db_session  # noqa: E402
from app.packages.drive.db.init_db import init_db  # noqa: E402
from app.packages.drive.models.base import Base  # noqa: E402

ADMIN_CREDENTIALS = {"username": "admin", "password": "admin123"}


@pytest.fixture(scope="session", autouse=True)
def setup_test_database() -> Generator[None, None, None]:
    """创建隔离的 SQLite 测试数据库，并在会话结束后清理。"""
    if os.path.exists(TEST_DB_PATH):
        os.remove(TEST_DB_PATH)

    engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db_session.engine = engine
    db_session.SessionLocal = TestingSessionLocal

    Base.metadata.create_all(bind=engine)
    init_db()
    yield

    engine.dispose()
    if os.path.exists(TEST_DB_PATH):
        os.remove(TEST_DB_PATH)
    shutil.rmtree(TEST_STORAGE_ROOT, ignore_errors=True)


@pytest.fixture(autouse=True)
def reset_rate_limits() -> Generator[None, None, None]:
    rate_limit.reset()
    yield
    rate_limit.reset()


@pytest.fixture()
def db_session_fixture() -> Generator[Session, None, None]:
    """提供给测试用例使用的数据库会话。"""
    session = db_session.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(db_session_fixture):
    """构建 FastAPI TestClient，并注入测试专用的数据库依赖。"""
    def override_get_db() -> Generator[Session, None, None]:
        session = db_session.SessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def login(client: TestClient, username: str, password: str) -> Dict[str, str]:
    response = client.post("/api/v1/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['data']['access_token']}"}


@pytest.fixture()
def admin_headers(client: TestClient) -> Dict[str, str]:
    return login(client, ADMIN_CREDENTIALS["username"], ADMIN_CREDENTIALS["password"])


@pytest.fixture()
def user_account(client: TestClient) -> Dict[str, object]:
    """注册一个全新的普通用户，返回其 ID 与认证头，保证用例之间的数据互不干扰。"""
    username = f"user_{uuid.uuid4().hex[:10]}"
    password = "secret123"
    response = client.post("/api/v1/auth/register", json={"username": username, "password": password})
    assert response.status_code == 201, response.text
    return {
        "id": response.json()["data"]["id"],
        "username": username,
        "headers": login(client, username, password),
    }


@pytest.fixture()
def auth_headers(user_account) -> Dict[str, str]:
    return user_account["headers"]
