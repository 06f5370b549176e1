"""路径工具、限流计数器与时间工具的单元测试。"""

from datetime import datetime, timedelta, timezone

import pytest

from app.packages.drive.core.exceptions import AppException
from app.packages.drive.core.rate_limit import InMemoryRateLimitBackend
from app.packages.drive.core.security import secrets_match
from app.packages.drive.core.timezone import ensure_utc
from app.packages.drive.utils.path_utils import (
    build_path,
    content_url,
    normalize_name,
    normalize_tags,
)


@pytest.mark.parametrize("raw", ["", "   ", "a/b", "a\\b", ".", "..", "x" * 256])
def test_normalize_name_rejects_invalid(raw):
    with pytest.raises(AppException) as exc_info:
        normalize_name(raw)
    assert exc_info.value.status_code == 400


def test_normalize_name_trims():
    assert normalize_name("  report.txt ") == "report.txt"


def test_build_path():
    assert build_path(None, "Docs") == "/Docs"
    assert build_path("/", "Docs") == "/Docs"
    assert build_path("/Docs", "2024") == "/Docs/2024"


def test_normalize_tags():
    assert normalize_tags([" a", "b", "a ", "", None]) == ["a", "b"]
    assert normalize_tags(None) == []


def test_content_url_quotes_name():
    url = content_url("/api/v1/", "abc", "my file.txt")
    assert url == "/api/v1/files/abc/content?filename=my%20file.txt"


def test_in_memory_rate_limit_window(monkeypatch):
    backend = InMemoryRateLimitBackend()
    clock = [100.0]
    monkeypatch.setattr("app.packages.drive.core.rate_limit.time.monotonic", lambda: clock[0])

    assert [backend.hit("k", 10) for _ in range(3)] == [1, 2, 3]
    assert backend.hit("other", 10) == 1
    clock[0] += 11
    assert backend.hit("k", 10) == 1


def test_secrets_match():
    assert secrets_match("abc", "abc") is True
    assert secrets_match("abc", "abd") is False
    assert secrets_match("", "") is False
    assert secrets_match(None, "abc") is False


def test_ensure_utc():
    naive = datetime(2024, 1, 1, 8, 0)
    assert ensure_utc(naive) == datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)
    shanghai = datetime(2024, 1, 1, 16, 0, tzinfo=timezone(timedelta(hours=8)))
    assert ensure_utc(shanghai).hour == 8
    assert ensure_utc(None) is None
