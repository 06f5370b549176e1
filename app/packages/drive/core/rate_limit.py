"""限流：基于固定时间窗口的计数器，优先使用 Redis，不可用时回退到进程内存。"""

from __future__ import annotations

import threading
import time
from typing import Optional

import redis

from app.packages.drive.core.config import get_settings
from app.packages.drive.core.logger import logger


class RateLimitBackend:
    """限流后端基类：``hit`` 返回当前窗口内（含本次）的请求次数。"""

    def hit(self, key: str, window_seconds: int) -> int:  # pragma: no cover - interface definition
        raise NotImplementedError

    def reset(self) -> None:  # pragma: no cover
        raise NotImplementedError


class RedisRateLimitBackend(RateLimitBackend):
    """INCR + EXPIRE 实现的固定窗口计数，多实例共享同一计数。"""

    def __init__(self, url: str) -> None:
        self._client = redis.Redis.from_url(url, decode_responses=True)
        self._client.ping()

    def hit(self, key: str, window_seconds: int) -> int:
        redis_key = self._build_key(key)
        pipe = self._client.pipeline()
        pipe.incr(redis_key)
        pipe.expire(redis_key, window_seconds, nx=True)
        count, _ = pipe.execute()
        return int(count)

    def reset(self) -> None:
        for redis_key in self._client.scan_iter(match=self._build_key("*")):
            self._client.delete(redis_key)

    @staticmethod
    def _build_key(key: str) -> str:
        return f"ratelimit:{key}"


class InMemoryRateLimitBackend(RateLimitBackend):
    """内存计数器，用于测试或缺少 Redis 时的回退实现（仅单进程有效）。"""

    def __init__(self) -> None:
        self._store: dict[str, tuple[int, float]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str, window_seconds: int) -> int:
        now = time.monotonic()
        with self._lock:
            count, expires_at = self._store.get(key, (0, 0.0))
            if expires_at <= now:
                count, expires_at = 0, now + window_seconds
            count += 1
            self._store[key] = (count, expires_at)
            return count

    def reset(self) -> None:
        with self._lock:
            self._store.clear()


_backend: Optional[RateLimitBackend] = None


def _get_backend() -> RateLimitBackend:
    global _backend
    if _backend is not None:
        return _backend

    settings = get_settings()
    if settings.rate_limit_backend.strip().lower() == "memory":
        _backend = InMemoryRateLimitBackend()
        return _backend
    try:
        _backend = RedisRateLimitBackend(settings.redis_url)
        logger.info("Rate limiter initialized with Redis at %s", settings.redis_url)
    except Exception as exc:  # pragma: no cover - fallback path
        logger.warning("Redis unavailable (%s), falling back to in-memory rate limiter", exc)
        _backend = InMemoryRateLimitBackend()
    return _backend


def hit(key: str, limit: int, window_seconds: int) -> bool:
    """记录一次请求，未超过 ``limit`` 时返回 ``True``。"""
    count = _get_backend().hit(key, window_seconds)
    if count > limit:
        logger.info("Rate limit exceeded for %s (%s/%s)", key, count, limit)
        return False
    return True


def reset() -> None:
    """清空所有计数，测试中用于隔离用例。"""
    _get_backend().reset()
