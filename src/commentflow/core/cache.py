"""InvalidationAwareCache -- 带失效钩子的短 TTL 读缓存

缓存外部读取结果（节点快照、文档结构等）。
过期在 get 时惰性判定：now - captured_at > ttl 视为不存在并移除。
invalidate_pattern 按字面子串（非正则）移除键。

线程安全：所有读写持有同一把锁，一次写入对下一次读取可见。
"""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import structlog
from pydantic import BaseModel, Field

log = structlog.get_logger()

T = TypeVar("T")

DEFAULT_TTL_MS = 300_000


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


class CacheKeys:
    """常用缓存键生成器

    所有键都包含 document_id，文档提交变更后可用 invalidate_pattern(document_id) 整体失效。
    """

    @staticmethod
    def document_structure(document_id: str, depth: int | None = None) -> str:
        return f"document:{document_id}:structure:{depth if depth else 'full'}"

    @staticmethod
    def tokens(document_id: str) -> str:
        return f"document:{document_id}:tokens"

    @staticmethod
    def components(document_id: str) -> str:
        return f"document:{document_id}:components"

    @staticmethod
    def styles(document_id: str) -> str:
        return f"document:{document_id}:styles"

    @staticmethod
    def node_details(document_id: str, node_id: str) -> str:
        return f"document:{document_id}:node:{node_id}"


@dataclass(slots=True)
class CacheEntry:
    """缓存条目"""

    data: Any
    captured_at: float
    ttl_ms: int

    def is_expired(self, now_ms: float) -> bool:
        return now_ms - self.captured_at > self.ttl_ms


class CacheStats(BaseModel):
    """缓存统计"""

    size: int
    keys: list[str] = Field(default_factory=list)
    hits: int = 0
    misses: int = 0
    hit_rate: float = 0.0


class InvalidationAwareCache:
    """内存缓存，支持显式失效与子串模式失效"""

    def __init__(
        self,
        default_ttl_ms: int = DEFAULT_TTL_MS,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """
        Args:
            default_ttl_ms: set 未指定 TTL 时使用的默认值
            clock: 返回毫秒时间的时钟（测试可注入）
        """
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._default_ttl_ms = default_ttl_ms
        self._clock = clock or _monotonic_ms
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Any | None:
        """读取缓存；不存在或已过期返回 None"""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                log.debug("cache_miss", key=key)
                return None

            if entry.is_expired(self._clock()):
                del self._entries[key]
                self._misses += 1
                log.debug("cache_expired", key=key)
                return None

            self._hits += 1
            log.debug("cache_hit", key=key)
            return entry.data

    def set(self, key: str, value: T, ttl_ms: int | None = None) -> None:
        """写入缓存

        None 值不缓存（与"不存在"无法区分）。
        """
        if value is None:
            raise ValueError("cannot cache None")
        ttl = ttl_ms if ttl_ms is not None else self._default_ttl_ms
        if ttl <= 0:
            raise ValueError("ttl_ms must be positive")
        with self._lock:
            self._entries[key] = CacheEntry(data=value, captured_at=self._clock(), ttl_ms=ttl)
        log.debug("cache_set", key=key, ttl_ms=ttl)

    def invalidate(self, key: str) -> bool:
        """移除单个键，返回是否存在"""
        with self._lock:
            removed = self._entries.pop(key, None) is not None
        if removed:
            log.debug("cache_invalidated", key=key)
        return removed

    def invalidate_pattern(self, substring: str) -> int:
        """移除所有包含 substring（字面子串）的键

        Returns:
            移除的条目数
        """
        if not substring:
            raise ValueError("pattern must be a non-empty substring")
        with self._lock:
            matched = [key for key in self._entries if substring in key]
            for key in matched:
                del self._entries[key]

        if matched:
            log.info("cache_pattern_invalidated", pattern=substring, removed=len(matched))
        return len(matched)

    def clear(self) -> int:
        """清空缓存，返回清除的条目数"""
        with self._lock:
            size = len(self._entries)
            self._entries.clear()
        log.info("cache_cleared", removed=size)
        return size

    def cleanup(self) -> int:
        """清理所有已过期条目（定期调度由调用方负责）"""
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]

        if expired:
            log.info("cache_cleanup", removed=len(expired))
        return len(expired)

    def stats(self) -> CacheStats:
        """缓存统计"""
        with self._lock:
            total = self._hits + self._misses
            return CacheStats(
                size=len(self._entries),
                keys=list(self._entries),
                hits=self._hits,
                misses=self._misses,
                hit_rate=self._hits / total if total else 0.0,
            )
