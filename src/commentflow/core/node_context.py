"""节点快照加载 -- 经 InvalidationAwareCache 读取外部节点上下文

冲突检测需要节点的后代列表（删除 frame 会连带删除其子节点）。
快照通过外部 provider 批量获取，并以短 TTL 缓存；
文档提交变更后 Orchestrator 按 document_id 失效这些键。
"""

from typing import Protocol

import structlog

from .cache import CacheKeys, InvalidationAwareCache
from .models.node import NodeContext

log = structlog.get_logger()

DEFAULT_SNAPSHOT_TTL_MS = 5_000


class NodeContextProvider(Protocol):
    """外部节点快照查询接口"""

    async def fetch_node_context(
        self,
        document_id: str,
        node_ids: list[str],
    ) -> dict[str, NodeContext]:
        """批量获取节点快照，未知节点可缺省"""
        ...


class NodeContextLoader:
    """带缓存的节点快照加载器"""

    def __init__(
        self,
        provider: NodeContextProvider,
        cache: InvalidationAwareCache,
        ttl_ms: int = DEFAULT_SNAPSHOT_TTL_MS,
    ) -> None:
        self._provider = provider
        self._cache = cache
        self._ttl_ms = ttl_ms

    async def get_many(
        self,
        document_id: str,
        node_ids: list[str] | set[str],
    ) -> dict[str, NodeContext]:
        """读取节点快照：命中直接返回，未命中一次性批量获取并写入缓存

        获取失败为 best-effort：记录 warning，仅返回已命中的快照。
        """
        found: dict[str, NodeContext] = {}
        missing: list[str] = []
        for node_id in sorted(set(node_ids)):
            cached = self._cache.get(CacheKeys.node_details(document_id, node_id))
            if cached is None:
                missing.append(node_id)
            else:
                found[node_id] = cached

        if not missing:
            return found

        try:
            fetched = await self._provider.fetch_node_context(document_id, missing)
        except Exception as e:
            log.warning(
                "node_context_fetch_failed",
                document_id=document_id,
                node_count=len(missing),
                error=str(e),
            )
            return found

        hits = len(found)
        for node_id in missing:
            context = fetched.get(node_id)
            if context is None:
                continue
            self._cache.set(
                CacheKeys.node_details(document_id, node_id),
                context,
                ttl_ms=self._ttl_ms,
            )
            found[node_id] = context

        log.debug(
            "node_context_loaded",
            document_id=document_id,
            cached=hits,
            fetched=len(found) - hits,
        )
        return found
