"""commentflow Core Store -- SQLite 持久化实现

提供工厂函数创建共享数据库连接的 Store 实例组。
"""

from pathlib import Path

import aiosqlite

from .artifact_store import DEFAULT_INLINE_THRESHOLD, SqliteArtifactStore
from .event_store import SqliteEventStore
from .protocols import ArtifactStore, EventStore
from .sqlite_init import init_db


class StoreGroup:
    """Store 实例组 -- 共享同一个数据库连接"""

    def __init__(
        self,
        conn: aiosqlite.Connection,
        artifacts_dir: Path,
        inline_threshold: int = DEFAULT_INLINE_THRESHOLD,
    ) -> None:
        self.conn = conn
        self.event_store = SqliteEventStore(conn)
        self.artifact_store = SqliteArtifactStore(conn, artifacts_dir, inline_threshold)

    async def close(self) -> None:
        await self.conn.close()


async def create_store_group(
    db_path: str,
    artifacts_dir: str | Path,
    inline_threshold: int = DEFAULT_INLINE_THRESHOLD,
) -> StoreGroup:
    """创建 Store 实例组

    Args:
        db_path: SQLite 数据库文件路径
        artifacts_dir: Artifact 外置 payload 存储目录
        inline_threshold: payload inline 存储阈值（字节）

    Returns:
        StoreGroup 实例
    """
    artifacts_path = Path(artifacts_dir)
    artifacts_path.mkdir(parents=True, exist_ok=True)

    # 确保数据库目录存在
    db_dir = Path(db_path).parent
    db_dir.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row
    await init_db(conn)

    return StoreGroup(conn=conn, artifacts_dir=artifacts_path, inline_threshold=inline_threshold)


__all__ = [
    "ArtifactStore",
    "EventStore",
    "StoreGroup",
    "create_store_group",
    "SqliteArtifactStore",
    "SqliteEventStore",
    "init_db",
]
