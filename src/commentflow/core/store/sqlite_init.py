"""SQLite 数据库初始化

PRAGMA 配置 + artifacts / events 两张表 DDL + 索引创建。
任务本身由 Orchestrator 在内存中持有，此处只持久化产物与审计轨迹。
"""

import aiosqlite

# artifacts 表 DDL
_ARTIFACTS_DDL = """
CREATE TABLE IF NOT EXISTS artifacts (
    artifact_id  TEXT PRIMARY KEY,
    task_id      TEXT NOT NULL,
    document_id  TEXT,
    type         TEXT NOT NULL,
    created_at   TEXT NOT NULL,
    captured_at  TEXT NOT NULL,
    node_ids     TEXT NOT NULL DEFAULT '[]',
    extra        TEXT NOT NULL DEFAULT '{}',
    payload      TEXT,
    storage_ref  TEXT,
    size         INTEGER NOT NULL DEFAULT 0,
    hash         TEXT NOT NULL DEFAULT ''
);
"""

_ARTIFACTS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_artifacts_task_id ON artifacts(task_id);",
    "CREATE INDEX IF NOT EXISTS idx_artifacts_document_id ON artifacts(document_id);",
    "CREATE INDEX IF NOT EXISTS idx_artifacts_created_at ON artifacts(created_at);",
]

# events 表 DDL（append-only 审计轨迹）
_EVENTS_DDL = """
CREATE TABLE IF NOT EXISTS events (
    event_id     TEXT PRIMARY KEY,
    task_id      TEXT NOT NULL,
    document_id  TEXT NOT NULL,
    task_seq     INTEGER NOT NULL,
    ts           TEXT NOT NULL,
    type         TEXT NOT NULL,
    actor        TEXT NOT NULL,
    payload      TEXT NOT NULL DEFAULT '{}'
);
"""

_EVENTS_INDEXES = [
    # 任务内事件序号唯一约束（确保 task_seq 严格单调递增）
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_events_task_seq ON events(task_id, task_seq);",
    "CREATE INDEX IF NOT EXISTS idx_events_document_ts ON events(document_id, ts);",
]


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    await conn.execute(_ARTIFACTS_DDL)
    await conn.execute(_EVENTS_DDL)

    for idx_sql in _ARTIFACTS_INDEXES + _EVENTS_INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()
