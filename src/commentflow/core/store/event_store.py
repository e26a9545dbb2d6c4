"""EventStore SQLite 实现 -- 审计轨迹

事件表 append-only：只允许插入，不允许更新或删除。
task_seq 同一 task 内严格单调递增。
"""

import asyncio
import json
from datetime import UTC, datetime
from typing import Any

import aiosqlite
from ulid import ULID

from ..models.enums import ActorType, AuditEventType
from ..models.event import AuditEvent, AuditFilters

_COLUMNS = "event_id, task_id, document_id, task_seq, ts, type, actor, payload"


class SqliteEventStore:
    """EventStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn
        # 串行化 MAX+1 与 INSERT，保证 task_seq 不重复
        self._append_lock = asyncio.Lock()

    async def append(
        self,
        task_id: str,
        document_id: str,
        type: AuditEventType,
        actor: ActorType,
        payload: dict[str, Any] | None = None,
    ) -> AuditEvent:
        """追加事件并提交，返回写入的事件"""
        async with self._append_lock:
            event = AuditEvent(
                event_id=str(ULID()),
                task_id=task_id,
                document_id=document_id,
                task_seq=await self.get_next_task_seq(task_id),
                ts=datetime.now(UTC),
                type=type,
                actor=actor,
                payload=payload or {},
            )
            await self._conn.execute(
                f"INSERT INTO events ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    event.event_id,
                    event.task_id,
                    event.document_id,
                    event.task_seq,
                    event.ts.isoformat(),
                    event.type.value,
                    event.actor.value,
                    json.dumps(event.payload, ensure_ascii=False, default=str),
                ),
            )
            await self._conn.commit()
        return event

    async def get_next_task_seq(self, task_id: str) -> int:
        """获取指定任务的下一个 task_seq（MAX+1）"""
        cursor = await self._conn.execute(
            "SELECT COALESCE(MAX(task_seq), 0) FROM events WHERE task_id = ?",
            (task_id,),
        )
        row = await cursor.fetchone()
        return (row[0] if row else 0) + 1

    async def get_events_for_task(self, task_id: str) -> list[AuditEvent]:
        """查询指定任务的所有事件，按 task_seq 正序"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM events WHERE task_id = ? ORDER BY task_seq ASC",
            (task_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    async def query(self, filters: AuditFilters) -> list[AuditEvent]:
        """按条件查询事件，按写入顺序排序"""
        clauses: list[str] = []
        params: list[Any] = []
        if filters.task_id is not None:
            clauses.append("task_id = ?")
            params.append(filters.task_id)
        if filters.document_id is not None:
            clauses.append("document_id = ?")
            params.append(filters.document_id)
        if filters.types:
            clauses.append(f"type IN ({', '.join('?' for _ in filters.types)})")
            params.extend(t.value for t in filters.types)

        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM events{where} ORDER BY rowid ASC",
            params,
        )
        rows = await cursor.fetchall()
        events = [self._row_to_event(row) for row in rows]

        if filters.after is not None:
            events = [e for e in events if e.ts >= filters.after]
        if filters.before is not None:
            events = [e for e in events if e.ts <= filters.before]
        return events

    @staticmethod
    def _row_to_event(row: aiosqlite.Row) -> AuditEvent:
        """将数据库行转换为 AuditEvent 模型"""
        return AuditEvent(
            event_id=row[0],
            task_id=row[1],
            document_id=row[2],
            task_seq=row[3],
            ts=datetime.fromisoformat(row[4]),
            type=AuditEventType(row[5]),
            actor=ActorType(row[6]),
            payload=json.loads(row[7]) if row[7] else {},
        )
