"""ArtifactStore SQLite + 文件系统实现

元数据写 SQLite；payload 以 JSON 编码，
大小 >= inline 阈值时写入 artifacts_dir/<task_id>/<artifact_id>.json，否则 inline 存储。
Artifact 写入后不可变：只有 INSERT，没有 UPDATE / DELETE。
"""

import asyncio
import hashlib
import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiosqlite
import structlog
from ulid import ULID

from ..models.artifact import Artifact, ArtifactFilters, ArtifactMetadata
from ..models.enums import ArtifactType

log = structlog.get_logger()

DEFAULT_INLINE_THRESHOLD = 4096

_COLUMNS = (
    "artifact_id, task_id, document_id, type, created_at, captured_at, "
    "node_ids, extra, payload, storage_ref, size, hash"
)


def compute_hash_and_size(content: bytes) -> tuple[str, int]:
    """计算 SHA-256 hash 和内容大小

    Returns:
        (sha256_hex, size_bytes) 元组
    """
    return hashlib.sha256(content).hexdigest(), len(content)


def encode_payload(data: Any) -> bytes:
    return json.dumps(data, ensure_ascii=False, sort_keys=True).encode("utf-8")


class SqliteArtifactStore:
    """ArtifactStore 的 SQLite + 文件系统实现"""

    def __init__(
        self,
        conn: aiosqlite.Connection,
        artifacts_dir: Path,
        inline_threshold: int = DEFAULT_INLINE_THRESHOLD,
    ) -> None:
        self._conn = conn
        self._artifacts_dir = artifacts_dir
        self._inline_threshold = inline_threshold
        self._write_lock = asyncio.Lock()

    async def store(
        self,
        task_id: str,
        type: ArtifactType,
        data: Any,
        metadata: ArtifactMetadata | None = None,
    ) -> str:
        """存储产物，返回新生成的 artifact_id

        Raises:
            TypeError: data 不可 JSON 序列化
        """
        metadata = metadata or ArtifactMetadata()
        artifact_id = str(ULID())
        content = encode_payload(data)
        hash_hex, size = compute_hash_and_size(content)

        payload: str | None = content.decode("utf-8")
        storage_ref: str | None = None
        if size >= self._inline_threshold:
            file_path = self._get_artifact_path(task_id, artifact_id)
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_bytes(content)
            storage_ref = str(file_path)
            payload = None

        async with self._write_lock:
            await self._conn.execute(
                f"INSERT INTO artifacts ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    artifact_id,
                    task_id,
                    metadata.document_id,
                    ArtifactType(type).value,
                    datetime.now(UTC).isoformat(),
                    metadata.captured_at.isoformat(),
                    json.dumps(list(metadata.node_ids)),
                    json.dumps(metadata.extra, ensure_ascii=False),
                    payload,
                    storage_ref,
                    size,
                    hash_hex,
                ),
            )
            await self._conn.commit()

        log.info(
            "artifact_stored",
            artifact_id=artifact_id,
            task_id=task_id,
            type=str(type),
            size=size,
            inline=storage_ref is None,
        )
        return artifact_id

    async def get(self, artifact_id: str) -> Artifact | None:
        """根据 artifact_id 查询 Artifact（含 payload）"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM artifacts WHERE artifact_id = ?",
            (artifact_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_artifact(row)

    async def list_for_task(self, task_id: str) -> list[Artifact]:
        """查询指定任务的所有 Artifact，按写入顺序"""
        return await self.query(ArtifactFilters(task_id=task_id))

    async def query(self, filters: ArtifactFilters) -> list[Artifact]:
        """按条件查询（各条件取交集，时间范围闭区间）"""
        clauses: list[str] = []
        params: list[Any] = []
        if filters.task_id is not None:
            clauses.append("task_id = ?")
            params.append(filters.task_id)
        if filters.type is not None:
            clauses.append("type = ?")
            params.append(filters.type.value)
        if filters.document_id is not None:
            clauses.append("document_id = ?")
            params.append(filters.document_id)

        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM artifacts{where} ORDER BY rowid ASC",
            params,
        )
        rows = await cursor.fetchall()
        artifacts = [self._row_to_artifact(row) for row in rows]

        # 时间范围按 datetime 比较（闭区间）
        if filters.created_after is not None:
            artifacts = [a for a in artifacts if a.created_at >= filters.created_after]
        if filters.created_before is not None:
            artifacts = [a for a in artifacts if a.created_at <= filters.created_before]
        return artifacts

    def _get_artifact_path(self, task_id: str, artifact_id: str) -> Path:
        """获取 Artifact 文件存储路径"""
        return self._artifacts_dir / task_id / f"{artifact_id}.json"

    @staticmethod
    def _load_payload(payload: str | None, storage_ref: str | None) -> Any:
        if storage_ref:
            return json.loads(Path(storage_ref).read_text(encoding="utf-8"))
        if payload is None:
            return None
        return json.loads(payload)

    def _row_to_artifact(self, row: aiosqlite.Row) -> Artifact:
        """将数据库行转换为 Artifact 模型"""
        return Artifact(
            artifact_id=row[0],
            task_id=row[1],
            type=ArtifactType(row[3]),
            data=self._load_payload(row[8], row[9]),
            metadata=ArtifactMetadata(
                document_id=row[2],
                captured_at=datetime.fromisoformat(row[5]),
                node_ids=tuple(json.loads(row[6])),
                extra=json.loads(row[7]),
            ),
            created_at=datetime.fromisoformat(row[4]),
            storage_ref=row[9],
            size=row[10],
            hash=row[11],
        )
