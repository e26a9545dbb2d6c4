"""Store Protocol 接口定义

定义 ArtifactStore、EventStore 的抽象接口，
使用 Python Protocol 实现结构化子类型（duck typing）。
"""

from typing import Any, Protocol

from ..models.artifact import Artifact, ArtifactFilters, ArtifactMetadata
from ..models.enums import ActorType, ArtifactType, AuditEventType
from ..models.event import AuditEvent, AuditFilters


class ArtifactStore(Protocol):
    """Artifact 存储接口"""

    async def store(
        self,
        task_id: str,
        type: ArtifactType,
        data: Any,
        metadata: ArtifactMetadata | None = None,
    ) -> str:
        """存储产物，返回新 artifact_id"""
        ...

    async def get(self, artifact_id: str) -> Artifact | None:
        """根据 artifact_id 查询 Artifact"""
        ...

    async def list_for_task(self, task_id: str) -> list[Artifact]:
        """查询指定任务的所有 Artifact"""
        ...

    async def query(self, filters: ArtifactFilters) -> list[Artifact]:
        """按 task_id / type / document_id / 时间范围查询"""
        ...


class EventStore(Protocol):
    """审计事件存储接口

    事件表 append-only：只允许插入，不允许更新或删除。
    """

    async def append(
        self,
        task_id: str,
        document_id: str,
        type: AuditEventType,
        actor: ActorType,
        payload: dict[str, Any] | None = None,
    ) -> AuditEvent:
        """追加事件"""
        ...

    async def get_events_for_task(self, task_id: str) -> list[AuditEvent]:
        """查询指定任务的所有事件"""
        ...

    async def query(self, filters: AuditFilters) -> list[AuditEvent]:
        """按条件查询事件"""
        ...
