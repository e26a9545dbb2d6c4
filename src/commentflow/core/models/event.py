"""AuditEvent Domain Model -- 审计事件

事件表 append-only，不允许更新或删除。
event_id 使用 ULID 格式，时间有序。
task_seq 同一 task 内严格单调递增。
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from .enums import ActorType, AuditEventType, ResolutionStrategy, TaskState
from .timestamps import ensure_utc


class AuditEvent(BaseModel):
    """审计事件数据模型"""

    event_id: str = Field(description="唯一标识，ULID 格式，时间有序")
    task_id: str = Field(description="关联的 Task ID")
    document_id: str = Field(description="关联的文档 ID")
    task_seq: int = Field(description="任务内序号，严格单调递增")
    ts: datetime = Field(description="事件时间戳")
    type: AuditEventType = Field(description="事件类型")
    actor: ActorType = Field(description="操作者")
    payload: dict[str, Any] = Field(default_factory=dict, description="结构化 payload")


class AuditFilters(BaseModel):
    """审计事件查询条件（时间范围闭区间）"""

    task_id: str | None = None
    document_id: str | None = None
    types: list[AuditEventType] | None = None
    after: datetime | None = None
    before: datetime | None = None

    @field_validator("after", "before")
    @classmethod
    def _as_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value)


class StateTransitionPayload(BaseModel):
    """STATE_TRANSITION 事件 payload"""

    from_state: TaskState
    to_state: TaskState
    reason: str = Field(default="")


class ConflictResolvedPayload(BaseModel):
    """CONFLICT_RESOLVED 事件 payload"""

    conflict_type: str
    conflicting_task_id: str
    nodes: list[str]
    strategy: ResolutionStrategy
    resolved: bool
    actions: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class PermissionDeniedPayload(BaseModel):
    """PERMISSION_DENIED 事件 payload"""

    action: str
    reason: str


class CommandDispatchedPayload(BaseModel):
    """COMMAND_DISPATCHED 事件 payload"""

    command_id: str
    command: str
    status: str
    error_code: str | None = None


class ArtifactCreatedPayload(BaseModel):
    """ARTIFACT_CREATED 事件 payload"""

    artifact_id: str
    type: str
    size: int


class CacheInvalidatedPayload(BaseModel):
    """CACHE_INVALIDATED 事件 payload"""

    pattern: str
    removed: int
