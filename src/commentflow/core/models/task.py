"""Task Domain Model -- 评论驱动的变更任务

Task 的状态只能由 Orchestrator 推进（见 state_machine.apply_transition）。
模型校验器保证各状态下只携带该状态合法的字段组合：
- conflicts 仅在 blocked 或 queued（顺延告警）时存在
- deferred_behind 仅在 queued 时存在
- completed_at / duration_ms 仅在终态设置
"""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from .command import Command, CommandResult
from .conflict import Conflict
from .enums import TERMINAL_STATES, ErrorCode, TaskState
from .timestamps import ensure_utc


class TaskError(BaseModel):
    """任务失败信息"""

    code: str = Field(description="稳定错误码")
    message: str = Field(description="可读错误描述")
    detail: str | None = Field(default=None, description="补充细节")


class StatusReason(BaseModel):
    """进入等待状态的原因"""

    code: ErrorCode = Field(description="原因码")
    message: str = Field(min_length=1, description="可读原因")


class Subtask(BaseModel):
    """清单子项"""

    id: str
    description: str
    completed: bool = False
    completed_at: datetime | None = None


class Task(BaseModel):
    """评论任务数据模型"""

    task_id: str = Field(description="唯一标识，ULID 格式")
    comment_id: str = Field(description="所属评论线程 ID")
    document_id: str = Field(description="所属文档 ID")
    user_id: str = Field(description="发起用户 ID")
    workspace_id: str | None = Field(default=None, description="所属 workspace")
    state: TaskState = Field(default=TaskState.QUEUED, description="当前状态")
    message: str = Field(description="原始评论文本")
    intent: str | None = Field(default=None, description="提取出的意图")
    target_node_id: str | None = Field(default=None, description="解析出的目标节点")

    commands: list[Command] = Field(default_factory=list, description="待执行命令")
    command_ids: list[str] = Field(
        default_factory=list,
        description="已下发命令 ID，与 commands 按位置对齐",
    )
    results: list[CommandResult] = Field(
        default_factory=list,
        description="命令回执，与 commands 按位置对齐（可短于 commands）",
    )

    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")
    started_at: datetime | None = Field(default=None, description="首次进入 in_progress 的时间")
    completed_at: datetime | None = Field(default=None, description="进入终态的时间")
    duration_ms: int | None = Field(default=None, ge=0, description="执行耗时（毫秒）")

    error: TaskError | None = Field(default=None, description="失败信息")
    status_reason: StatusReason | None = Field(default=None, description="等待原因")

    owner: str | None = Field(default=None, description="负责人（用户或 AI）")
    tags: list[str] = Field(default_factory=list, description="分类标签")
    subtasks: list[Subtask] = Field(default_factory=list, description="清单子项")
    conflicts: list[Conflict] = Field(default_factory=list, description="检测到的冲突")
    deferred_behind: list[str] = Field(
        default_factory=list,
        description="顺延等待的任务 ID（仅 queued）",
    )
    branch: bool = Field(default=False, description="是否在副本上执行")
    thread_summary: str | None = Field(default=None, description="评论线程摘要")
    artifacts: list[str] = Field(default_factory=list, description="产物 ID 引用")

    @field_validator("created_at", "updated_at", "started_at", "completed_at")
    @classmethod
    def _as_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value)

    @model_validator(mode="after")
    def _check_state_invariants(self) -> "Task":
        if not self.command_ids and self.commands:
            self.command_ids = [c.id for c in self.commands]
        if self.command_ids != [c.id for c in self.commands]:
            raise ValueError("command_ids must be positionally aligned with commands")
        if len(self.results) > len(self.commands):
            raise ValueError("more command results than commands")
        for result, command_id in zip(self.results, self.command_ids):
            if result.command_id != command_id:
                raise ValueError("command results must be positionally aligned with commands")

        state = self.state
        if self.conflicts and state not in (TaskState.QUEUED, TaskState.BLOCKED):
            raise ValueError(f"conflicts are not allowed in state {state}")
        if self.deferred_behind and state != TaskState.QUEUED:
            raise ValueError("deferred_behind is only valid while queued")

        if state == TaskState.BLOCKED:
            permission_block = (
                self.status_reason is not None
                and self.status_reason.code == ErrorCode.PERMISSION_DENIED
            )
            if not self.conflicts and not permission_block:
                raise ValueError("blocked requires conflicts or a permission denial reason")
        if state in (TaskState.NEEDS_REVIEW, TaskState.NEEDS_INPUT) and self.status_reason is None:
            raise ValueError(f"{state} requires a reason")
        if state == TaskState.DONE:
            if len(self.results) != len(self.commands) or not all(
                r.succeeded for r in self.results
            ):
                raise ValueError("done requires every command to have succeeded")
        if state == TaskState.FAILED and self.error is None:
            raise ValueError("failed requires an error")

        terminal = state in TERMINAL_STATES
        if terminal != (self.completed_at is not None):
            raise ValueError("completed_at is set exactly when the task is terminal")
        if self.duration_ms is not None and not terminal:
            raise ValueError("duration_ms is only set for terminal tasks")
        return self

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def pending_commands(self) -> list[Command]:
        """尚未成功执行的命令（按原顺序）"""
        done = {r.command_id for r in self.results if r.succeeded}
        return [c for c in self.commands if c.id not in done]


class TaskFilters(BaseModel):
    """任务查询条件（各条件取交集）"""

    document_id: str | None = None
    user_id: str | None = None
    states: list[TaskState] | None = None
    owner: str | None = None
    tags: list[str] | None = None
    created_after: datetime | None = None
    created_before: datetime | None = None

    @field_validator("created_after", "created_before")
    @classmethod
    def _as_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value)

    def matches(self, task: Task) -> bool:
        if self.document_id is not None and task.document_id != self.document_id:
            return False
        if self.user_id is not None and task.user_id != self.user_id:
            return False
        if self.states is not None and task.state not in self.states:
            return False
        if self.owner is not None and task.owner != self.owner:
            return False
        if self.tags and not set(self.tags).issubset(task.tags):
            return False
        if self.created_after is not None and task.created_at < self.created_after:
            return False
        if self.created_before is not None and task.created_at > self.created_before:
            return False
        return True
