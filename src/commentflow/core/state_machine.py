"""Task 状态机 -- 状态流转与进入条件

apply_transition 是推进 Task 状态的唯一入口，只由 Orchestrator 调用。
流转合法性由 VALID_TRANSITIONS 决定，进入条件由 Task 模型校验器兜底：
- blocked: 非空 conflicts 或权限拒绝原因
- needs_review / needs_input: 原因
- done: 全部命令执行成功
- failed: error
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from .exceptions import InvalidTransitionError
from .models.conflict import Conflict
from .models.enums import TERMINAL_STATES, TaskState, validate_transition
from .models.task import StatusReason, Task, TaskError


def apply_transition(
    task: Task,
    to_state: TaskState,
    *,
    reason: StatusReason | None = None,
    conflicts: list[Conflict] | None = None,
    error: TaskError | None = None,
    now: datetime | None = None,
) -> Task:
    """返回流转到 to_state 后的新 Task（原对象不变）

    Args:
        task: 当前任务
        to_state: 目标状态
        reason: 进入等待状态的原因
        conflicts: 进入 blocked 时保留的冲突
        error: 进入 failed 时的错误
        now: 流转时间，默认当前 UTC 时间

    Raises:
        InvalidTransitionError: 流转不合法或不满足进入条件
    """
    if not validate_transition(task.state, to_state):
        raise InvalidTransitionError(task.task_id, task.state, to_state)

    now = now or datetime.now(UTC)
    updates: dict[str, Any] = {"state": to_state, "updated_at": now}

    if to_state == TaskState.IN_PROGRESS:
        updates.update(
            conflicts=[],
            deferred_behind=[],
            status_reason=None,
            started_at=task.started_at or now,
        )
    elif to_state == TaskState.BLOCKED:
        updates.update(conflicts=list(conflicts or []), status_reason=reason)
    elif to_state in (TaskState.NEEDS_REVIEW, TaskState.NEEDS_INPUT):
        updates.update(status_reason=reason)

    if to_state in TERMINAL_STATES:
        started = task.started_at or task.created_at
        updates.update(
            conflicts=[],
            deferred_behind=[],
            status_reason=None,
            completed_at=now,
            duration_ms=max(0, int((now - started).total_seconds() * 1000)),
        )
        if to_state == TaskState.FAILED:
            updates["error"] = error

    try:
        return Task.model_validate({**task.model_dump(), **updates})
    except ValidationError as e:
        raise InvalidTransitionError(
            task.task_id,
            task.state,
            to_state,
            detail="; ".join(err["msg"] for err in e.errors()),
        ) from e
