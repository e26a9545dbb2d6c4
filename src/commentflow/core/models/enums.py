"""枚举定义 -- Task 状态机、冲突分类、产物类型

包含 TaskState 状态机、ConflictType/ConflictSeverity、ResolutionStrategy、
ArtifactType、CommandStatus、AuditEventType 等枚举，
以及 VALID_TRANSITIONS 合法流转映射和 TERMINAL_STATES 终态集合。
"""

from enum import StrEnum


class TaskState(StrEnum):
    """评论任务状态机"""

    # 活跃状态
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"

    # 等待状态（条件解除后可回到 in_progress）
    NEEDS_REVIEW = "needs_review"
    NEEDS_INPUT = "needs_input"
    BLOCKED = "blocked"

    # 终态
    DONE = "done"
    FAILED = "failed"
    CANCELED = "canceled"


# 合法状态流转
VALID_TRANSITIONS: dict[TaskState, set[TaskState]] = {
    TaskState.QUEUED: {TaskState.IN_PROGRESS, TaskState.CANCELED},
    TaskState.IN_PROGRESS: {
        TaskState.NEEDS_REVIEW,
        TaskState.NEEDS_INPUT,
        TaskState.BLOCKED,
        TaskState.DONE,
        TaskState.FAILED,
        TaskState.CANCELED,
    },
    TaskState.NEEDS_REVIEW: {TaskState.IN_PROGRESS},
    TaskState.NEEDS_INPUT: {TaskState.IN_PROGRESS},
    TaskState.BLOCKED: {TaskState.IN_PROGRESS},
    # 终态不可再流转
    TaskState.DONE: set(),
    TaskState.FAILED: set(),
    TaskState.CANCELED: set(),
}

TERMINAL_STATES: frozenset[TaskState] = frozenset(
    {TaskState.DONE, TaskState.FAILED, TaskState.CANCELED}
)

WAITING_STATES: frozenset[TaskState] = frozenset(
    {TaskState.NEEDS_REVIEW, TaskState.NEEDS_INPUT, TaskState.BLOCKED}
)


class ConflictType(StrEnum):
    """任务间冲突类型"""

    NODE_OVERLAP = "node_overlap"
    STYLE_CONFLICT = "style_conflict"
    DELETE_CONFLICT = "delete_conflict"


class ConflictSeverity(StrEnum):
    """冲突严重程度"""

    WARNING = "warning"
    ERROR = "error"


class ResolutionStrategy(StrEnum):
    """冲突解决策略"""

    SEQUENCE = "sequence"
    BRANCH = "branch"
    WARN = "warn"
    # 预留给可合并 diff 的冲突类型，默认规则不会选中
    MERGE = "merge"


class ArtifactType(StrEnum):
    """任务产物类型"""

    NODE_IDS = "node_ids"
    DIFF = "diff"
    EXPORT = "export"
    SCREENSHOT = "screenshot"


class CommandStatus(StrEnum):
    """命令执行结果状态"""

    SUCCESS = "success"
    ERROR = "error"
    PENDING = "pending"


class AdmissionDecision(StrEnum):
    """准入决策"""

    ADMITTED = "admitted"
    DEFERRED = "deferred"
    BLOCKED = "blocked"


class ErrorCode(StrEnum):
    """面向用户的稳定错误码 / 状态原因码"""

    INVALID_TRANSITION = "INVALID_TRANSITION"
    TASK_NOT_FOUND = "TASK_NOT_FOUND"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    CONFLICT_UNRESOLVED = "CONFLICT_UNRESOLVED"
    EXTERNAL_DISPATCH_FAILURE = "EXTERNAL_DISPATCH_FAILURE"
    COMMAND_FAILED = "COMMAND_FAILED"
    COMMAND_PENDING = "COMMAND_PENDING"
    REVIEW_REQUESTED = "REVIEW_REQUESTED"
    INPUT_REQUESTED = "INPUT_REQUESTED"


class AuditEventType(StrEnum):
    """审计事件类型"""

    TASK_CREATED = "TASK_CREATED"
    STATE_TRANSITION = "STATE_TRANSITION"
    CONFLICT_DETECTED = "CONFLICT_DETECTED"
    CONFLICT_RESOLVED = "CONFLICT_RESOLVED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    COMMAND_DISPATCHED = "COMMAND_DISPATCHED"
    ARTIFACT_CREATED = "ARTIFACT_CREATED"
    CACHE_INVALIDATED = "CACHE_INVALIDATED"


class ActorType(StrEnum):
    """操作者类型"""

    USER = "user"
    ORCHESTRATOR = "orchestrator"
    EXECUTOR = "executor"
    SYSTEM = "system"


def validate_transition(from_state: TaskState, to_state: TaskState) -> bool:
    """验证状态流转是否合法

    Args:
        from_state: 当前状态
        to_state: 目标状态

    Returns:
        True 如果流转合法，否则 False
    """
    allowed = VALID_TRANSITIONS.get(from_state, set())
    return to_state in allowed
