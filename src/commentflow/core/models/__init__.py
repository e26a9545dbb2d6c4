"""commentflow Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .artifact import Artifact, ArtifactFilters, ArtifactMetadata
from .command import Command, CommandError, CommandResult
from .conflict import Conflict, ConflictResolution
from .enums import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    WAITING_STATES,
    ActorType,
    AdmissionDecision,
    ArtifactType,
    AuditEventType,
    CommandStatus,
    ConflictSeverity,
    ConflictType,
    ErrorCode,
    ResolutionStrategy,
    TaskState,
    validate_transition,
)
from .event import AuditEvent, AuditFilters
from .node import NodeContext
from .permission import PermissionScope
from .task import StatusReason, Subtask, Task, TaskError, TaskFilters

__all__ = [
    # 枚举
    "TaskState",
    "ConflictType",
    "ConflictSeverity",
    "ResolutionStrategy",
    "ArtifactType",
    "CommandStatus",
    "AdmissionDecision",
    "ErrorCode",
    "AuditEventType",
    "ActorType",
    # 状态机
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    "WAITING_STATES",
    "validate_transition",
    # Task
    "Task",
    "TaskError",
    "StatusReason",
    "Subtask",
    "TaskFilters",
    # Command
    "Command",
    "CommandError",
    "CommandResult",
    # Conflict
    "Conflict",
    "ConflictResolution",
    # Permission
    "PermissionScope",
    # Artifact
    "Artifact",
    "ArtifactMetadata",
    "ArtifactFilters",
    # Node
    "NodeContext",
    # Audit
    "AuditEvent",
    "AuditFilters",
]
