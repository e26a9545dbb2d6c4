"""引擎异常体系

所有面向用户的失败都携带稳定错误码 + 可读描述；
进入 Task 状态前必须经 to_task_error() 或 StatusReason 转换。
"""

from .models.command import CommandResult
from .models.conflict import Conflict
from .models.enums import ErrorCode, TaskState
from .models.task import TaskError


class EngineError(Exception):
    """引擎基础异常"""

    code: ErrorCode = ErrorCode.COMMAND_FAILED

    def __init__(self, message: str, recoverable: bool = False) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 任务是否可在条件解除后恢复
        """
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable

    def to_task_error(self, detail: str | None = None) -> TaskError:
        """转换为写入 Task 的错误信息"""
        return TaskError(code=self.code.value, message=self.message, detail=detail)


class InvalidTransitionError(EngineError):
    """非法状态流转（调用方错误，总是上抛，不重试）"""

    code = ErrorCode.INVALID_TRANSITION

    def __init__(
        self,
        task_id: str,
        from_state: TaskState,
        to_state: TaskState,
        detail: str | None = None,
    ) -> None:
        message = f"Task {task_id} cannot transition from {from_state} to {to_state}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, recoverable=False)
        self.task_id = task_id
        self.from_state = from_state
        self.to_state = to_state
        self.detail = detail


class TaskNotFoundError(EngineError):
    """任务不存在"""

    code = ErrorCode.TASK_NOT_FOUND

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task with id {task_id} does not exist", recoverable=False)
        self.task_id = task_id


class PermissionDeniedError(EngineError):
    """权限拒绝（非致命，任务进入 blocked）"""

    code = ErrorCode.PERMISSION_DENIED

    def __init__(self, task_id: str, action: str) -> None:
        super().__init__(
            f"Action {action} is not permitted for task {task_id}",
            recoverable=True,
        )
        self.task_id = task_id
        self.action = action


class ConflictUnresolvedError(EngineError):
    """冲突无法自动解决（非致命，任务进入 blocked 等待人工审核）"""

    code = ErrorCode.CONFLICT_UNRESOLVED

    def __init__(self, task_id: str, conflicts: list[Conflict]) -> None:
        others = sorted({c.conflicting_task_id for c in conflicts})
        super().__init__(
            f"Task {task_id} has {len(conflicts)} unresolved conflict(s) with "
            f"{', '.join(others)}; human review required",
            recoverable=True,
        )
        self.task_id = task_id
        self.conflicts = conflicts


class ExternalDispatchError(EngineError):
    """执行面重试耗尽后的下发失败（任务终态 failed）"""

    code = ErrorCode.EXTERNAL_DISPATCH_FAILURE

    def __init__(self, command_id: str, attempts: int, original_error: Exception) -> None:
        super().__init__(
            f"Dispatch of command {command_id} failed after {attempts} attempt(s): "
            f"{original_error}",
            recoverable=False,
        )
        self.command_id = command_id
        self.attempts = attempts
        self.original_error = original_error


class CommandFailedError(EngineError):
    """执行面返回错误回执"""

    code = ErrorCode.COMMAND_FAILED

    def __init__(self, result: CommandResult) -> None:
        error = result.error
        message = error.message if error else "command failed without error detail"
        super().__init__(message, recoverable=False)
        self.result = result

    def to_task_error(self, detail: str | None = None) -> TaskError:
        # 保留执行面给出的错误码
        error = self.result.error
        return TaskError(
            code=error.code if error else self.code.value,
            message=self.message,
            detail=detail or (error.details if error else None),
        )
