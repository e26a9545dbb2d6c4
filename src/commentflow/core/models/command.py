"""Command / CommandResult -- 与外部执行面交换的数据形状

Command 由意图生成步骤产出，经 Orchestrator 下发到执行面；
CommandResult 为执行面的回执，用于推进 Task 状态。
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import CommandStatus


class Command(BaseModel):
    """单条文档变更命令"""

    id: str = Field(description="命令 ID")
    command: str = Field(description="命令名称（如 create_frame / set_properties）")
    params: dict[str, Any] = Field(default_factory=dict, description="命令参数")
    parent: str | None = Field(default=None, description="父节点 ID")
    idempotency_key: str | None = Field(
        default=None,
        description="幂等键，重复下发同一逻辑命令时接收方视为 no-op",
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="命令生成时间",
    )


class CommandError(BaseModel):
    """命令执行错误"""

    code: str
    message: str
    details: str | None = None


class CommandResult(BaseModel):
    """执行面回执"""

    command_id: str = Field(description="对应的命令 ID")
    status: CommandStatus = Field(description="执行状态")
    result: Any = Field(default=None, description="执行结果（类型由命令决定）")
    error: CommandError | None = Field(default=None, description="错误信息")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="回执时间",
    )

    @property
    def succeeded(self) -> bool:
        return self.status == CommandStatus.SUCCESS
