"""Conflict / ConflictResolution Domain Model

Conflict 总是关联两个不同的任务；检测具有对称性。
ConflictResolution 每个冲突产出一次，产出后不可变。
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .enums import ConflictSeverity, ConflictType, ResolutionStrategy


class Conflict(BaseModel):
    """两个任务之间检测到的冲突

    task_id 为发起检测的候选任务，conflicting_task_id 为活跃集合中的对方任务。
    """

    model_config = ConfigDict(frozen=True)

    type: ConflictType = Field(description="冲突类型")
    task_id: str = Field(description="候选任务 ID")
    conflicting_task_id: str = Field(description="冲突对方任务 ID")
    nodes: tuple[str, ...] = Field(description="受影响的节点 ID（有序、去重）")
    severity: ConflictSeverity = Field(description="严重程度")
    description: str = Field(default="", description="可读描述")

    @model_validator(mode="after")
    def _check_distinct_tasks(self) -> "Conflict":
        if self.task_id == self.conflicting_task_id:
            raise ValueError("conflict must reference two distinct tasks")
        if not self.nodes:
            raise ValueError("conflict must reference at least one node")
        return self

    def involves(self, task_a: str, task_b: str) -> bool:
        """判断冲突是否涉及给定的两个任务（与方向无关）"""
        return {self.task_id, self.conflicting_task_id} == {task_a, task_b}

    def swapped(self) -> "Conflict":
        """返回交换双方任务 ID 后的等价冲突记录"""
        return self.model_copy(
            update={
                "task_id": self.conflicting_task_id,
                "conflicting_task_id": self.task_id,
            }
        )


class ConflictResolution(BaseModel):
    """单个冲突的解决结果"""

    model_config = ConfigDict(frozen=True)

    conflict: Conflict = Field(description="被解决的冲突")
    strategy: ResolutionStrategy = Field(description="选用的策略")
    resolved: bool = Field(description="False 表示必须人工审核，任务进入 blocked")
    actions: tuple[str, ...] = Field(default=(), description="已采取/规定的动作")
    warnings: tuple[str, ...] = Field(default=(), description="附加警告")
