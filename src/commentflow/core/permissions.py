"""PermissionGate -- 准入前的动作授权

拒绝规则按顺序检查：
1. 只读范围 + 写动作（大小写不敏感子串匹配写动作词表）
2. 动作在 denied_actions 中
其余一律放行。拒绝不抛异常，返回 False 由 Orchestrator 处理。
"""

from typing import Protocol

import structlog

from .models.permission import PermissionScope
from .models.task import Task

log = structlog.get_logger()

WRITE_ACTIONS = ("create", "update", "delete", "move", "duplicate", "set_properties")

DEFAULT_SCOPE = PermissionScope()


def is_write_action(action: str) -> bool:
    lowered = action.lower()
    return any(w in lowered for w in WRITE_ACTIONS)


class ScopeResolver(Protocol):
    """外部授权范围查询（按文档 / workspace 配置）"""

    async def resolve_scope(self, task: Task) -> PermissionScope | None:
        """返回任务的授权范围，None 表示使用默认范围"""
        ...


class StaticScopeResolver:
    """基于静态映射的范围解析：文档级配置优先于 workspace 级"""

    def __init__(
        self,
        document_scopes: dict[str, PermissionScope] | None = None,
        workspace_scopes: dict[str, PermissionScope] | None = None,
    ) -> None:
        self.document_scopes = dict(document_scopes or {})
        self.workspace_scopes = dict(workspace_scopes or {})

    async def resolve_scope(self, task: Task) -> PermissionScope | None:
        scope = self.document_scopes.get(task.document_id)
        if scope is None and task.workspace_id:
            scope = self.workspace_scopes.get(task.workspace_id)
        return scope


class PermissionGate:
    """任务级授权检查

    范围在每次检查时重新解析，文档权限变更后立即生效。
    """

    def __init__(self, scope_resolver: ScopeResolver | None = None) -> None:
        self._scope_resolver = scope_resolver

    async def get_scope(self, task: Task) -> PermissionScope:
        if self._scope_resolver is None:
            return DEFAULT_SCOPE
        scope = await self._scope_resolver.resolve_scope(task)
        return scope or DEFAULT_SCOPE

    async def check_permission(self, task: Task, action: str) -> bool:
        """检查任务是否允许执行 action"""
        scope = await self.get_scope(task)

        if scope.read_only and is_write_action(action):
            log.warning(
                "permission_denied",
                task_id=task.task_id,
                action=action,
                reason="read_only",
            )
            return False

        if action in scope.denied_actions:
            log.warning(
                "permission_denied",
                task_id=task.task_id,
                action=action,
                reason="denied_action",
            )
            return False

        return True
