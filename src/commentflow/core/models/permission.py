"""PermissionScope -- 任务级授权范围

每次授权检查时重新解析，不跨文档权限变更缓存。
"""

from pydantic import BaseModel, ConfigDict, Field


class PermissionScope(BaseModel):
    """任务授权范围

    默认范围（非只读、未设置任何 allow-list）允许一切操作。
    allow-list 为 None 表示不限制，空列表表示全部拒绝。
    """

    model_config = ConfigDict(frozen=True)

    read_only: bool = Field(default=False, description="只读任务不得执行写操作")
    allowed_nodes: tuple[str, ...] | None = Field(
        default=None,
        description="仅允许触达的节点",
    )
    allowed_frames: tuple[str, ...] | None = Field(
        default=None,
        description="仅允许触达这些 frame 内的节点",
    )
    allowed_workspaces: tuple[str, ...] | None = Field(
        default=None,
        description="仅允许访问的 workspace",
    )
    denied_actions: tuple[str, ...] = Field(
        default=(),
        description="显式禁止的动作名",
    )
