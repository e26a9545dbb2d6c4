"""NodeContext -- 外部节点快照的数据形状"""

from typing import Any

from pydantic import BaseModel, Field


class NodeContext(BaseModel):
    """文档节点快照（由外部 fetch_node_context 提供）"""

    node_id: str = Field(description="节点 ID")
    node_type: str = Field(default="", description="节点类型（FRAME / TEXT / ...）")
    parent_frame: str | None = Field(default=None, description="所在 frame 的节点 ID")
    children: list[str] = Field(
        default_factory=list,
        description="全部后代节点 ID（删除该节点会连带删除）",
    )
    styles: dict[str, Any] = Field(default_factory=dict, description="样式属性快照")
