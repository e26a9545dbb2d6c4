"""Artifact Domain Model -- 任务产物

Artifact 由所属任务创建一次，之后不可变；
可按 task_id / type / document_id / 时间范围查询。
hash 和 size 用于完整性校验。
"""

import re
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import ArtifactType
from .timestamps import ensure_utc

# 扩展字段约束
MAX_EXTRA_FIELDS = 16
_EXTRA_KEY_PATTERN = re.compile(r"^[a-z][a-z0-9_]{0,63}$")

ExtraValue = str | int | float | bool


class ArtifactMetadata(BaseModel):
    """Artifact 元数据

    extra 为有界扩展字段：最多 16 个键，键名为小写 snake_case，值为标量。
    """

    model_config = ConfigDict(frozen=True)

    node_ids: tuple[str, ...] = Field(default=(), description="受影响的节点 ID")
    document_id: str | None = Field(default=None, description="所属文档 ID")
    captured_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="产物生成时间",
    )
    extra: dict[str, ExtraValue] = Field(default_factory=dict, description="扩展字段")

    @field_validator("extra")
    @classmethod
    def _check_extra(cls, value: dict[str, ExtraValue]) -> dict[str, ExtraValue]:
        if len(value) > MAX_EXTRA_FIELDS:
            raise ValueError(f"at most {MAX_EXTRA_FIELDS} extension fields allowed")
        for key in value:
            if not _EXTRA_KEY_PATTERN.match(key):
                raise ValueError(f"invalid extension field name: {key!r}")
        return value


class Artifact(BaseModel):
    """Artifact 数据模型

    data 为类型相关的不透明 payload（JSON 可序列化）。
    """

    model_config = ConfigDict(frozen=True)

    artifact_id: str = Field(description="唯一标识，ULID 格式")
    task_id: str = Field(description="产出该产物的 Task ID")
    type: ArtifactType = Field(description="产物类型")
    data: Any = Field(default=None, description="类型相关 payload")
    metadata: ArtifactMetadata = Field(default_factory=ArtifactMetadata)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="写入存储的时间",
    )
    storage_ref: str | None = Field(default=None, description="外置 payload 文件路径")
    size: int = Field(default=0, description="payload 序列化后大小（字节）")
    hash: str = Field(default="", description="payload SHA-256")


class ArtifactFilters(BaseModel):
    """Artifact 查询条件（各条件取交集，时间范围闭区间）"""

    task_id: str | None = None
    type: ArtifactType | None = None
    document_id: str | None = None
    created_after: datetime | None = None
    created_before: datetime | None = None

    @field_validator("created_after", "created_before")
    @classmethod
    def _as_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value)
