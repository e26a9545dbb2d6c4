"""配置模块 -- 可通过环境变量覆盖

包含数据库路径、artifacts 目录、缓存 TTL、下发重试参数等可配置项。
无效数值记录 warning 并回退默认值，不阻塞启动。
"""

import os
from pathlib import Path

import structlog
from pydantic import BaseModel, Field, SecretStr, ValidationError

log = structlog.get_logger()


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("COMMENTFLOW_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "COMMENTFLOW_DB_PATH",
        str(_get_base_dir() / "sqlite" / "commentflow.db"),
    )


def get_artifacts_dir() -> Path:
    """获取 Artifact 外置 payload 存储目录"""
    return Path(
        os.environ.get(
            "COMMENTFLOW_ARTIFACTS_DIR",
            str(_get_base_dir() / "artifacts"),
        )
    )


class EngineConfig(BaseModel):
    """编排引擎配置

    环境变量:
        COMMENTFLOW_CACHE_DEFAULT_TTL_MS: 缓存默认 TTL（毫秒）
        COMMENTFLOW_NODE_SNAPSHOT_TTL_MS: 节点快照 TTL（毫秒）
        COMMENTFLOW_DISPATCH_MAX_RETRIES: 下发重试上限
        COMMENTFLOW_DISPATCH_INITIAL_DELAY_MS: 首次退避延迟
        COMMENTFLOW_DISPATCH_MAX_DELAY_MS: 退避延迟上限
        COMMENTFLOW_DISPATCH_BACKOFF_MULTIPLIER: 退避倍数
        COMMENTFLOW_ARTIFACT_INLINE_THRESHOLD: payload inline 阈值（字节）
    """

    cache_default_ttl_ms: int = Field(default=300_000, ge=1)
    node_snapshot_ttl_ms: int = Field(default=5_000, ge=1)
    dispatch_max_retries: int = Field(default=3, ge=0)
    dispatch_initial_delay_ms: int = Field(default=1_000, ge=0)
    dispatch_max_delay_ms: int = Field(default=10_000, ge=0)
    dispatch_backoff_multiplier: float = Field(default=2.0, ge=1.0)
    artifact_inline_threshold: int = Field(default=4_096, ge=0)


# 环境变量 -> (字段名, 类型)
_ENGINE_ENV_VARS: dict[str, tuple[str, type]] = {
    "COMMENTFLOW_CACHE_DEFAULT_TTL_MS": ("cache_default_ttl_ms", int),
    "COMMENTFLOW_NODE_SNAPSHOT_TTL_MS": ("node_snapshot_ttl_ms", int),
    "COMMENTFLOW_DISPATCH_MAX_RETRIES": ("dispatch_max_retries", int),
    "COMMENTFLOW_DISPATCH_INITIAL_DELAY_MS": ("dispatch_initial_delay_ms", int),
    "COMMENTFLOW_DISPATCH_MAX_DELAY_MS": ("dispatch_max_delay_ms", int),
    "COMMENTFLOW_DISPATCH_BACKOFF_MULTIPLIER": ("dispatch_backoff_multiplier", float),
    "COMMENTFLOW_ARTIFACT_INLINE_THRESHOLD": ("artifact_inline_threshold", int),
}


def load_engine_config() -> EngineConfig:
    """从环境变量加载引擎配置

    每个字段单独校验，解析失败或超出范围的值回退默认值。

    Returns:
        EngineConfig 实例
    """
    defaults = EngineConfig()
    kwargs: dict = {}

    for env_var, (field_name, cast) in _ENGINE_ENV_VARS.items():
        val = os.environ.get(env_var)
        if not val:
            continue
        try:
            value = cast(val)
            EngineConfig.model_validate({field_name: value})
        except (ValueError, ValidationError):
            log.warning(
                "invalid_config_value",
                env_var=env_var,
                value=val,
                fallback=getattr(defaults, field_name),
            )
            # 使用默认值，不阻塞启动
            continue
        kwargs[field_name] = value

    return EngineConfig(**kwargs)


class DocumentApiConfig(BaseModel):
    """文档 API 访问配置 -- 供外部协作方（API client / 执行面）查询

    环境变量:
        COMMENTFLOW_ACCESS_TOKEN: 文档 API 访问令牌
        COMMENTFLOW_API_BASE_URL: 文档 API 基础 URL
    """

    access_token: SecretStr = Field(default=SecretStr(""), description="访问令牌")
    api_base_url: str = Field(default="https://api.figma.com/v1", description="API 基础 URL")

    def is_configured(self) -> bool:
        """是否已配置访问令牌"""
        return bool(self.access_token.get_secret_value())

    def get_access_token(self) -> str | None:
        """返回访问令牌，未配置时返回 None"""
        token = self.access_token.get_secret_value()
        return token or None


def load_document_api_config() -> DocumentApiConfig:
    """从环境变量加载文档 API 配置"""
    kwargs: dict = {}

    if val := os.environ.get("COMMENTFLOW_ACCESS_TOKEN"):
        kwargs["access_token"] = SecretStr(val)

    if val := os.environ.get("COMMENTFLOW_API_BASE_URL"):
        kwargs["api_base_url"] = val

    return DocumentApiConfig(**kwargs)
