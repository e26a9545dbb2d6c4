"""structlog 配置模块

dev 模式：pretty print 可读输出
json 模式：结构化 JSON 输出，异常栈序列化为字符串字段
引擎导入时不配置日志，由宿主服务启动时调用 setup_logging()。

执行面的错误信息可能回显文档 API 的访问令牌，
所有事件在渲染前经过 redact_secrets 脱敏。
"""

import logging
import os
import re
from collections.abc import MutableMapping
from contextlib import AbstractContextManager
from typing import Any

import structlog

REDACTED = "[REDACTED]"

SENSITIVE_KEYS = frozenset(
    {"access_token", "token", "api_key", "authorization", "password", "secret"}
)
_SENSITIVE_ASSIGNMENT_RE = re.compile(
    r"(?i)\b(api[_-]?key|access[_-]?token|token|password|secret)\b(\s*[:=]\s*)([^\s,;&]+)"
)
_SENSITIVE_HEADER_RE = re.compile(r"(?i)\b((?:x-figma-token|authorization)\s*[:=]\s*(?:bearer\s+)?)([^\s,;]+)")

# 每条 SQL 都打 DEBUG 日志
NOISY_LOGGERS = ("aiosqlite",)


def redact_text(value: str) -> str:
    redacted = _SENSITIVE_HEADER_RE.sub(rf"\1{REDACTED}", value)
    return _SENSITIVE_ASSIGNMENT_RE.sub(rf"\1\2{REDACTED}", redacted)


def redact_secrets(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog 处理器：敏感键整体替换，字符串值中的令牌片段就地脱敏"""
    for key, value in list(event_dict.items()):
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = REDACTED
        elif isinstance(value, str):
            event_dict[key] = redact_text(value)
    return event_dict


def setup_logging(log_format: str | None = None, log_level: str | None = None) -> None:
    """初始化 structlog 配置

    Args:
        log_format: "json"（生产）或 "dev"（默认），缺省读取 COMMENTFLOW_LOG_FORMAT
        log_level: 日志级别，缺省读取 COMMENTFLOW_LOG_LEVEL（默认 INFO）
    """
    log_format = log_format or os.environ.get("COMMENTFLOW_LOG_FORMAT", "dev")
    log_level = log_level or os.environ.get("COMMENTFLOW_LOG_LEVEL", "INFO")

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        redact_secrets,
    ]

    if log_format == "json":
        render_chain: list[structlog.types.Processor] = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ]
    else:
        render_chain = [structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *render_chain,
        ],
        foreign_pre_chain=shared_processors,
    )
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    level = getattr(logging, log_level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def task_log_context(task_id: str, document_id: str) -> AbstractContextManager:
    """在当前协程上下文内为所有日志绑定 task_id / document_id"""
    return structlog.contextvars.bound_contextvars(task_id=task_id, document_id=document_id)
