"""命令下发 -- 执行面接口与有界指数退避重试

RetryingExecutor 包装任意 CommandExecutor：
下发抛出异常时按指数退避重试，延迟有上限，重试次数固定；
重试耗尽抛出 ExternalDispatchError，Orchestrator 将任务置为 failed。
执行面返回的 error / pending 回执不重试，原样交给 Orchestrator。

退避等待使用 asyncio.sleep，任务取消时随 CancelledError 立即中止。
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Protocol

import structlog
from pydantic import BaseModel, Field

from .config import EngineConfig
from .exceptions import ExternalDispatchError
from .models.command import Command, CommandResult

log = structlog.get_logger()


class CommandExecutor(Protocol):
    """外部执行面接口"""

    async def dispatch(self, command: Command, document_id: str) -> CommandResult:
        """下发单条命令并返回回执"""
        ...


class RetryPolicy(BaseModel):
    """重试策略"""

    max_retries: int = Field(default=3, ge=0, description="首次失败后的最大重试次数")
    initial_delay_ms: int = Field(default=1_000, ge=0)
    max_delay_ms: int = Field(default=10_000, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1.0)

    @classmethod
    def from_config(cls, config: EngineConfig) -> "RetryPolicy":
        return cls(
            max_retries=config.dispatch_max_retries,
            initial_delay_ms=config.dispatch_initial_delay_ms,
            max_delay_ms=config.dispatch_max_delay_ms,
            backoff_multiplier=config.dispatch_backoff_multiplier,
        )

    def delay_ms(self, retry: int) -> float:
        """第 retry 次重试（从 1 开始）前的等待时间"""
        delay = self.initial_delay_ms * self.backoff_multiplier ** (retry - 1)
        return min(delay, self.max_delay_ms)


class RetryingExecutor:
    """带退避重试的执行面包装"""

    def __init__(
        self,
        inner: CommandExecutor,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Args:
            inner: 实际执行面
            policy: 重试策略，默认 3 次重试、1s 起步、x2、上限 10s
            sleep: 等待函数（秒），测试可注入
        """
        self._inner = inner
        self._policy = policy or RetryPolicy()
        self._sleep = sleep

    async def dispatch(self, command: Command, document_id: str) -> CommandResult:
        """下发命令，异常时重试

        Raises:
            ExternalDispatchError: 重试耗尽
        """
        attempts = 0
        while True:
            attempts += 1
            try:
                return await self._inner.dispatch(command, document_id)
            except Exception as e:
                if attempts > self._policy.max_retries:
                    log.error(
                        "dispatch_retries_exhausted",
                        command_id=command.id,
                        command=command.command,
                        attempts=attempts,
                        error=str(e),
                    )
                    raise ExternalDispatchError(command.id, attempts, e) from e

                delay_ms = self._policy.delay_ms(attempts)
                log.warning(
                    "dispatch_retry",
                    command_id=command.id,
                    attempt=attempts,
                    delay_ms=delay_ms,
                    error=str(e),
                )
                await self._sleep(delay_ms / 1000)
