"""RetryingExecutor 单元测试 -- 有界指数退避与取消"""

import asyncio
from unittest.mock import AsyncMock, call

import pytest
from commentflow.core.config import EngineConfig
from commentflow.core.dispatch import RetryingExecutor, RetryPolicy
from commentflow.core.exceptions import ExternalDispatchError
from commentflow.core.models import CommandError, CommandResult, CommandStatus, ErrorCode


def _ok(command_id: str) -> CommandResult:
    return CommandResult(command_id=command_id, status=CommandStatus.SUCCESS)


class TestRetryPolicy:
    """退避延迟计算"""

    def test_default_delays_double_until_cap(self):
        policy = RetryPolicy()
        assert [policy.delay_ms(n) for n in range(1, 6)] == [1000, 2000, 4000, 8000, 10000]

    def test_from_config(self):
        policy = RetryPolicy.from_config(
            EngineConfig(dispatch_max_retries=1, dispatch_initial_delay_ms=50)
        )
        assert policy.max_retries == 1
        assert policy.initial_delay_ms == 50


class TestRetryingExecutor:
    """重试行为"""

    async def test_success_first_try(self, make_command):
        inner = AsyncMock()
        inner.dispatch.return_value = _ok("c1")
        sleep = AsyncMock()
        executor = RetryingExecutor(inner, sleep=sleep)

        result = await executor.dispatch(make_command("c1", "update_text"), "doc-1")

        assert result.succeeded
        sleep.assert_not_awaited()

    async def test_retries_then_succeeds(self, make_command):
        inner = AsyncMock()
        inner.dispatch.side_effect = [ConnectionError("a"), ConnectionError("b"), _ok("c1")]
        sleep = AsyncMock()
        executor = RetryingExecutor(inner, sleep=sleep)

        result = await executor.dispatch(make_command("c1", "update_text"), "doc-1")

        assert result.succeeded
        assert sleep.await_args_list == [call(1.0), call(2.0)]

    async def test_exhaustion_raises_external_dispatch_error(self, make_command):
        inner = AsyncMock()
        inner.dispatch.side_effect = ConnectionError("bridge down")
        sleep = AsyncMock()
        executor = RetryingExecutor(inner, sleep=sleep)

        with pytest.raises(ExternalDispatchError) as exc_info:
            await executor.dispatch(make_command("c1", "update_text"), "doc-1")

        assert exc_info.value.attempts == 4
        assert exc_info.value.code == ErrorCode.EXTERNAL_DISPATCH_FAILURE
        assert isinstance(exc_info.value.original_error, ConnectionError)
        assert sleep.await_args_list == [call(1.0), call(2.0), call(4.0)]

    async def test_delay_capped(self, make_command):
        inner = AsyncMock()
        inner.dispatch.side_effect = ConnectionError("down")
        sleep = AsyncMock()
        policy = RetryPolicy(max_retries=3, initial_delay_ms=1000, max_delay_ms=5000,
                             backoff_multiplier=10)
        executor = RetryingExecutor(inner, policy, sleep=sleep)

        with pytest.raises(ExternalDispatchError):
            await executor.dispatch(make_command("c1", "update_text"), "doc-1")

        assert sleep.await_args_list == [call(1.0), call(5.0), call(5.0)]

    async def test_error_result_not_retried(self, make_command):
        inner = AsyncMock()
        inner.dispatch.return_value = CommandResult(
            command_id="c1",
            status=CommandStatus.ERROR,
            error=CommandError(code="NODE_NOT_FOUND", message="missing"),
        )
        executor = RetryingExecutor(inner, sleep=AsyncMock())

        result = await executor.dispatch(make_command("c1", "update_text"), "doc-1")

        assert result.status == CommandStatus.ERROR
        assert inner.dispatch.await_count == 1

    async def test_backoff_wait_is_cancelable(self, make_command):
        inner = AsyncMock()
        inner.dispatch.side_effect = ConnectionError("down")
        executor = RetryingExecutor(inner, RetryPolicy(initial_delay_ms=60_000))

        pending = asyncio.create_task(
            executor.dispatch(make_command("c1", "update_text"), "doc-1")
        )
        while inner.dispatch.await_count == 0:
            await asyncio.sleep(0)
        pending.cancel()

        with pytest.raises(asyncio.CancelledError):
            await pending
        assert inner.dispatch.await_count == 1
