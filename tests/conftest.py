"""全局 pytest 配置 -- 任务/命令工厂 + 临时 SQLite Store + Orchestrator fixture"""

from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from commentflow.core.cache import InvalidationAwareCache
from commentflow.core.conflicts import ConflictDetector, ConflictResolver
from commentflow.core.models import (
    TERMINAL_STATES,
    Command,
    CommandResult,
    CommandStatus,
    Task,
    TaskState,
)
from commentflow.core.orchestrator import Orchestrator
from commentflow.core.permissions import PermissionGate, StaticScopeResolver
from commentflow.core.store import StoreGroup, create_store_group


def build_task(
    task_id: str,
    *,
    document_id: str = "doc-1",
    commands: list[Command] | None = None,
    target_node_id: str | None = None,
    state: TaskState = TaskState.QUEUED,
    **extra: Any,
) -> Task:
    now = datetime.now(UTC)
    fields: dict[str, Any] = {
        "task_id": task_id,
        "comment_id": f"comment-{task_id}",
        "document_id": document_id,
        "user_id": "user-1",
        "message": "please adjust this",
        "target_node_id": target_node_id,
        "commands": commands or [],
        "state": state,
        "created_at": now,
        "updated_at": now,
    }
    if state in TERMINAL_STATES:
        fields["completed_at"] = now
    fields.update(extra)
    return Task(**fields)


def build_command(
    command_id: str,
    name: str,
    node_id: str | None = None,
    **params: Any,
) -> Command:
    if node_id is not None:
        params["nodeId"] = node_id
    return Command(id=command_id, command=name, params=params)


async def succeed(command: Command, document_id: str) -> CommandResult:
    """默认执行面：总是成功，回执返回触达的节点 ID"""
    return CommandResult(
        command_id=command.id,
        status=CommandStatus.SUCCESS,
        result={"id": command.params.get("nodeId", f"new-{command.id}")},
    )


class FakeClock:
    """可手动推进的毫秒时钟"""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def make_task() -> Callable[..., Task]:
    return build_task


@pytest.fixture
def make_command() -> Callable[..., Command]:
    return build_command


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> InvalidationAwareCache:
    return InvalidationAwareCache(default_ttl_ms=5_000, clock=clock)


@pytest.fixture
def executor() -> AsyncMock:
    """执行面 mock，默认全部成功"""
    mock = AsyncMock()
    mock.dispatch.side_effect = succeed
    return mock


@pytest.fixture
def scope_resolver() -> StaticScopeResolver:
    return StaticScopeResolver()


@pytest_asyncio.fixture
async def store_group(tmp_path: Path) -> AsyncGenerator[StoreGroup, None]:
    """已初始化的临时 Store 实例组"""
    group = await create_store_group(
        str(tmp_path / "sqlite" / "test.db"),
        tmp_path / "artifacts",
        inline_threshold=256,
    )
    yield group
    await group.close()


@pytest_asyncio.fixture
async def orchestrator(
    store_group: StoreGroup,
    cache: InvalidationAwareCache,
    executor: AsyncMock,
    scope_resolver: StaticScopeResolver,
) -> AsyncGenerator[Orchestrator, None]:
    orch = Orchestrator(
        detector=ConflictDetector(),
        resolver=ConflictResolver(),
        permission_gate=PermissionGate(scope_resolver),
        cache=cache,
        artifact_store=store_group.artifact_store,
        executor=executor,
        event_store=store_group.event_store,
    )
    yield orch
    await orch.drain()
