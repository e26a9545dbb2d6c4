"""Orchestrator -- 任务准入、下发与状态推进

准入流程（同一文档内串行，持有文档级锁）：
1. ConflictDetector 对活跃任务集合检测冲突
2. ConflictResolver 逐个选择策略
3. 存在 resolved=False -> blocked；存在 sequence -> 保持 queued 顺延；
   否则 PermissionGate 逐条授权命令 -> in_progress 或 blocked
下发在锁外进行；任务 done 后失效该文档的缓存、写入 node_ids 产物，
并重新准入顺延在其后的任务。

副作用（缓存失效、产物写入、审计事件）均为 best-effort，失败只记录日志。
"""

import asyncio
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

from .cache import InvalidationAwareCache
from .config import EngineConfig
from .conflicts.detector import ConflictDetector, command_node_ids
from .conflicts.resolver import ConflictResolver
from .dispatch import CommandExecutor, RetryingExecutor, RetryPolicy
from .exceptions import (
    CommandFailedError,
    ConflictUnresolvedError,
    EngineError,
    ExternalDispatchError,
    InvalidTransitionError,
    PermissionDeniedError,
    TaskNotFoundError,
)
from .logging_config import task_log_context
from .models.artifact import Artifact, ArtifactFilters, ArtifactMetadata
from .models.command import CommandResult
from .models.conflict import Conflict, ConflictResolution
from .models.enums import (
    ActorType,
    AdmissionDecision,
    ArtifactType,
    AuditEventType,
    CommandStatus,
    ErrorCode,
    ResolutionStrategy,
    TaskState,
)
from .models.event import (
    ArtifactCreatedPayload,
    CacheInvalidatedPayload,
    CommandDispatchedPayload,
    ConflictResolvedPayload,
    PermissionDeniedPayload,
    StateTransitionPayload,
)
from .models.task import StatusReason, Task, TaskError, TaskFilters
from .node_context import NodeContextLoader, NodeContextProvider
from .permissions import PermissionGate, ScopeResolver
from .state_machine import apply_transition
from .store.protocols import ArtifactStore, EventStore

log = structlog.get_logger()


class AdmissionResult(BaseModel):
    """一次准入的结果"""

    model_config = ConfigDict(frozen=True)

    task: Task = Field(description="准入后的任务快照")
    decision: AdmissionDecision
    conflicts: list[Conflict] = Field(default_factory=list)
    resolutions: list[ConflictResolution] = Field(default_factory=list)
    branch: bool = Field(default=False, description="是否在副本上执行")


class Orchestrator:
    """任务生命周期的唯一推进者"""

    def __init__(
        self,
        detector: ConflictDetector,
        resolver: ConflictResolver,
        permission_gate: PermissionGate,
        cache: InvalidationAwareCache,
        artifact_store: ArtifactStore,
        executor: CommandExecutor,
        event_store: EventStore | None = None,
        config: EngineConfig | None = None,
        auto_run_readmitted: bool = True,
    ) -> None:
        """
        Args:
            executor: 执行面（通常为 RetryingExecutor）
            event_store: 审计事件存储，None 表示不记录审计轨迹
            auto_run_readmitted: 顺延任务重新准入后是否在后台自动执行
        """
        self._detector = detector
        self._resolver = resolver
        self._permission_gate = permission_gate
        self._cache = cache
        self._artifact_store = artifact_store
        self._executor = executor
        self._event_store = event_store
        self._config = config or EngineConfig()
        self._auto_run_readmitted = auto_run_readmitted

        self._tasks: dict[str, Task] = {}
        self._submit_order: dict[str, int] = {}
        self._next_order = 0
        self._inflight: dict[str, asyncio.Task] = {}
        self._background: set[asyncio.Task] = set()
        self._document_locks: dict[str, asyncio.Lock] = {}
        self._document_locks_guard = asyncio.Lock()

    # ------------------------------------------------------------------
    # 公共操作
    # ------------------------------------------------------------------

    async def submit(self, task: Task) -> AdmissionResult:
        """登记新任务并执行准入

        Raises:
            InvalidTransitionError: 任务不处于 queued
            ValueError: task_id 已存在
        """
        if task.state != TaskState.QUEUED:
            raise InvalidTransitionError(
                task.task_id,
                task.state,
                TaskState.IN_PROGRESS,
                detail="only queued tasks can be submitted",
            )
        if task.task_id in self._tasks:
            raise ValueError(f"Task {task.task_id} is already registered")

        task = self._stamp_idempotency_keys(task)
        self._tasks[task.task_id] = task
        self._submit_order[task.task_id] = self._next_order
        self._next_order += 1

        with task_log_context(task.task_id, task.document_id):
            log.info("task_submitted", command_count=len(task.commands))
            await self._audit(
                task,
                AuditEventType.TASK_CREATED,
                {"comment_id": task.comment_id, "command_count": len(task.commands)},
                actor=ActorType.USER,
            )
            lock = await self._get_document_lock(task.document_id)
            async with lock:
                return await self._admit(task.task_id)

    async def run(self, task_id: str) -> Task:
        """按顺序下发 in_progress 任务尚未成功的命令

        Returns:
            下发结束后的任务（done / failed / needs_input / canceled 等）

        Raises:
            InvalidTransitionError: 任务不处于 in_progress
            TaskNotFoundError: 任务不存在
        """
        task = self.get_task(task_id)
        if task.state != TaskState.IN_PROGRESS:
            raise InvalidTransitionError(
                task_id,
                task.state,
                TaskState.IN_PROGRESS,
                detail="only in_progress tasks can be run",
            )
        if task_id in self._inflight:
            raise ValueError(f"Task {task_id} is already running")

        inflight = asyncio.create_task(self._dispatch_pending(task_id))
        self._inflight[task_id] = inflight
        try:
            return await inflight
        except asyncio.CancelledError:
            # cancel() 已推进到 canceled 并中止下发
            if inflight.cancelled() and self._tasks[task_id].state == TaskState.CANCELED:
                return self._tasks[task_id]
            raise
        finally:
            self._inflight.pop(task_id, None)

    async def process(self, task: Task) -> Task:
        """submit + 准入成功时 run"""
        admission = await self.submit(task)
        if admission.decision == AdmissionDecision.ADMITTED:
            return await self.run(task.task_id)
        return admission.task

    async def cancel(self, task_id: str, reason: str = "canceled by user") -> Task:
        """取消 queued / in_progress 任务，中止进行中的下发

        取消的任务不写入完成产物。

        Raises:
            InvalidTransitionError: 任务处于终态或等待状态
        """
        task = self.get_task(task_id)
        with task_log_context(task.task_id, task.document_id):
            canceled = await self._transition(task, TaskState.CANCELED, note=reason)

            inflight = self._inflight.get(task_id)
            if inflight is not None and not inflight.done():
                inflight.cancel()
                log.info("task_dispatch_aborted")

            if any(r.succeeded for r in canceled.results):
                await self._invalidate_document(canceled)
            await self._after_terminal(canceled)
            return self._tasks[task_id]

    async def resume(self, task_id: str) -> AdmissionResult:
        """恢复等待中的任务

        needs_review / needs_input 直接回到 in_progress；
        blocked 重新执行准入（重新检测冲突与授权）。
        """
        task = self.get_task(task_id)
        with task_log_context(task.task_id, task.document_id):
            if task.state in (TaskState.NEEDS_REVIEW, TaskState.NEEDS_INPUT):
                task = await self._transition(task, TaskState.IN_PROGRESS, note="resumed")
                return AdmissionResult(
                    task=task,
                    decision=AdmissionDecision.ADMITTED,
                    branch=task.branch,
                )
            if task.state != TaskState.BLOCKED:
                raise InvalidTransitionError(
                    task_id,
                    task.state,
                    TaskState.IN_PROGRESS,
                    detail="only waiting tasks can be resumed",
                )

            lock = await self._get_document_lock(task.document_id)
            async with lock:
                return await self._admit(task_id)

    async def request_review(self, task_id: str, reason: str) -> Task:
        """in_progress -> needs_review"""
        return await self._request_wait(
            task_id,
            TaskState.NEEDS_REVIEW,
            StatusReason(code=ErrorCode.REVIEW_REQUESTED, message=reason),
        )

    async def request_input(self, task_id: str, reason: str) -> Task:
        """in_progress -> needs_input"""
        return await self._request_wait(
            task_id,
            TaskState.NEEDS_INPUT,
            StatusReason(code=ErrorCode.INPUT_REQUESTED, message=reason),
        )

    async def record_artifact(
        self,
        task_id: str,
        type: ArtifactType,
        data: Any,
        node_ids: Iterable[str] = (),
        extra: dict[str, str | int | float | bool] | None = None,
    ) -> str:
        """为任务写入产物，并把 artifact_id 追加到 task.artifacts

        Raises:
            ValueError: 任务已取消
        """
        task = self.get_task(task_id)
        if task.state == TaskState.CANCELED:
            raise ValueError(f"Task {task_id} is canceled and cannot produce artifacts")

        metadata = ArtifactMetadata(
            node_ids=tuple(node_ids),
            document_id=task.document_id,
            extra=extra or {},
        )
        artifact_id = await self._artifact_store.store(task_id, type, data, metadata)
        current = self._tasks[task_id]
        task = self._update(current, artifacts=[*current.artifacts, artifact_id])

        stored = await self._artifact_store.get(artifact_id)
        await self._audit(
            task,
            AuditEventType.ARTIFACT_CREATED,
            ArtifactCreatedPayload(
                artifact_id=artifact_id,
                type=str(type),
                size=stored.size if stored else 0,
            ).model_dump(mode="json"),
        )
        return artifact_id

    def get_task(self, task_id: str) -> Task:
        """查询任务

        Raises:
            TaskNotFoundError: 任务不存在
        """
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def list_tasks(self, filters: TaskFilters | None = None) -> list[Task]:
        """按提交顺序列出匹配条件的任务"""
        filters = filters or TaskFilters()
        tasks = sorted(self._tasks.values(), key=lambda t: self._submit_order[t.task_id])
        return [t for t in tasks if filters.matches(t)]

    async def find_artifacts(self, filters: ArtifactFilters) -> list[Artifact]:
        return await self._artifact_store.query(filters)

    async def drain(self) -> None:
        """等待所有后台执行（重新准入后自动运行的任务）结束"""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ------------------------------------------------------------------
    # 准入
    # ------------------------------------------------------------------

    async def _admit(self, task_id: str) -> AdmissionResult:
        """检测 -> 解决 -> 授权 -> 推进状态（调用方持有文档锁）"""
        task = self._tasks[task_id]
        active = [t for t in self._tasks.values() if self._in_detection_set(t, task)]

        conflicts = await self._detector.detect(task, active)
        resolutions = self._resolver.resolve(conflicts)
        if conflicts:
            await self._audit(
                task,
                AuditEventType.CONFLICT_DETECTED,
                {
                    "conflict_count": len(conflicts),
                    "conflicting_task_ids": sorted({c.conflicting_task_id for c in conflicts}),
                },
            )
            for resolution in resolutions:
                await self._audit(
                    task,
                    AuditEventType.CONFLICT_RESOLVED,
                    ConflictResolvedPayload(
                        conflict_type=resolution.conflict.type.value,
                        conflicting_task_id=resolution.conflict.conflicting_task_id,
                        nodes=list(resolution.conflict.nodes),
                        strategy=resolution.strategy,
                        resolved=resolution.resolved,
                        actions=list(resolution.actions),
                        warnings=list(resolution.warnings),
                    ).model_dump(mode="json"),
                )

        unresolved = [r.conflict for r in resolutions if not r.resolved]
        if unresolved:
            error = ConflictUnresolvedError(task_id, unresolved)
            task = await self._block(
                task,
                conflicts=unresolved,
                reason=StatusReason(code=error.code, message=error.message),
            )
            log.info("task_admission", decision="blocked", conflict_count=len(unresolved))
            return AdmissionResult(
                task=task,
                decision=AdmissionDecision.BLOCKED,
                conflicts=conflicts,
                resolutions=resolutions,
            )

        sequenced = [r.conflict for r in resolutions if r.strategy == ResolutionStrategy.SEQUENCE]
        if sequenced:
            task = await self._defer(task, sequenced)
            log.info(
                "task_admission",
                decision="deferred",
                deferred_behind=sorted({c.conflicting_task_id for c in sequenced}),
            )
            return AdmissionResult(
                task=task,
                decision=AdmissionDecision.DEFERRED,
                conflicts=conflicts,
                resolutions=resolutions,
            )

        for command in task.commands:
            if not await self._permission_gate.check_permission(task, command.command):
                error = PermissionDeniedError(task_id, command.command)
                payload = PermissionDeniedPayload(action=command.command, reason=error.message)
                await self._audit(task, AuditEventType.PERMISSION_DENIED, payload.model_dump())
                task = await self._block(
                    task,
                    conflicts=[],
                    reason=StatusReason(code=error.code, message=error.message),
                )
                log.info("task_admission", decision="blocked", denied_action=command.command)
                return AdmissionResult(
                    task=task,
                    decision=AdmissionDecision.BLOCKED,
                    conflicts=conflicts,
                    resolutions=resolutions,
                )

        branch = any(r.strategy == ResolutionStrategy.BRANCH for r in resolutions)
        task = await self._transition(task, TaskState.IN_PROGRESS, note="admitted")
        if branch:
            task = self._update(task, branch=True)
        log.info("task_admission", decision="admitted", branch=branch)
        return AdmissionResult(
            task=task,
            decision=AdmissionDecision.ADMITTED,
            conflicts=conflicts,
            resolutions=resolutions,
            branch=branch,
        )

    def _in_detection_set(self, other: Task, candidate: Task) -> bool:
        """活跃集合：同文档、非终态、非自身

        晚于候选提交且仍在 queued / blocked 的任务已在各自准入时考虑过候选，不计入。
        """
        if other.task_id == candidate.task_id or other.is_terminal:
            return False
        if other.document_id != candidate.document_id:
            return False
        later = self._submit_order[other.task_id] > self._submit_order[candidate.task_id]
        return not (later and other.state in (TaskState.QUEUED, TaskState.BLOCKED))

    async def _block(
        self,
        task: Task,
        conflicts: list[Conflict],
        reason: StatusReason,
    ) -> Task:
        """进入 blocked（经由 in_progress，状态机没有 queued -> blocked 边）"""
        task = await self._transition(task, TaskState.IN_PROGRESS, note="admission check")
        return await self._transition(
            task,
            TaskState.BLOCKED,
            reason=reason,
            conflicts=conflicts,
            note=reason.message,
        )

    async def _defer(self, task: Task, sequenced: list[Conflict]) -> Task:
        behind = sorted({c.conflicting_task_id for c in sequenced})
        if task.state == TaskState.QUEUED:
            task = self._update(
                task,
                conflicts=sequenced,
                deferred_behind=behind,
                updated_at=datetime.now(UTC),
            )
            return task

        # blocked 任务无法回到 queued：带着顺延冲突留在 blocked，前序任务结束后自动恢复
        return await self._block(
            task,
            conflicts=sequenced,
            reason=StatusReason(
                code=ErrorCode.CONFLICT_UNRESOLVED,
                message=f"Deferred behind {', '.join(behind)}",
            ),
        )

    def _is_deferred_block(self, task: Task) -> bool:
        return bool(task.conflicts) and all(
            self._resolver.resolve_one(c).strategy == ResolutionStrategy.SEQUENCE
            for c in task.conflicts
        )

    def _waiting_on(self, task: Task) -> list[str]:
        if task.state == TaskState.QUEUED:
            return task.deferred_behind
        if task.state == TaskState.BLOCKED and self._is_deferred_block(task):
            return [c.conflicting_task_id for c in task.conflicts]
        return []

    async def _readmit_waiting(self, document_id: str) -> None:
        """重新准入前序任务均已结束的顺延任务"""
        lock = await self._get_document_lock(document_id)
        admitted: list[str] = []
        async with lock:
            for task in self.list_tasks(TaskFilters(document_id=document_id)):
                current = self._tasks[task.task_id]
                blockers = self._waiting_on(current)
                if not blockers:
                    continue
                if any(b in self._tasks and not self._tasks[b].is_terminal for b in blockers):
                    continue
                with task_log_context(current.task_id, current.document_id):
                    result = await self._admit(current.task_id)
                if result.decision == AdmissionDecision.ADMITTED:
                    admitted.append(current.task_id)

        if admitted:
            log.info("deferred_tasks_readmitted", document_id=document_id, task_ids=admitted)
        if self._auto_run_readmitted:
            for task_id in admitted:
                background = asyncio.create_task(self.run(task_id))
                self._background.add(background)
                background.add_done_callback(self._background.discard)

    # ------------------------------------------------------------------
    # 下发
    # ------------------------------------------------------------------

    async def _dispatch_pending(self, task_id: str) -> Task:
        task = self._tasks[task_id]
        with task_log_context(task.task_id, task.document_id):
            for command in task.pending_commands():
                index = task.command_ids.index(command.id)
                try:
                    result = await self._executor.dispatch(command, task.document_id)
                except EngineError as e:
                    return await self._fail(task_id, e)
                except Exception as e:
                    return await self._fail(task_id, ExternalDispatchError(command.id, 1, e))

                task = self._tasks[task_id]
                if task.state != TaskState.IN_PROGRESS:
                    # 下发期间被取消或挂起
                    log.info("dispatch_stopped", state=str(task.state))
                    return task

                if result.command_id != command.id:
                    log.warning(
                        "command_result_id_mismatch",
                        command_id=command.id,
                        result_command_id=result.command_id,
                    )
                    result = result.model_copy(update={"command_id": command.id})

                task = self._update(task, results=[*task.results[:index], result])
                await self._audit(
                    task,
                    AuditEventType.COMMAND_DISPATCHED,
                    CommandDispatchedPayload(
                        command_id=command.id,
                        command=command.command,
                        status=result.status.value,
                        error_code=result.error.code if result.error else None,
                    ).model_dump(mode="json"),
                    actor=ActorType.EXECUTOR,
                )

                if result.status == CommandStatus.PENDING:
                    return await self._transition(
                        task,
                        TaskState.NEEDS_INPUT,
                        reason=StatusReason(
                            code=ErrorCode.COMMAND_PENDING,
                            message=f"Command {command.id} is awaiting confirmation",
                        ),
                    )
                if result.status == CommandStatus.ERROR:
                    return await self._fail(task_id, CommandFailedError(result))

            return await self._complete(task_id)

    async def _complete(self, task_id: str) -> Task:
        task = await self._transition(self._tasks[task_id], TaskState.DONE)
        await self._invalidate_document(task)
        await self._store_completion_artifact(task)
        await self._after_terminal(task)
        return self._tasks[task_id]

    async def _fail(self, task_id: str, error: EngineError) -> Task:
        task = self._tasks[task_id]
        if task.state != TaskState.IN_PROGRESS:
            return task
        log.warning("task_failed", code=error.code.value, error=error.message)
        task = await self._transition(task, TaskState.FAILED, error=error.to_task_error())
        if any(r.succeeded for r in task.results):
            await self._invalidate_document(task)
        await self._after_terminal(task)
        return self._tasks[task_id]

    async def _after_terminal(self, task: Task) -> None:
        await self._readmit_waiting(task.document_id)
        await self._cleanup_document_lock(task.document_id)

    # ------------------------------------------------------------------
    # 副作用（best-effort）
    # ------------------------------------------------------------------

    async def _invalidate_document(self, task: Task) -> int:
        """失效文档相关的全部缓存键，失败重试一次

        两次均失败时接受的陈旧窗口为节点快照 TTL。
        """
        for attempt in (1, 2):
            try:
                removed = self._cache.invalidate_pattern(task.document_id)
            except Exception as e:
                log.warning("cache_invalidation_failed", attempt=attempt, error=str(e))
                continue
            await self._audit(
                task,
                AuditEventType.CACHE_INVALIDATED,
                CacheInvalidatedPayload(pattern=task.document_id, removed=removed).model_dump(),
                actor=ActorType.SYSTEM,
            )
            return removed

        log.error(
            "cache_invalidation_abandoned",
            staleness_window_ms=self._config.node_snapshot_ttl_ms,
        )
        return 0

    async def _store_completion_artifact(self, task: Task) -> None:
        node_ids = touched_node_ids(task)
        try:
            await self.record_artifact(
                task.task_id,
                ArtifactType.NODE_IDS,
                {"node_ids": node_ids, "command_ids": task.command_ids},
                node_ids=node_ids,
                extra={"branch": task.branch},
            )
        except Exception as e:
            log.warning("completion_artifact_failed", error=str(e))

    async def _audit(
        self,
        task: Task,
        event_type: AuditEventType,
        payload: dict[str, Any],
        actor: ActorType = ActorType.ORCHESTRATOR,
    ) -> None:
        if self._event_store is None:
            return
        try:
            await self._event_store.append(
                task.task_id, task.document_id, event_type, actor, payload
            )
        except Exception as e:
            log.error(
                "audit_write_failed",
                task_id=task.task_id,
                event_type=event_type.value,
                error_type=type(e).__name__,
            )

    # ------------------------------------------------------------------
    # 状态与锁
    # ------------------------------------------------------------------

    async def _transition(
        self,
        task: Task,
        to_state: TaskState,
        *,
        reason: StatusReason | None = None,
        conflicts: list[Conflict] | None = None,
        error: TaskError | None = None,
        note: str = "",
    ) -> Task:
        updated = apply_transition(
            task,
            to_state,
            reason=reason,
            conflicts=conflicts,
            error=error,
        )
        self._tasks[task.task_id] = updated
        log.info("task_state_changed", from_state=str(task.state), to_state=str(to_state))
        await self._audit(
            updated,
            AuditEventType.STATE_TRANSITION,
            StateTransitionPayload(
                from_state=task.state,
                to_state=to_state,
                reason=note or (reason.message if reason else ""),
            ).model_dump(mode="json"),
        )
        return updated

    async def _request_wait(self, task_id: str, to_state: TaskState, reason: StatusReason) -> Task:
        task = self.get_task(task_id)
        with task_log_context(task.task_id, task.document_id):
            return await self._transition(task, to_state, reason=reason)

    def _update(self, task: Task, **fields: Any) -> Task:
        """更新非状态字段并重新校验"""
        updated = Task.model_validate({**task.model_dump(), **fields})
        self._tasks[task.task_id] = updated
        return updated

    @staticmethod
    def _stamp_idempotency_keys(task: Task) -> Task:
        commands = [
            c if c.idempotency_key else c.model_copy(
                update={"idempotency_key": f"{task.task_id}:{c.id}"}
            )
            for c in task.commands
        ]
        return task.model_copy(update={"commands": commands})

    async def _get_document_lock(self, document_id: str) -> asyncio.Lock:
        """获取文档级锁，串行化同一文档的准入"""
        async with self._document_locks_guard:
            lock = self._document_locks.get(document_id)
            if lock is None:
                lock = asyncio.Lock()
                self._document_locks[document_id] = lock
            return lock

    async def _cleanup_document_lock(self, document_id: str) -> None:
        """文档没有非终态任务后清理锁"""
        if any(t.document_id == document_id and not t.is_terminal for t in self._tasks.values()):
            return
        async with self._document_locks_guard:
            lock = self._document_locks.get(document_id)
            if lock is not None and not lock.locked():
                self._document_locks.pop(document_id, None)


def touched_node_ids(task: Task) -> list[str]:
    """任务触达的节点：目标节点、命令引用的节点、回执中返回的节点（保持首次出现顺序）"""
    node_ids: list[str] = []
    if task.target_node_id:
        node_ids.append(task.target_node_id)
    for command in task.commands:
        node_ids.extend(command_node_ids(command))
    for result in task.results:
        node_ids.extend(_result_node_ids(result))
    return list(dict.fromkeys(node_ids))


def _result_node_ids(result: CommandResult) -> list[str]:
    if not isinstance(result.result, dict):
        return []
    found = [result.result.get(key) for key in ("id", "nodeId")]
    many = result.result.get("nodeIds")
    if isinstance(many, list):
        found.extend(many)
    return [n for n in found if isinstance(n, str) and n]


def create_orchestrator(
    executor: CommandExecutor,
    artifact_store: ArtifactStore,
    node_provider: NodeContextProvider | None = None,
    event_store: EventStore | None = None,
    scope_resolver: ScopeResolver | None = None,
    config: EngineConfig | None = None,
) -> Orchestrator:
    """按配置装配 Orchestrator 及其协作组件

    缓存、节点快照 TTL 与下发重试策略均取自 EngineConfig。
    """
    config = config or EngineConfig()
    cache = InvalidationAwareCache(default_ttl_ms=config.cache_default_ttl_ms)
    node_loader = (
        NodeContextLoader(node_provider, cache, ttl_ms=config.node_snapshot_ttl_ms)
        if node_provider is not None
        else None
    )
    return Orchestrator(
        detector=ConflictDetector(node_loader),
        resolver=ConflictResolver(),
        permission_gate=PermissionGate(scope_resolver),
        cache=cache,
        artifact_store=artifact_store,
        executor=RetryingExecutor(executor, RetryPolicy.from_config(config)),
        event_store=event_store,
        config=config,
    )
