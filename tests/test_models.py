"""Domain Model 单元测试

测试内容：
1. Task 状态相关字段组合校验
2. Conflict 双方任务不同
3. ArtifactMetadata 扩展字段约束
4. TaskFilters 匹配
"""

from datetime import UTC, datetime, timedelta, timezone

import pytest
from commentflow.core.models import (
    ArtifactMetadata,
    CommandResult,
    CommandStatus,
    Conflict,
    ConflictSeverity,
    ConflictType,
    ErrorCode,
    StatusReason,
    TaskFilters,
    TaskState,
)
from pydantic import ValidationError


def _conflict(task_id: str = "t1", other: str = "t2") -> Conflict:
    return Conflict(
        type=ConflictType.NODE_OVERLAP,
        task_id=task_id,
        conflicting_task_id=other,
        nodes=("1:2",),
        severity=ConflictSeverity.WARNING,
    )


class TestTaskInvariants:
    """Task 模型校验"""

    def test_command_ids_filled_from_commands(self, make_task, make_command):
        task = make_task(
            "t1",
            commands=[make_command("c1", "update_text", "1:2"), make_command("c2", "move_node")],
        )
        assert task.command_ids == ["c1", "c2"]

    def test_command_ids_must_align(self, make_task, make_command):
        with pytest.raises(ValidationError):
            make_task("t1", commands=[make_command("c1", "update_text")], command_ids=["cX"])

    def test_results_must_align_with_commands(self, make_task, make_command):
        with pytest.raises(ValidationError):
            make_task(
                "t1",
                commands=[make_command("c1", "update_text")],
                results=[CommandResult(command_id="c2", status=CommandStatus.SUCCESS)],
            )

    def test_conflicts_rejected_while_in_progress(self, make_task):
        with pytest.raises(ValidationError):
            make_task("t1", state=TaskState.IN_PROGRESS, conflicts=[_conflict()])

    def test_queued_task_may_carry_advisory_conflicts(self, make_task):
        task = make_task("t1", conflicts=[_conflict()], deferred_behind=["t2"])
        assert task.deferred_behind == ["t2"]

    def test_blocked_requires_conflicts_or_permission_reason(self, make_task):
        with pytest.raises(ValidationError):
            make_task("t1", state=TaskState.BLOCKED)

        task = make_task(
            "t1",
            state=TaskState.BLOCKED,
            status_reason=StatusReason(code=ErrorCode.PERMISSION_DENIED, message="read only"),
        )
        assert task.state == TaskState.BLOCKED

    def test_needs_review_requires_reason(self, make_task):
        with pytest.raises(ValidationError):
            make_task("t1", state=TaskState.NEEDS_REVIEW)

    def test_done_requires_all_commands_succeeded(self, make_task, make_command):
        with pytest.raises(ValidationError):
            make_task("t1", state=TaskState.DONE, commands=[make_command("c1", "update_text")])

    def test_completed_at_only_for_terminal(self, make_task):
        with pytest.raises(ValidationError):
            make_task("t1", completed_at=datetime.now(UTC))

    def test_pending_commands_skip_succeeded(self, make_task, make_command):
        task = make_task(
            "t1",
            state=TaskState.IN_PROGRESS,
            commands=[make_command("c1", "update_text"), make_command("c2", "update_text")],
            results=[CommandResult(command_id="c1", status=CommandStatus.SUCCESS)],
        )
        assert [c.id for c in task.pending_commands()] == ["c2"]


class TestConflictModel:
    """Conflict 模型"""

    def test_conflict_requires_distinct_tasks(self):
        with pytest.raises(ValidationError):
            _conflict("t1", "t1")

    def test_conflict_requires_nodes(self):
        with pytest.raises(ValidationError):
            Conflict(
                type=ConflictType.NODE_OVERLAP,
                task_id="t1",
                conflicting_task_id="t2",
                nodes=(),
                severity=ConflictSeverity.WARNING,
            )

    def test_swapped_and_involves(self):
        conflict = _conflict()
        swapped = conflict.swapped()
        assert swapped.task_id == "t2"
        assert swapped.conflicting_task_id == "t1"
        assert swapped.involves("t1", "t2")
        assert conflict.involves("t2", "t1")
        assert not conflict.involves("t1", "t3")


class TestArtifactMetadata:
    """扩展字段约束"""

    def test_extra_fields_bounded(self):
        with pytest.raises(ValidationError):
            ArtifactMetadata(extra={f"k{i}": i for i in range(17)})

    def test_extra_field_names_snake_case(self):
        with pytest.raises(ValidationError):
            ArtifactMetadata(extra={"Export-URL": "x"})

        meta = ArtifactMetadata(extra={"export_url": "https://example.com/a.png", "scale": 2})
        assert meta.extra["scale"] == 2


class TestTaskFilters:
    """TaskFilters 匹配"""

    def test_filters_are_intersection(self, make_task):
        task = make_task("t1", owner="ai", tags=["copy", "urgent"])
        assert TaskFilters(document_id="doc-1", owner="ai").matches(task)
        assert TaskFilters(tags=["copy"]).matches(task)
        assert not TaskFilters(tags=["copy", "layout"]).matches(task)
        assert not TaskFilters(states=[TaskState.DONE]).matches(task)

    def test_created_range_inclusive(self, make_task):
        task = make_task("t1")
        assert TaskFilters(
            created_after=task.created_at,
            created_before=task.created_at,
        ).matches(task)
        assert not TaskFilters(created_after=task.created_at + timedelta(seconds=1)).matches(task)

    def test_naive_timestamps_read_as_utc(self, make_task):
        naive = datetime(2026, 3, 1, 9, 30)
        task = make_task("t1", created_at=naive, updated_at=naive)

        assert task.created_at == datetime(2026, 3, 1, 9, 30, tzinfo=UTC)
        assert TaskFilters(created_after=naive, created_before=naive).matches(task)
        shanghai = timezone(timedelta(hours=8))
        filters = TaskFilters(created_before=datetime(2026, 3, 1, 17, 29, tzinfo=shanghai))
        assert filters.created_before.tzinfo == UTC
        assert not filters.matches(task)
