"""ConflictResolver 单元测试 -- 策略表与顺序保持"""

import pytest
from commentflow.core.conflicts import ConflictResolver
from commentflow.core.models import (
    Conflict,
    ConflictSeverity,
    ConflictType,
    ResolutionStrategy,
)


def _conflict(type: ConflictType, severity: ConflictSeverity, other: str = "t0") -> Conflict:
    return Conflict(
        type=type,
        task_id="t1",
        conflicting_task_id=other,
        nodes=("1:2",),
        severity=severity,
        description=f"{type} with {other}",
    )


class TestConflictResolver:
    """策略选择"""

    @pytest.mark.parametrize(
        "type,severity,strategy,resolved",
        [
            (ConflictType.NODE_OVERLAP, ConflictSeverity.WARNING, ResolutionStrategy.SEQUENCE, True),
            (ConflictType.NODE_OVERLAP, ConflictSeverity.ERROR, ResolutionStrategy.BRANCH, True),
            (ConflictType.STYLE_CONFLICT, ConflictSeverity.WARNING, ResolutionStrategy.BRANCH, True),
            (ConflictType.STYLE_CONFLICT, ConflictSeverity.ERROR, ResolutionStrategy.BRANCH, True),
            (ConflictType.DELETE_CONFLICT, ConflictSeverity.WARNING, ResolutionStrategy.WARN, True),
            (ConflictType.DELETE_CONFLICT, ConflictSeverity.ERROR, ResolutionStrategy.WARN, False),
        ],
    )
    def test_strategy_table(self, type, severity, strategy, resolved):
        [resolution] = ConflictResolver().resolve([_conflict(type, severity)])
        assert resolution.strategy == strategy
        assert resolution.resolved is resolved
        assert resolution.actions

    def test_one_resolution_per_conflict_in_order(self):
        conflicts = [
            _conflict(ConflictType.DELETE_CONFLICT, ConflictSeverity.ERROR, "a"),
            _conflict(ConflictType.NODE_OVERLAP, ConflictSeverity.WARNING, "b"),
            _conflict(ConflictType.STYLE_CONFLICT, ConflictSeverity.ERROR, "c"),
        ]
        resolutions = ConflictResolver().resolve(conflicts)
        assert [r.conflict for r in resolutions] == conflicts

    def test_delete_conflict_carries_warning(self):
        [resolution] = ConflictResolver().resolve(
            [_conflict(ConflictType.DELETE_CONFLICT, ConflictSeverity.ERROR)]
        )
        assert resolution.warnings == ("delete_conflict with t0",)

    def test_merge_never_selected(self):
        conflicts = [
            _conflict(t, s) for t in ConflictType for s in ConflictSeverity
        ]
        strategies = {r.strategy for r in ConflictResolver().resolve(conflicts)}
        assert ResolutionStrategy.MERGE not in strategies

    def test_empty_input(self):
        assert ConflictResolver().resolve([]) == []
