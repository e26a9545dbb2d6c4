"""ConflictResolver -- 按冲突类型与严重程度选择解决策略

| type            | severity | strategy              |
|-----------------|----------|-----------------------|
| node_overlap    | warning  | sequence              |
| node_overlap    | error    | branch                |
| style_conflict  | any      | branch                |
| delete_conflict | any      | warn（error 需人工审核）|

merge 预留给可合并 diff 的冲突类型，默认规则不会选中。
"""

import structlog

from ..models.conflict import Conflict, ConflictResolution
from ..models.enums import ConflictSeverity, ConflictType, ResolutionStrategy

log = structlog.get_logger()


class ConflictResolver:
    """确定性策略选择器，每个冲突产出一条不可变的 ConflictResolution"""

    def resolve(self, conflicts: list[Conflict]) -> list[ConflictResolution]:
        """逐个解决冲突，保持输入顺序"""
        resolutions = [self.resolve_one(c) for c in conflicts]
        if resolutions:
            log.info(
                "conflicts_resolved",
                conflict_count=len(resolutions),
                unresolved=sum(1 for r in resolutions if not r.resolved),
                strategies=[r.strategy.value for r in resolutions],
            )
        return resolutions

    def resolve_one(self, conflict: Conflict) -> ConflictResolution:
        if conflict.type == ConflictType.NODE_OVERLAP:
            if conflict.severity == ConflictSeverity.WARNING:
                return self._sequence(conflict)
            return self._branch(conflict)
        if conflict.type == ConflictType.STYLE_CONFLICT:
            return self._branch(conflict)
        return self._warn(conflict)

    @staticmethod
    def _sequence(conflict: Conflict) -> ConflictResolution:
        return ConflictResolution(
            conflict=conflict,
            strategy=ResolutionStrategy.SEQUENCE,
            resolved=True,
            actions=(
                f"Defer task {conflict.task_id} until task "
                f"{conflict.conflicting_task_id} completes",
            ),
        )

    @staticmethod
    def _branch(conflict: Conflict) -> ConflictResolution:
        return ConflictResolution(
            conflict=conflict,
            strategy=ResolutionStrategy.BRANCH,
            resolved=True,
            actions=(
                f"Run task {conflict.task_id} on a branch copy of nodes "
                f"{', '.join(conflict.nodes)}",
            ),
        )

    @staticmethod
    def _warn(conflict: Conflict) -> ConflictResolution:
        needs_review = conflict.severity == ConflictSeverity.ERROR
        actions = ["Proceed with warnings; changes may be lost"]
        if needs_review:
            actions = [f"Hold task {conflict.task_id} for human review"]
        return ConflictResolution(
            conflict=conflict,
            strategy=ResolutionStrategy.WARN,
            resolved=not needs_review,
            actions=tuple(actions),
            warnings=(conflict.description or f"Delete conflict on {', '.join(conflict.nodes)}",),
        )
