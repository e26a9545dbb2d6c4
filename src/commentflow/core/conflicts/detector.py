"""ConflictDetector -- 候选任务与活跃任务集合的两两冲突检测

受影响节点集合 = 目标节点 + 命令参数引用的节点（nodeId / nodeIds / parent）。
删除目标会用节点快照展开为全部后代：删除 frame 与编辑其子节点冲突。

命令按名称分类：
- 读命令（get / read / list / export / find / search 开头）不修改节点
- 删除命令（delete 开头，或移除节点的 remove_node / ungroup_nodes 等）为破坏性操作
- hide / set_visible 等软删除视为修改
- 其余命令为修改；样式类修改另计入样式集合
"""

from collections.abc import Iterable
from dataclasses import dataclass

import structlog

from ..models.command import Command
from ..models.conflict import Conflict
from ..models.enums import ConflictSeverity, ConflictType
from ..models.task import Task
from ..node_context import NodeContextLoader

log = structlog.get_logger()

READ_VERBS = frozenset({"get", "read", "list", "export", "find", "search"})
DELETE_VERBS = frozenset({"delete"})
NODE_OBJECT_WORDS = frozenset({"node", "nodes", "child", "children", "layer", "layers"})
# 移除分组节点本身
DESTRUCTIVE_COMMANDS = frozenset({"ungroup_nodes", "ungroup"})

# apply_style 的 styleType 中承载样式的种类（GRID 为布局）
STYLE_TYPES = frozenset({"FILL", "STROKE", "TEXT", "EFFECT"})
STYLE_WORDS = frozenset(
    {"fill", "fills", "stroke", "strokes", "font", "typography", "effect", "effects"}
)
STYLE_PROPERTY_KEYS = frozenset(
    {
        "fills",
        "fill",
        "fillStyleId",
        "strokes",
        "stroke",
        "strokeWeight",
        "strokeStyleId",
        "fontName",
        "fontSize",
        "fontWeight",
        "fontFamily",
        "lineHeight",
        "letterSpacing",
        "textStyleId",
        "typography",
        "effects",
        "effectStyleId",
    }
)


def _words(name: str) -> list[str]:
    return [w for w in name.lower().replace("-", "_").split("_") if w]


def is_read_command(command: Command) -> bool:
    words = _words(command.command)
    return bool(words) and words[0] in READ_VERBS


def is_delete_command(command: Command) -> bool:
    """delete_* 一律为删除；remove_* 只有移除节点本身时才是删除（remove_fill 等为属性修改）"""
    words = _words(command.command)
    if not words:
        return False
    if words[0] in DELETE_VERBS:
        return True
    if words[0] == "remove":
        return not NODE_OBJECT_WORDS.isdisjoint(words[1:])
    return command.command.lower() in DESTRUCTIVE_COMMANDS


def is_style_command(command: Command) -> bool:
    """命令是否修改 fill / stroke / typography / effects 等样式属性"""
    if is_read_command(command) or is_delete_command(command):
        return False
    if command.command.lower() == "apply_style":
        return str(command.params.get("styleType", "")).upper() in STYLE_TYPES
    if not STYLE_WORDS.isdisjoint(_words(command.command)):
        return True

    properties = command.params.get("properties")
    keys = set(command.params)
    if isinstance(properties, dict):
        keys |= set(properties)
    return not STYLE_PROPERTY_KEYS.isdisjoint(keys)


def _param_node_ids(command: Command) -> list[str]:
    node_ids: list[str] = []
    node_id = command.params.get("nodeId")
    if isinstance(node_id, str) and node_id:
        node_ids.append(node_id)
    many = command.params.get("nodeIds")
    if isinstance(many, list):
        node_ids.extend(n for n in many if isinstance(n, str) and n)
    return node_ids


def command_node_ids(command: Command) -> list[str]:
    """命令参数中显式引用的节点 ID"""
    parent = [command.parent] if command.parent else []
    return parent + _param_node_ids(command)


def _command_targets(task: Task, command: Command) -> list[str]:
    node_ids = command_node_ids(command)
    if not node_ids and task.target_node_id:
        return [task.target_node_id]
    return node_ids


def _delete_targets(task: Task, command: Command) -> list[str]:
    """删除命令实际移除的节点（parent 只是被触达，不计入）"""
    node_ids = _param_node_ids(command)
    if not node_ids and task.target_node_id:
        return [task.target_node_id]
    return node_ids


@dataclass(frozen=True)
class TaskFootprint:
    """单个任务在文档上的节点足迹"""

    affected: frozenset[str]
    deleted: frozenset[str]
    modified: frozenset[str]
    styled: frozenset[str]


def raw_delete_targets(task: Task) -> set[str]:
    return {
        node_id
        for command in task.commands
        if is_delete_command(command)
        for node_id in _delete_targets(task, command)
    }


def build_footprint(task: Task, descendants: dict[str, list[str]] | None = None) -> TaskFootprint:
    """计算任务的节点足迹

    Args:
        task: 任务
        descendants: 节点 -> 全部后代 ID，用于展开删除目标
    """
    descendants = descendants or {}
    affected: set[str] = set()
    deleted: set[str] = set()
    modified: set[str] = set()
    styled: set[str] = set()

    if task.target_node_id:
        affected.add(task.target_node_id)

    for command in task.commands:
        targets = _command_targets(task, command)
        affected.update(targets)
        if is_read_command(command):
            continue
        if is_delete_command(command):
            for node_id in _delete_targets(task, command):
                deleted.add(node_id)
                deleted.update(descendants.get(node_id, ()))
            continue
        modified.update(targets)
        if is_style_command(command):
            styled.update(targets)

    affected |= deleted
    return TaskFootprint(
        affected=frozenset(affected),
        deleted=frozenset(deleted),
        modified=frozenset(modified - deleted),
        styled=frozenset(styled),
    )


class ConflictDetector:
    """两两冲突检测器

    每个 (候选, 对方) 对每种冲突类型至多报告一条，
    以候选为 task_id；对调两者调用 detect 得到对调后的等价记录。
    """

    def __init__(self, node_loader: NodeContextLoader | None = None) -> None:
        self._node_loader = node_loader

    async def detect(self, candidate: Task, active_tasks: Iterable[Task]) -> list[Conflict]:
        """检测候选任务与活跃任务集合之间的冲突

        跳过候选自身、其它文档的任务以及终态任务。
        """
        others = [
            t
            for t in active_tasks
            if t.task_id != candidate.task_id
            and t.document_id == candidate.document_id
            and not t.is_terminal
        ]
        if not others:
            return []

        descendants = await self._load_descendants(candidate, others)
        mine = build_footprint(candidate, descendants)

        conflicts: list[Conflict] = []
        for other in others:
            theirs = build_footprint(other, descendants)
            conflicts.extend(self._compare(candidate, mine, other, theirs))

        if conflicts:
            log.warning(
                "conflicts_detected",
                task_id=candidate.task_id,
                document_id=candidate.document_id,
                conflict_count=len(conflicts),
                conflicting_task_ids=sorted({c.conflicting_task_id for c in conflicts}),
            )
        return conflicts

    async def _load_descendants(self, candidate: Task, others: list[Task]) -> dict[str, list[str]]:
        if self._node_loader is None:
            return {}
        delete_targets: set[str] = set()
        for task in (candidate, *others):
            delete_targets |= raw_delete_targets(task)
        if not delete_targets:
            return {}

        snapshots = await self._node_loader.get_many(candidate.document_id, delete_targets)
        return {node_id: ctx.children for node_id, ctx in snapshots.items()}

    @staticmethod
    def _compare(
        candidate: Task,
        mine: TaskFootprint,
        other: Task,
        theirs: TaskFootprint,
    ) -> list[Conflict]:
        conflicts: list[Conflict] = []

        shared = mine.affected & theirs.affected
        if shared:
            destructive = shared & (mine.deleted | theirs.deleted)
            conflicts.append(
                Conflict(
                    type=ConflictType.NODE_OVERLAP,
                    task_id=candidate.task_id,
                    conflicting_task_id=other.task_id,
                    nodes=tuple(sorted(shared)),
                    severity=ConflictSeverity.ERROR if destructive else ConflictSeverity.WARNING,
                    description=(
                        f"Tasks {candidate.task_id} and {other.task_id} target overlapping "
                        f"nodes: {', '.join(sorted(shared))}"
                    ),
                )
            )

        shared_style = mine.styled & theirs.styled
        if shared_style:
            conflicts.append(
                Conflict(
                    type=ConflictType.STYLE_CONFLICT,
                    task_id=candidate.task_id,
                    conflicting_task_id=other.task_id,
                    nodes=tuple(sorted(shared_style)),
                    severity=ConflictSeverity.ERROR,
                    description=(
                        f"Tasks {candidate.task_id} and {other.task_id} both change styles of "
                        f"nodes: {', '.join(sorted(shared_style))}"
                    ),
                )
            )

        # modified 已排除本任务自身删除的节点
        delete_hits = (mine.deleted & theirs.modified) | (theirs.deleted & mine.modified)
        if delete_hits:
            conflicts.append(
                Conflict(
                    type=ConflictType.DELETE_CONFLICT,
                    task_id=candidate.task_id,
                    conflicting_task_id=other.task_id,
                    nodes=tuple(sorted(delete_hits)),
                    severity=ConflictSeverity.ERROR,
                    description=(
                        f"Nodes {', '.join(sorted(delete_hits))} are deleted by one of tasks "
                        f"{candidate.task_id} / {other.task_id} and modified by the other"
                    ),
                )
            )
        return conflicts
