"""commentflow Core Conflicts -- 冲突检测与解决"""

from .detector import (
    ConflictDetector,
    TaskFootprint,
    build_footprint,
    command_node_ids,
    is_delete_command,
    is_read_command,
    is_style_command,
)
from .resolver import ConflictResolver

__all__ = [
    "ConflictDetector",
    "ConflictResolver",
    "TaskFootprint",
    "build_footprint",
    "command_node_ids",
    "is_delete_command",
    "is_read_command",
    "is_style_command",
]
