# l10n_hub/ops/__init__.py
"""可恢复的操作图调度器。"""

from .operation import Operation, OperationBlocked
from .registry import OP_REGISTRY, OpCallback, OpRegistry, OpSpec
from .store import MemoryTaskStore
from .task import Task, TaskHandle

__all__ = [
    "OP_REGISTRY",
    "MemoryTaskStore",
    "OpCallback",
    "OpRegistry",
    "OpSpec",
    "Operation",
    "OperationBlocked",
    "Task",
    "TaskHandle",
]
