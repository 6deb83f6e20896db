# l10n_hub/ops/store.py
"""进程内的任务存储实现。持久化的实现见 `l10n_hub.persistence.tasks`。"""

from __future__ import annotations

import copy
from collections.abc import AsyncIterator
from typing import Any


class MemoryTaskStore:
    """把任务保存在内存字典中。每次保存都深拷贝，模拟真实存储的快照语义。"""

    def __init__(self) -> None:
        self._tasks: dict[str, list[dict[str, Any]]] = {}

    async def save_ops(self, task_name: str, ops: list[dict[str, Any]]) -> None:
        self._tasks[task_name] = copy.deepcopy(ops)

    async def get_task(self, task_name: str) -> AsyncIterator[dict[str, Any]]:
        for entry in self._tasks.get(task_name, []):
            yield copy.deepcopy(entry)

    def task_names(self) -> list[str]:
        return sorted(self._tasks)
