# l10n_hub/ops/task.py
"""
可恢复的操作图 (DAG) 任务。

任务是只追加的操作列表，操作 0 为根。执行器反复计算“就绪集合”（所有输入都已完成的
pending 操作），按调用方给定的并发度分批执行，每批结束后持久化整个任务；
当就绪集合为空，或某批中有操作失败/阻塞时停止。操作列表是任务状态的唯一真相来源。
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from typing import Any

import structlog

from l10n_hub.core.exceptions import SchedulerError, TaskExecutionError
from l10n_hub.core.interfaces import TaskStore
from l10n_hub.core.types import OpState
from l10n_hub.ops.operation import Operation
from l10n_hub.ops.registry import OP_REGISTRY, OpRegistry
from l10n_hub.utils import batched, current_millis, random_letters

logger = structlog.get_logger(__name__)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class TaskHandle:
    """
    传给操作回调的受限句柄。

    回调只能向所属任务追加操作或为自身添加依赖，无法直接修改其他操作的状态。
    """

    def __init__(self, task: Task, op: Operation):
        self._task = task
        self._op = op

    @property
    def op_id(self) -> int:
        return self._op.op_id

    @property
    def task_name(self) -> str:
        return self._task.task_name

    def enqueue(
        self, op_name: str, args: dict[str, Any] | None = None, *, inputs: Iterable[int] = ()
    ) -> int:
        """向任务追加一个新操作，返回其 opId。"""
        return self._task.enqueue(op_name, args, inputs=inputs).op_id

    def add_dependency(self, op_id: int) -> None:
        """让当前操作依赖另一个操作；依赖完成后当前操作会再次运行。"""
        self._op.add_input(self._task.get_op(op_id))


class Task:
    def __init__(
        self,
        task_name: str,
        *,
        registry: OpRegistry | None = None,
        store: TaskStore | None = None,
        clock: Callable[[], str] = _utc_now_iso,
    ):
        self.task_name = task_name
        self.ops: list[Operation] = []
        self._registry = registry or OP_REGISTRY
        self._store = store
        self._clock = clock

    @classmethod
    def create(
        cls,
        group: str,
        root_op_name: str,
        args: dict[str, Any] | None = None,
        *,
        registry: OpRegistry | None = None,
        store: TaskStore | None = None,
        now_ms: int | None = None,
        clock: Callable[[], str] = _utc_now_iso,
    ) -> Task:
        """创建一个以 `root_op_name` 为根操作（opId 0）的新任务。"""
        millis = now_ms if now_ms is not None else current_millis()
        task = cls(
            f"Task-{millis}-{group}-{random_letters()}",
            registry=registry,
            store=store,
            clock=clock,
        )
        task.enqueue(root_op_name, args)
        return task

    @property
    def root(self) -> Operation:
        if not self.ops:
            raise SchedulerError(f"任务 '{self.task_name}' 没有任何操作")
        return self.ops[0]

    def get_op(self, op_id: int) -> Operation:
        if not 0 <= op_id < len(self.ops):
            raise SchedulerError(f"任务 '{self.task_name}' 中不存在操作 {op_id}")
        return self.ops[op_id]

    def enqueue(
        self, op_name: str, args: dict[str, Any] | None = None, *, inputs: Iterable[int] = ()
    ) -> Operation:
        op = Operation(len(self.ops), self._registry.get(op_name), args)
        for input_id in inputs:
            op.add_input(self.get_op(input_id))
        self.ops.append(op)
        return op

    def add_dependency(self, op_id: int, input_op_id: int) -> None:
        self.get_op(op_id).add_input(self.get_op(input_op_id))

    def ready_ops(self) -> list[Operation]:
        return [op for op in self.ops if op.is_ready()]

    # --- 持久化 ---

    def serialize(self) -> list[dict[str, Any]]:
        return [op.to_dict() for op in self.ops]

    async def save(self) -> None:
        if self._store is not None:
            await self._store.save_ops(self.task_name, self.serialize())

    @classmethod
    def deserialize(
        cls,
        task_name: str,
        serialized_ops: list[dict[str, Any]],
        *,
        registry: OpRegistry | None = None,
        store: TaskStore | None = None,
        refresh_idempotent: bool = False,
        clock: Callable[[], str] = _utc_now_iso,
    ) -> Task:
        """
        从持久化的操作列表重建任务。

        error 与自定义阻塞状态的操作被重置为 pending 以便重试或重新检查条件；
        done 操作保持原样，除非 `refresh_idempotent` 为 True 且该操作是幂等的。
        """
        task = cls(task_name, registry=registry, store=store, clock=clock)
        ordered = sorted(serialized_ops, key=lambda entry: entry["opId"])
        for position, entry in enumerate(ordered):
            if entry["opId"] != position:
                raise SchedulerError(f"任务 '{task_name}' 的操作编号不连续: {entry['opId']}")
            spec = task._registry.get(entry["opName"])
            state = entry.get("state") or OpState.PENDING.value
            if state != OpState.DONE.value:
                state = OpState.PENDING.value
            elif refresh_idempotent and spec.idempotent:
                state = OpState.PENDING.value
            task.ops.append(
                Operation(
                    entry["opId"],
                    spec,
                    entry.get("args"),
                    state=state,
                    output=entry.get("output"),
                    last_ran_at=entry.get("lastRanAt"),
                )
            )
        for entry, op in zip(ordered, task.ops):
            op.inputs = [task.get_op(input_id) for input_id in entry.get("inputOpIds", [])]
        return task

    @classmethod
    async def hydrate(
        cls,
        store: TaskStore,
        task_name: str,
        *,
        registry: OpRegistry | None = None,
        refresh_idempotent: bool = False,
        clock: Callable[[], str] = _utc_now_iso,
    ) -> Task:
        serialized = [entry async for entry in store.get_task(task_name)]
        if not serialized:
            raise SchedulerError(f"任务存储中不存在任务 '{task_name}'")
        return cls.deserialize(
            task_name,
            serialized,
            registry=registry,
            store=store,
            refresh_idempotent=refresh_idempotent,
            clock=clock,
        )

    # --- 执行 ---

    async def execute(self, parallelism: int = 1) -> Any:
        """
        执行任务直到根操作完成或无法继续。

        Returns:
            根操作的输出。

        Raises:
            TaskExecutionError: 根操作未能完成（某个操作失败、阻塞，或任务停滞）。
        """
        log = logger.bind(task_name=self.task_name)
        halted = False
        while not halted:
            ready = self.ready_ops()
            if not ready:
                break
            for batch in batched(ready, parallelism):
                ran_at = self._clock()
                results = await asyncio.gather(
                    *(op.execute(TaskHandle(self, op), ran_at) for op in batch),
                    return_exceptions=True,
                )
                for op, result in zip(batch, results):
                    if isinstance(result, Exception):
                        op.state = OpState.ERROR.value
                        op.output = str(result)
                    elif isinstance(result, BaseException):
                        raise result
                await self.save()
                log.debug(
                    "操作批次执行完成",
                    op_ids=[op.op_id for op in batch],
                    states=[op.state for op in batch],
                )
                if any(op.state == OpState.ERROR.value or op.is_blocked for op in batch):
                    halted = True
                    break

        root = self.root
        if root.state == OpState.DONE.value:
            return root.output

        culprit = next(
            (op for op in self.ops if op.state not in (OpState.PENDING.value, OpState.DONE.value)),
            None,
        )
        if culprit is None:
            raise TaskExecutionError(
                f"任务 '{self.task_name}' 停滞：没有可执行的操作，根操作仍未完成",
                task_name=self.task_name,
                op_id=None,
                state=None,
            )
        raise TaskExecutionError(
            f"任务 '{self.task_name}' 中的操作 {culprit.op_id} ({culprit.name}) "
            f"处于 '{culprit.state}' 状态: {culprit.output}",
            task_name=self.task_name,
            op_id=culprit.op_id,
            state=culprit.state,
        )
