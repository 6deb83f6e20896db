# l10n_hub/ops/operation.py
"""操作图中的单个节点。"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from l10n_hub.core.exceptions import MissingDependencyError, SchedulerError
from l10n_hub.core.types import OpState
from l10n_hub.ops.registry import OpSpec

if TYPE_CHECKING:
    from l10n_hub.ops.task import TaskHandle

logger = structlog.get_logger(__name__)

_TERMINAL_OK = OpState.DONE.value
_PENDING = OpState.PENDING.value
_ERROR = OpState.ERROR.value


class OperationBlocked(Exception):
    """
    由操作回调抛出，使操作进入自定义的“阻塞”状态（未就绪，但也未失败）。
    常用于等待人工审核或外部条件。
    """

    def __init__(self, state: str, reason: str | None = None):
        if state in {s.value for s in OpState}:
            raise ValueError(f"'{state}' 是内建状态，不能作为阻塞状态使用")
        super().__init__(reason or state)
        self.state = state
        self.reason = reason


class Operation:
    def __init__(
        self,
        op_id: int,
        spec: OpSpec,
        args: dict[str, Any] | None = None,
        *,
        state: str = _PENDING,
        output: Any = None,
        last_ran_at: str | None = None,
    ):
        self.op_id = op_id
        self.spec = spec
        self.args: dict[str, Any] = args or {}
        self.inputs: list[Operation] = []
        self.state = state
        self.output = output
        self.last_ran_at = last_ran_at

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def idempotent(self) -> bool:
        return self.spec.idempotent

    @property
    def is_blocked(self) -> bool:
        return self.state not in (_PENDING, _TERMINAL_OK, _ERROR)

    def add_input(self, op: Operation) -> None:
        """声明对另一个操作的依赖。已完成的非幂等操作不能再被重新打开。"""
        if op is self:
            raise SchedulerError(f"操作 {self.op_id} 不能依赖自身")
        if op in self.inputs:
            return
        if self.state == _TERMINAL_OK:
            if not self.idempotent:
                raise SchedulerError(
                    f"不能为已完成的非幂等操作 {self.op_id} ({self.name}) 添加依赖"
                )
            self.state = _PENDING
        self.inputs.append(op)

    def is_ready(self) -> bool:
        return self.state == _PENDING and all(op.state == _TERMINAL_OK for op in self.inputs)

    async def execute(self, handle: TaskHandle, ran_at: str) -> None:
        """
        执行操作回调。回调异常使操作进入 error 状态，输出为异常消息；
        回调在执行中新增的依赖若尚未完成，操作会回到 pending，待依赖完成后再次运行。

        Raises:
            MissingDependencyError: 操作在输入依赖尚未完成时被执行。
        """
        if not self.is_ready():
            self.state = _ERROR
            self.output = "部分输入依赖尚未满足"
            raise MissingDependencyError(
                f"操作 {self.op_id} ({self.name}) 的输入依赖尚未满足"
            )

        self.last_ran_at = ran_at
        inputs = [op.output for op in self.inputs]
        try:
            output = await self.spec.callback(self.args, inputs, handle)
        except OperationBlocked as e:
            self.state = e.state
            self.output = e.reason
            logger.info("操作进入阻塞状态", op_id=self.op_id, op_name=self.name, state=e.state)
            return
        except Exception as e:
            self.state = _ERROR
            self.output = str(e) or e.__class__.__name__
            logger.error(
                "操作执行失败", op_id=self.op_id, op_name=self.name, error=self.output, exc_info=True
            )
            return

        self.output = output
        if any(op.state != _TERMINAL_OK for op in self.inputs):
            self.state = _PENDING
        else:
            self.state = _TERMINAL_OK

    def to_dict(self) -> dict[str, Any]:
        return {
            "opName": self.name,
            "opId": self.op_id,
            "args": self.args,
            "inputOpIds": [op.op_id for op in self.inputs],
            "state": self.state,
            "output": self.output,
            "lastRanAt": self.last_ran_at,
        }

    def __repr__(self) -> str:
        return f"Operation(op_id={self.op_id}, name={self.name!r}, state={self.state!r})"
