# l10n_hub/ops/registry.py
"""操作注册表：操作名称 -> (回调, 是否幂等)。"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from l10n_hub.core.exceptions import OpRegistryError

if TYPE_CHECKING:
    from l10n_hub.ops.task import TaskHandle

logger = structlog.get_logger(__name__)

# 回调签名: (args, 输入操作的输出列表, 任务句柄) -> 输出
OpCallback = Callable[[dict[str, Any], list[Any], "TaskHandle"], Awaitable[Any]]


@dataclass(frozen=True)
class OpSpec:
    name: str
    callback: OpCallback
    idempotent: bool = False


class OpRegistry:
    """一个操作名称到回调的映射。以同一名称注册不同的回调是错误。"""

    def __init__(self) -> None:
        self._specs: dict[str, OpSpec] = {}

    def register_op(
        self, name: str, callback: OpCallback, *, idempotent: bool = False
    ) -> OpSpec:
        existing = self._specs.get(name)
        if existing is not None:
            if existing.callback == callback:
                return existing
            raise OpRegistryError(f"操作 '{name}' 已注册了不同的回调")
        spec = OpSpec(name=name, callback=callback, idempotent=idempotent)
        self._specs[name] = spec
        logger.debug("操作已注册", op_name=name, idempotent=idempotent)
        return spec

    def get(self, name: str) -> OpSpec:
        try:
            return self._specs[name]
        except KeyError:
            raise OpRegistryError(f"操作 '{name}' 尚未注册") from None

    def __contains__(self, name: object) -> bool:
        return name in self._specs

    def names(self) -> list[str]:
        return sorted(self._specs)


# 进程级默认注册表
OP_REGISTRY = OpRegistry()
