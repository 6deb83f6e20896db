# l10n_hub/context.py
"""
定义贯穿整个处理流程的显式上下文对象。

所有需要时钟、回归标记或工作目录的组件都通过构造函数接收 `L10nContext`，
而不是读取进程级的全局状态。
"""

from __future__ import annotations

import itertools
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from l10n_hub.config import L10nHubConfig
from l10n_hub.utils import current_millis

if TYPE_CHECKING:
    from l10n_hub.core.interfaces import TaskStore
    from l10n_hub.ops.registry import OpRegistry
    from l10n_hub.tm_manager import TMManager

# 回归模式下使用的固定时间点
REGRESSION_MILLIS = 1_700_000_000_000


@dataclass(frozen=True)
class L10nContext:
    """运行时上下文：配置、回归标记与基础目录。"""

    config: L10nHubConfig
    regression: bool = False
    base_dir: Path = field(default_factory=Path.cwd)
    _guid_counter: itertools.count = field(
        default_factory=lambda: itertools.count(1), repr=False, compare=False
    )

    @classmethod
    def from_config(cls, config: L10nHubConfig, base_dir: Path | None = None) -> L10nContext:
        return cls(
            config=config,
            regression=config.regression,
            base_dir=base_dir or Path.cwd(),
        )

    def now_ms(self) -> int:
        return REGRESSION_MILLIS if self.regression else current_millis()

    def now_iso(self) -> str:
        moment = datetime.fromtimestamp(self.now_ms() / 1000, tz=timezone.utc)
        return moment.isoformat().replace("+00:00", "Z")

    def make_job_guid(self) -> str:
        if self.regression:
            return f"xxx{next(self._guid_counter)}xxx"
        return secrets.token_urlsafe(16)

    def resolve(self, path: str | Path) -> Path:
        path = Path(path)
        return path if path.is_absolute() else self.base_dir / path


@dataclass(frozen=True)
class ProviderContext:
    """一个“工具箱”对象，封装了翻译提供者运行时所需的全部协作者。"""

    ctx: L10nContext
    tm_manager: TMManager
    op_registry: OpRegistry
    task_store: TaskStore | None = None
