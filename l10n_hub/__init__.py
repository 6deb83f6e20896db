# l10n_hub/__init__.py
"""l10n-hub: 一个基于翻译记忆库与可恢复操作图的本地化作业引擎。

该模块导出配置、上下文、TM 管理器与作业调度器等主要入口。
"""

__version__ = "0.1.0"

from .config import L10nHubConfig
from .context import L10nContext, ProviderContext
from .dispatcher import Dispatcher
from .job_store import JsonJobStore
from .persistence import create_tm_handler
from .tm_manager import TMManager

__all__ = [
    "__version__",
    "Dispatcher",
    "JsonJobStore",
    "L10nContext",
    "L10nHubConfig",
    "ProviderContext",
    "TMManager",
    "create_tm_handler",
]
