# l10n_hub/cli/state.py
"""定义 CLI 应用的共享状态对象。"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from l10n_hub.config import L10nHubConfig
    from l10n_hub.context import L10nContext


class State:
    """一个简单的类，用于通过 Typer 上下文传递共享状态。"""

    def __init__(self, config: L10nHubConfig, ctx: L10nContext) -> None:
        self.config = config
        self.ctx = ctx
