# l10n_hub/cli/utils.py
"""提供 CLI 命令使用的共享工具函数。"""

from l10n_hub.context import L10nContext
from l10n_hub.job_store import JsonJobStore
from l10n_hub.persistence import create_tm_handler
from l10n_hub.tm_manager import TMManager


def create_tm_manager(ctx: L10nContext) -> TMManager:
    """根据配置创建一个未初始化的 TMManager。"""
    return TMManager(create_tm_handler(ctx.config), ctx)


def create_job_store(ctx: L10nContext) -> JsonJobStore:
    return JsonJobStore(ctx.resolve(ctx.config.jobs_dir))


def truncate(value: object, limit: int = 80) -> str:
    text = value if isinstance(value, str) else repr(value)
    return text if len(text) <= limit else text[:limit] + "…"
