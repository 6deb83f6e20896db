# l10n_hub/persistence/__init__.py
"""本模块作为持久化层的公共入口，导出核心组件。"""

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from l10n_hub.config import L10nHubConfig
from l10n_hub.core.exceptions import ConfigurationError

from .sqlite import SQLiteTmHandler
from .tasks import SqlTaskStore


def create_tm_handler(config: L10nHubConfig) -> SQLiteTmHandler:
    """
    根据配置创建 TM 持久化处理器。
    这是实例化持久化层的唯一入口。
    """
    db_url = config.database_url
    if not db_url.startswith("sqlite+aiosqlite"):
        raise ConfigurationError(f"不支持的数据库类型或驱动: '{db_url}'")

    db_path = config.db_path
    if db_path == ":memory:":
        # 内存数据库必须共享同一个连接，否则每个会话都会看到一个空库
        engine = create_async_engine(
            db_url, poolclass=StaticPool, connect_args={"check_same_thread": False}
        )
    else:
        engine = create_async_engine(db_url)
    sessionmaker = async_sessionmaker(engine, expire_on_commit=False)
    return SQLiteTmHandler(engine, sessionmaker, db_path)


__all__ = ["SQLiteTmHandler", "SqlTaskStore", "create_tm_handler"]
