# tests/conftest.py
"""项目全局共享的测试 Fixtures。"""

from collections.abc import AsyncGenerator, Generator
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from pytest_mock import MockerFixture
from rich.console import Console

from l10n_hub.config import L10nHubConfig
from l10n_hub.context import L10nContext, ProviderContext
from l10n_hub.core.types import NormalizedString, Placeholder, PlaceholderType, TranslationUnit
from l10n_hub.job_store import JsonJobStore
from l10n_hub.ops.registry import OpRegistry
from l10n_hub.ops.store import MemoryTaskStore
from l10n_hub.persistence import create_tm_handler
from l10n_hub.tm_manager import TMManager
from l10n_hub.tu import from_segment


@pytest.fixture(scope="session", autouse=True)
def disable_rich_colors_for_tests(
    session_mocker: MockerFixture,
) -> Generator[None, None, None]:
    """全局禁用 rich 库的颜色输出，以确保测试结果的确定性。"""
    original_init = Console.__init__

    def new_init(self: Console, *args: Any, **kwargs: Any) -> None:
        kwargs["force_terminal"] = False
        kwargs["color_system"] = None
        original_init(self, *args, **kwargs)

    session_mocker.patch("rich.console.Console.__init__", new=new_init)
    yield


def ph(value: str, kind: PlaceholderType = PlaceholderType.STANDALONE, **kwargs: Any) -> Placeholder:
    """构造占位符的简写。"""
    return Placeholder(t=kind, v=value, **kwargs)


def make_tu(rid: str, sid: str, nsrc: NormalizedString, **working: Any) -> TranslationUnit:
    """构造一个源 TU，并按需附加 `min_q`、`group` 等工作字段。"""
    tu = from_segment(rid, {"sid": sid, "nstr": nsrc})
    return tu.model_copy(update=working) if working else tu


@pytest.fixture
def test_config(tmp_path: Path) -> L10nHubConfig:
    """一个指向临时目录、开启回归模式的配置。"""
    return L10nHubConfig(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'tm.db'}",
        jobs_dir=str(tmp_path / "jobs"),
        regression=True,
    )


@pytest.fixture
def l10n_ctx(test_config: L10nHubConfig, tmp_path: Path) -> L10nContext:
    return L10nContext.from_config(test_config, base_dir=tmp_path)


@pytest_asyncio.fixture
async def tm_manager(l10n_ctx: L10nContext) -> AsyncGenerator[TMManager, None]:
    """提供一个连接到临时 SQLite 数据库的 TMManager。"""
    manager = TMManager(create_tm_handler(l10n_ctx.config), l10n_ctx)
    await manager.initialize()
    yield manager
    await manager.close()


@pytest.fixture
def op_registry() -> OpRegistry:
    """每个测试使用独立的操作注册表，避免不同提供者实例之间的回调冲突。"""
    return OpRegistry()


@pytest.fixture
def task_store() -> MemoryTaskStore:
    return MemoryTaskStore()


@pytest.fixture
def job_store(tmp_path: Path) -> JsonJobStore:
    return JsonJobStore(tmp_path / "jobs")


@pytest.fixture
def p_context(
    l10n_ctx: L10nContext,
    tm_manager: TMManager,
    op_registry: OpRegistry,
    task_store: MemoryTaskStore,
) -> ProviderContext:
    return ProviderContext(
        ctx=l10n_ctx, tm_manager=tm_manager, op_registry=op_registry, task_store=task_store
    )
