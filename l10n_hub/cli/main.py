# l10n_hub/cli/main.py
"""l10n-hub CLI 的主入口点。"""

import asyncio
from collections import Counter
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

import l10n_hub
from l10n_hub.cli.state import State
from l10n_hub.cli.task import task_app
from l10n_hub.cli.tm import tm_app
from l10n_hub.cli.utils import create_job_store
from l10n_hub.config import L10nHubConfig
from l10n_hub.context import L10nContext
from l10n_hub.core.types import JobStatus
from l10n_hub.logging_config import setup_logging
from l10n_hub.provider_registry import discover_providers

app = typer.Typer(
    name="l10n-hub",
    help="🌐 l10n-hub: 基于翻译记忆库与可恢复任务的本地化作业引擎。",
    add_completion=False,
    no_args_is_help=True,
)

app.add_typer(tm_app, name="tm")
app.add_typer(task_app, name="task")

console = Console()

_STATUS_COLUMNS = (JobStatus.DONE, JobStatus.PENDING, JobStatus.CANCELLED)


def version_callback(value: bool) -> None:
    """处理 --version 选项的回调函数。"""
    if value:
        console.print(f"l10n-hub [bold cyan]v{l10n_hub.__version__}[/bold cyan]")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-v",
            help="显示版本信息并退出。",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """主回调函数，在任何子命令执行前加载配置、配置日志并发现提供者。"""
    try:
        config = L10nHubConfig()
        setup_logging(log_level=config.logging.level, log_format=config.logging.format)
        discover_providers()
        ctx.obj = State(config=config, ctx=L10nContext.from_config(config))
    except Exception as e:
        console.print("[bold red]❌ 启动失败：无法加载配置或初始化日志。[/bold red]")
        console.print(f"[dim]{e}[/dim]")
        raise typer.Exit(code=1) from e


async def _collect_status(l10n_ctx: L10nContext) -> dict[tuple[str, str], Counter[str]]:
    job_store = create_job_store(l10n_ctx)
    summary: dict[tuple[str, str], Counter[str]] = {}
    for source_lang, target_lang in await job_store.get_available_lang_pairs():
        statuses = await job_store.get_job_status_by_lang_pair(source_lang, target_lang)
        summary[(source_lang, target_lang)] = Counter(status for status, _ in statuses.values())
    return summary


@app.command("status")
def status(ctx: typer.Context) -> None:
    """按语言对汇总作业存储中各状态的作业数量。"""
    state: State = ctx.obj
    summary = asyncio.run(_collect_status(state.ctx))
    if not summary:
        console.print("[yellow]作业存储中还没有任何作业。[/yellow]")
        return

    table = Table(title="作业状态", show_header=True, header_style="bold cyan")
    table.add_column("语言对", style="cyan")
    for job_status in _STATUS_COLUMNS:
        table.add_column(job_status.value, justify="right")
    for (source_lang, target_lang), counts in sorted(summary.items()):
        table.add_row(
            f"{source_lang} → {target_lang}",
            *(str(counts.get(job_status.value, 0)) for job_status in _STATUS_COLUMNS),
        )
    console.print(table)


if __name__ == "__main__":
    app()
