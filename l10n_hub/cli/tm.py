# l10n_hub/cli/tm.py
"""查询与维护翻译记忆库的 CLI 命令。"""

import asyncio
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from l10n_hub.cli.state import State
from l10n_hub.cli.utils import create_job_store, create_tm_manager
from l10n_hub.context import L10nContext

console = Console()
tm_app = typer.Typer(help="翻译记忆库 (TM) 的统计与预热")


async def _tm_stats(ctx: L10nContext) -> None:
    tm_manager = create_tm_manager(ctx)
    try:
        await tm_manager.initialize()
        stats = await tm_manager.handler.get_tm_stats()
    finally:
        await tm_manager.close()

    if not stats:
        console.print("[yellow]TM 中还没有任何条目。[/yellow]")
        return

    table = Table(title="TM 统计", show_header=True, header_style="bold cyan")
    table.add_column("源语言", style="cyan")
    table.add_column("目标语言", style="cyan")
    table.add_column("提供者")
    table.add_column("条目数", style="magenta", justify="right")
    table.add_column("在途", style="yellow", justify="right")
    for row in stats:
        table.add_row(
            row["source_lang"],
            row["target_lang"],
            row["provider"] or "-",
            str(row["entries"]),
            str(row["inflight"]),
        )
    console.print(table)


@tm_app.command("stats")
def stats(ctx: typer.Context) -> None:
    """按语言对与提供者统计 TM 条目数。"""
    state: State = ctx.obj
    asyncio.run(_tm_stats(state.ctx))


async def _tm_warmup(ctx: L10nContext, workers: Optional[int]) -> int:
    tm_manager = create_tm_manager(ctx)
    try:
        await tm_manager.initialize()
        return await tm_manager.warm_up(create_job_store(ctx), max_workers=workers)
    finally:
        await tm_manager.close()


@tm_app.command("warmup")
def warmup(
    ctx: typer.Context,
    workers: Annotated[
        Optional[int], typer.Option("--workers", "-w", min=1, help="并发读取作业的数量。")
    ] = None,
) -> None:
    """把作业存储中尚未写入 TM 的 done/pending 作业导入 TM。"""
    state: State = ctx.obj
    imported = asyncio.run(_tm_warmup(state.ctx, workers))
    console.print(f"[green]✅ 已导入 {imported} 个作业。[/green]")
