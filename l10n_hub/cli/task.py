# l10n_hub/cli/task.py
"""查看持久化任务的 CLI 命令，主要用于事后排查失败的操作。"""

import asyncio
import json
from typing import Any

import typer
from rich.console import Console
from rich.table import Table
from rich.text import Text

from l10n_hub.cli.state import State
from l10n_hub.cli.utils import create_tm_manager, truncate
from l10n_hub.context import L10nContext
from l10n_hub.core.types import OpState
from l10n_hub.persistence import SqlTaskStore

console = Console()
task_app = typer.Typer(help="查看持久化的操作图任务")

_STATE_STYLES = {
    OpState.DONE.value: "green",
    OpState.PENDING.value: "dim",
    OpState.ERROR.value: "bold red",
}


async def _load_ops(ctx: L10nContext, task_name: str) -> list[dict[str, Any]]:
    tm_manager = create_tm_manager(ctx)
    try:
        await tm_manager.initialize()
        store = SqlTaskStore(tm_manager.handler.sessionmaker)
        return [op async for op in store.get_task(task_name)]
    finally:
        await tm_manager.close()


async def _list_tasks(ctx: L10nContext) -> list[str]:
    tm_manager = create_tm_manager(ctx)
    try:
        await tm_manager.initialize()
        return await SqlTaskStore(tm_manager.handler.sessionmaker).list_tasks()
    finally:
        await tm_manager.close()


@task_app.command("show")
def show(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="任务名称，例如 Task-1700000000000-openai-abc。"),
    as_json: bool = typer.Option(False, "--json", help="以 JSON 输出完整的操作列表。"),
) -> None:
    """打印一个任务的全部操作及其状态。"""
    state: State = ctx.obj
    ops = asyncio.run(_load_ops(state.ctx, name))
    if not ops:
        console.print(f"[bold red]❌ 未找到任务: {name}[/bold red]")
        raise typer.Exit(code=1)

    if as_json:
        console.print_json(json.dumps(ops, ensure_ascii=False))
        return

    table = Table(title=name, show_header=True, header_style="bold cyan")
    table.add_column("opId", justify="right")
    table.add_column("操作")
    table.add_column("状态")
    table.add_column("输入")
    table.add_column("最近运行")
    table.add_column("输出", overflow="fold")
    for op in ops:
        style = _STATE_STYLES.get(op["state"], "yellow")
        table.add_row(
            str(op["opId"]),
            op["opName"],
            f"[{style}]{op['state']}[/{style}]",
            ",".join(str(op_id) for op_id in op.get("inputOpIds", [])) or "-",
            op.get("lastRanAt") or "-",
            Text(truncate(op.get("output"))),
        )
    console.print(table)


@task_app.command("list")
def list_tasks(ctx: typer.Context) -> None:
    """列出任务存储中的全部任务名称。"""
    state: State = ctx.obj
    names = asyncio.run(_list_tasks(state.ctx))
    if not names:
        console.print("[yellow]任务存储中还没有任何任务。[/yellow]")
        return
    for task_name in names:
        console.print(task_name)
