# l10n_hub/logging_config.py
"""
本模块负责集中配置项目的日志系统。

console 格式通过 Rich 渲染：调试与普通信息输出为紧凑的单行，警告及以上级别输出为
带键值表格的面板，方便在大量作业日志中找到被丢弃的 TU 与失败的操作。
json 格式面向生产环境，每条日志一行 JSON。
"""

import logging
from collections.abc import MutableMapping
from typing import Any, Literal

import structlog
from rich.console import Console, Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from structlog.typing import Processor

APP_LOGGER_NAME = "l10n_hub"


class RichHubRenderer:
    """把 structlog 事件渲染为 Rich 文本的处理器。"""

    _LEVEL_STYLES = {
        "debug": ("blue", "DEBUG"),
        "info": ("green", "INFO"),
        "warning": ("yellow", "WARNING"),
        "error": ("bold red", "ERROR"),
        "critical": ("bold magenta", "CRITICAL"),
    }
    _PANEL_LEVELS = {"warning", "error", "critical"}

    def __init__(self, show_timestamp: bool = True, kv_truncate_at: int = 120):
        self._console = Console()
        self._show_timestamp = show_timestamp
        self._kv_truncate_at = kv_truncate_at

    def __call__(
        self, logger: Any, name: str, event_dict: MutableMapping[str, Any]
    ) -> str:
        event = str(event_dict.pop("event", "")).strip()
        if not event:
            return ""
        timestamp = event_dict.pop("timestamp", "") if self._show_timestamp else ""
        event_dict.pop("timestamp", None)
        level = event_dict.pop("level", "info").lower()
        logger_name = event_dict.pop("logger", APP_LOGGER_NAME)
        style, level_text = self._LEVEL_STYLES.get(level, ("default", level.upper()))

        if level in self._PANEL_LEVELS:
            renderable: RenderableType = self._panel(
                timestamp, level_text, style, logger_name, event, event_dict
            )
        else:
            renderable = self._line(timestamp, level_text, style, logger_name, event, event_dict)

        with self._console.capture() as capture:
            self._console.print(renderable)
        return capture.get().rstrip()

    def _format_value(self, value: Any) -> str:
        text = value if isinstance(value, str) else repr(value)
        if len(text) > self._kv_truncate_at:
            return text[: self._kv_truncate_at] + "…"
        return text

    def _line(
        self,
        timestamp: str,
        level_text: str,
        style: str,
        logger_name: str,
        event: str,
        kv: MutableMapping[str, Any],
    ) -> Text:
        line = Text()
        if timestamp:
            line.append(f"{timestamp} ", style="dim")
        line.append(f"{level_text:<8}", style=style)
        line.append(event)
        for key, value in sorted(kv.items()):
            line.append(f" {key}=", style="dim")
            line.append(self._format_value(value))
        line.append(f" ({logger_name})", style="cyan dim")
        return line

    def _panel(
        self,
        timestamp: str,
        level_text: str,
        style: str,
        logger_name: str,
        event: str,
        kv: MutableMapping[str, Any],
    ) -> Panel:
        renderables: list[RenderableType] = [Text(event)]
        if kv:
            table = Table(show_header=False, show_edge=False, box=None, padding=(0, 1))
            table.add_column(style="dim", justify="right")
            table.add_column(overflow="fold")
            for key, value in sorted(kv.items()):
                table.add_row(f"{key} :", Text(self._format_value(value)))
            renderables.append(table)
        return Panel(
            Group(*renderables),
            title=Text.from_markup(f"[{style}]{level_text}[/] [cyan dim]({logger_name})[/]"),
            title_align="left",
            subtitle=Text(str(timestamp), style="dim") if timestamp else None,
            subtitle_align="right",
            border_style=style,
            expand=False,
        )


def setup_logging(
    log_level: str = "INFO",
    log_format: Literal["json", "console"] = "console",
    show_timestamp: bool = True,
) -> None:
    """
    配置全局的 structlog 日志系统。这是整个应用的日志配置入口。

    Args:
        log_level: 应用日志的最低级别。
        log_format: 'console' 为 Rich 渲染的开发输出，'json' 为机器可读输出。
        show_timestamp: 是否输出时间戳（回归测试中通常关闭以保证输出稳定）。
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if show_timestamp:
        processors.insert(
            3,
            structlog.processors.TimeStamper(
                fmt="iso" if log_format == "json" else "%Y-%m-%d %H:%M:%S",
                utc=log_format == "json",
            ),
        )

    if log_format == "console":
        processors.append(RichHubRenderer(show_timestamp=show_timestamp))
    else:
        processors.append(structlog.processors.JSONRenderer(ensure_ascii=False))

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))

    root_logger = logging.getLogger()
    if root_logger.hasHandlers():
        root_logger.handlers.clear()
    root_logger.addHandler(handler)
    # 根记录器级别较高，避免 sqlalchemy、httpx 等第三方库的噪音
    root_logger.setLevel(logging.WARNING)

    app_logger = logging.getLogger(APP_LOGGER_NAME)
    app_logger.setLevel(log_level.upper())
    app_logger.propagate = True

    structlog.get_logger("l10n_hub.logging_config").debug(
        "日志系统已配置完成。", log_format=log_format, app_log_level=log_level.upper()
    )
