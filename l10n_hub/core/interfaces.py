# l10n_hub/core/interfaces.py
"""
本模块使用 typing.Protocol 定义了核心组件的接口。
外部协作者（作业存储、任务存储、资源格式插件）只需满足这些协议即可接入。
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from typing import Any, Protocol

from l10n_hub.core.types import Job, TranslationUnit


class TmHandler(Protocol):
    """翻译记忆库持久化后端的协议。"""

    async def connect(self) -> None: ...

    async def close(self) -> None: ...

    async def save_job_block(
        self, job_row: dict[str, Any], entries: list[TranslationUnit]
    ) -> None:
        """在单个事务中写入作业的全部条目及其状态行。"""
        ...

    async def get_best_entry(
        self, source_lang: str, target_lang: str, guid: str
    ) -> TranslationUnit | None: ...

    async def get_entries_by_guids(
        self, source_lang: str, target_lang: str, guids: list[str]
    ) -> dict[str, TranslationUnit]: ...

    async def get_entries_by_flat_src(
        self, source_lang: str, target_lang: str, flat_src: str
    ) -> list[TranslationUnit]: ...

    async def get_entries_by_job(self, job_guid: str) -> list[TranslationUnit]: ...

    async def get_job_row(self, job_guid: str) -> dict[str, Any] | None: ...

    async def get_available_lang_pairs(self) -> list[tuple[str, str]]: ...

    async def get_job_status_by_lang_pair(
        self, source_lang: str, target_lang: str
    ) -> dict[str, tuple[str, str | None]]: ...

    async def get_tm_stats(self) -> list[dict[str, Any]]: ...


class TaskStore(Protocol):
    """操作图任务的持久化边界。"""

    async def save_ops(self, task_name: str, ops: list[dict[str, Any]]) -> None: ...

    def get_task(self, task_name: str) -> AsyncIterator[dict[str, Any]]: ...


class JobStore(Protocol):
    """作业工件存储的协议。每个 (jobGuid, status) 工件只能写入一次。"""

    async def write_job(self, job: Job) -> None: ...

    async def get_job(self, job_guid: str) -> Job | None:
        """返回作业的最新响应工件（done、cancelled 优先于 pending）。"""
        ...

    async def get_job_request(self, job_guid: str) -> Job | None: ...

    async def list_jobs(self, source_lang: str, target_lang: str) -> list[Job]: ...

    async def get_available_lang_pairs(self) -> list[tuple[str, str]]: ...

    async def get_job_status_by_lang_pair(
        self, source_lang: str, target_lang: str
    ) -> dict[str, tuple[str, str | None]]: ...


class ResourceFilter(Protocol):
    """外部资源格式插件的协议。"""

    async def parse_resource(
        self,
        *,
        resource: str,
        is_source: bool = True,
        source_plural_forms: list[str] | None = None,
        target_plural_forms: list[str] | None = None,
    ) -> dict[str, Any]:
        """返回 `{"segments": [{"sid", "str", "mf"?, "notes"?, "pluralForm"?}], "subresources"?}`。"""
        ...

    async def translate_resource(
        self,
        *,
        resource: str,
        translator: Callable[[str, str], Any],
        source_plural_forms: list[str] | None = None,
        target_plural_forms: list[str] | None = None,
    ) -> str | None: ...
