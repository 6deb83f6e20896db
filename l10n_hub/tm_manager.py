# l10n_hub/tm_manager.py
"""
TM 管理器：按语言对提供 TM 视图，并负责把作业事务性地写入 TM。
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable

import structlog

from l10n_hub._nstr.compat import are_compatible
from l10n_hub.context import L10nContext
from l10n_hub.core.exceptions import L10nHubError
from l10n_hub.core.interfaces import JobStore, TmHandler
from l10n_hub.core.types import Job, JobStatus, TranslationUnit
from l10n_hub.tm import TM
from l10n_hub.tu import from_request_response

logger = structlog.get_logger(__name__)

_IMPORTABLE_STATUSES = {JobStatus.DONE.value, JobStatus.PENDING.value}


class TMManager:
    def __init__(self, handler: TmHandler, ctx: L10nContext):
        self._handler = handler
        self._ctx = ctx
        self._tms: dict[tuple[str, str], TM] = {}

    @property
    def handler(self) -> TmHandler:
        return self._handler

    async def initialize(self) -> None:
        await self._handler.connect()

    async def close(self) -> None:
        await self._handler.close()

    def get_tm(self, source_lang: str, target_lang: str) -> TM:
        key = (source_lang, target_lang)
        tm = self._tms.get(key)
        if tm is None:
            tm = TM(
                source_lang,
                target_lang,
                self._handler,
                cache_size=self._ctx.config.tm.exact_match_cache_size,
            )
            self._tms[key] = tm
        return tm

    def generate_job_guid(self) -> str:
        return self._ctx.make_job_guid()

    async def ingest_job(self, job_response: Job | None, job_request: Job | None) -> int:
        """
        在单个事务中把作业写入 TM：完成的 TU、质量为 0 的在途占位条目，以及作业状态行。

        与原文不兼容的译文被丢弃并记录警告；缺少必填字段的 TU 立即抛出
        `TUValidationError`，整个作业都不会被写入。

        Returns:
            写入的条目数。
        """
        job = job_response or job_request
        if job is None or not job.job_guid:
            raise ValueError("写入 TM 的作业必须带有 jobGuid")
        log = logger.bind(job_guid=job.job_guid, provider=job.translation_provider)

        request_tus = {tu.guid: tu for tu in job_request.tus} if job_request else {}
        entries: list[TranslationUnit] = []
        if job_response is not None:
            for response_tu in job_response.tus:
                request_tu = request_tus.get(response_tu.guid)
                if request_tu is None and response_tu.nsrc is None:
                    log.warning("响应中的 TU 在请求中不存在，已跳过", guid=response_tu.guid)
                    continue
                entry = from_request_response(
                    request_tu or {},
                    response_tu,
                    job_guid=job.job_guid,
                    translation_provider=job_response.translation_provider,
                )
                if not entry.inflight and not are_compatible(entry.nsrc, entry.ntgt):
                    log.warning(
                        "译文占位符与原文不兼容，已丢弃",
                        guid=entry.guid,
                        rid=entry.rid,
                        sid=entry.sid,
                    )
                    continue
                entries.append(entry)

            for guid in job_response.inflight or []:
                request_tu = request_tus.get(guid)
                if request_tu is None:
                    log.warning("在途 TU 在请求中不存在，已跳过", guid=guid)
                    continue
                entries.append(
                    from_request_response(
                        request_tu,
                        {"guid": guid, "q": 0, "ts": 0, "inflight": True},
                        job_guid=job.job_guid,
                        translation_provider=job_response.translation_provider,
                    )
                )

        job_row = {
            "job_guid": job.job_guid,
            "source_lang": job.source_lang,
            "target_lang": job.target_lang,
            "status": (job.status or JobStatus.CREATED).value,
            "translation_provider": job.translation_provider,
            "updated_at": job.updated_at,
            "original_job_guid": job.original_job_guid,
        }
        await self._handler.save_job_block(job_row, entries)
        self.get_tm(job.source_lang, job.target_lang).invalidate()
        log.info("作业已写入 TM", status=job_row["status"], entries=len(entries))
        return len(entries)

    async def get_job(self, job_guid: str) -> Job | None:
        """返回 TM 中记录的作业，包含其已完成的 TU 与在途 guid 列表。"""
        row = await self._handler.get_job_row(job_guid)
        if row is None:
            return None
        entries = await self._handler.get_entries_by_job(job_guid)
        return Job(
            job_guid=row["job_guid"],
            source_lang=row["source_lang"],
            target_lang=row["target_lang"],
            status=JobStatus(row["status"]),
            translation_provider=row["translation_provider"],
            updated_at=row["updated_at"],
            original_job_guid=row["original_job_guid"],
            tus=[entry for entry in entries if not entry.inflight],
            inflight=[entry.guid for entry in entries if entry.inflight] or None,
        )

    async def get_available_lang_pairs(self) -> list[tuple[str, str]]:
        return await self._handler.get_available_lang_pairs()

    async def get_job_status_by_lang_pair(
        self, source_lang: str, target_lang: str
    ) -> dict[str, tuple[str, str | None]]:
        return await self._handler.get_job_status_by_lang_pair(source_lang, target_lang)

    async def warm_up(
        self,
        job_store: JobStore,
        lang_pairs: Iterable[tuple[str, str]] | None = None,
        max_workers: int | None = None,
    ) -> int:
        """
        把作业存储中尚未反映到 TM 的 done/pending 作业导入 TM。

        作业的读取通过有界的并发池进行；写入按读取完成的顺序依次进行，
        不同作业的条目互不相关，因此顺序无关紧要。导入失败的作业记录错误后跳过，不影响其他作业。

        Returns:
            导入的作业数。
        """
        workers = max_workers or self._ctx.config.tm.warmup_workers
        pairs = list(lang_pairs) if lang_pairs is not None else await job_store.get_available_lang_pairs()

        to_import: list[str] = []
        for source_lang, target_lang in pairs:
            store_status = await job_store.get_job_status_by_lang_pair(source_lang, target_lang)
            tm_status = await self._handler.get_job_status_by_lang_pair(source_lang, target_lang)
            to_import.extend(
                job_guid
                for job_guid, status in store_status.items()
                if status[0] in _IMPORTABLE_STATUSES and tm_status.get(job_guid) != status
            )
        if not to_import:
            return 0

        semaphore = asyncio.Semaphore(workers)

        async def _fetch(job_guid: str) -> tuple[Job | None, Job | None]:
            async with semaphore:
                return await job_store.get_job(job_guid), await job_store.get_job_request(job_guid)

        imported = 0
        failed: list[str | None] = []
        for fetched in asyncio.as_completed([_fetch(job_guid) for job_guid in to_import]):
            job_response, job_request = await fetched
            if job_response is None:
                continue
            try:
                await self.ingest_job(job_response, job_request)
            except L10nHubError as e:
                failed.append(job_response.job_guid)
                logger.error("作业导入 TM 失败，已跳过", job_guid=job_response.job_guid, error=str(e))
                continue
            imported += 1
        logger.info(
            "TM 预热完成", lang_pairs=len(pairs), jobs=imported, failed=failed, workers=workers
        )
        return imported
