# l10n_hub/dispatcher.py
"""
作业调度器：把 TU 按顺序分配给提供者流水线，并把作业结果合并回作业存储与 TM。

作业工件一经写入就不可覆盖；状态的每一次变化都是一次新的写入。
"""

from __future__ import annotations

from typing import Any

import structlog

from l10n_hub.context import L10nContext, ProviderContext
from l10n_hub.core.exceptions import L10nHubError, ProviderNotFoundError
from l10n_hub.core.interfaces import JobStore, TaskStore
from l10n_hub.core.types import Job, JobStatus, JobSummary
from l10n_hub.ops.registry import OP_REGISTRY, OpRegistry
from l10n_hub.providers.base import BaseTranslationProvider
from l10n_hub.tm_manager import TMManager
from l10n_hub.tu import as_source, as_target

logger = structlog.get_logger(__name__)


def _summary(job: Job) -> JobSummary:
    assert job.job_guid is not None and job.status is not None
    return JobSummary(
        job_guid=job.job_guid,
        source_lang=job.source_lang,
        target_lang=job.target_lang,
        provider=job.translation_provider or "",
        status=job.status,
        num_tus=len(job.tus),
        num_inflight=len(job.inflight or []),
    )


class Dispatcher:
    def __init__(
        self,
        providers: list[BaseTranslationProvider[Any]],
        tm_manager: TMManager,
        job_store: JobStore,
        ctx: L10nContext,
        op_registry: OpRegistry | None = None,
        task_store: TaskStore | None = None,
    ):
        self._pipeline = list(providers)
        self._providers = {provider.id: provider for provider in providers}
        self._tm_manager = tm_manager
        self._job_store = job_store
        self._ctx = ctx
        self._op_registry = op_registry or OP_REGISTRY
        self._task_store = task_store

    @property
    def providers(self) -> list[BaseTranslationProvider[Any]]:
        return list(self._pipeline)

    async def init(self) -> None:
        p_context = ProviderContext(
            ctx=self._ctx,
            tm_manager=self._tm_manager,
            op_registry=self._op_registry,
            task_store=self._task_store,
        )
        for provider in self._pipeline:
            await provider.init(p_context)
        logger.info("调度器已初始化", providers=[provider.id for provider in self._pipeline])

    async def close(self) -> None:
        for provider in self._pipeline:
            await provider.close()

    def get_provider(self, provider_id: str | None) -> BaseTranslationProvider[Any]:
        provider = self._providers.get(provider_id or "")
        if provider is None:
            raise ProviderNotFoundError(f"提供者 '{provider_id}' 不在流水线中")
        return provider

    async def create_jobs(self, job_request: Job) -> list[Job]:
        """
        依次让流水线中的提供者挑选 TU：被接受的 TU 组成分配给该提供者的作业，
        剩余的 TU 继续流向下一个提供者。最后仍未被接受的 TU 组成一个未分配的作业返回。
        """
        jobs: list[Job] = []
        remaining = list(job_request.tus)
        for provider in self._pipeline:
            if not remaining:
                break
            created = await provider.create(
                job_request.model_copy(update={"tus": remaining, "status": None})
            )
            if not created.tus:
                continue
            jobs.append(created.model_copy(update={"translation_provider": provider.id}))
            accepted = {tu.guid for tu in created.tus}
            remaining = [tu for tu in remaining if tu.guid not in accepted]

        if remaining:
            logger.warning(
                "部分 TU 没有被任何提供者接受",
                lang_pair=job_request.lang_pair,
                unassigned=len(remaining),
            )
            jobs.append(
                job_request.model_copy(
                    update={"tus": remaining, "status": None, "translation_provider": None}
                )
            )
        return jobs

    async def start_jobs(self, jobs: list[Job]) -> list[JobSummary]:
        """为每个已分配的作业生成 jobGuid、启动作业并合并结果。未分配的作业被跳过。"""
        summaries: list[JobSummary] = []
        for job in jobs:
            if not job.translation_provider:
                logger.warning("跳过未分配提供者的作业", tus=len(job.tus))
                continue
            provider = self.get_provider(job.translation_provider)
            request = job.model_copy(update={"job_guid": self._tm_manager.generate_job_guid()})
            response = await provider.start(request)
            final = await self.process_job(response, request)
            if final is not None:
                summaries.append(_summary(final))
        return summaries

    async def continue_jobs(self, source_lang: str, target_lang: str) -> list[JobSummary]:
        """
        继续该语言对下所有 pending 的作业。

        全部解决的作业写入 done 工件；只解决了一部分的作业把已完成部分写为 done，
        其余在途的 TU 拆分到一个新的 pending 作业中，并通过 `originalJobGuid` 记录来源。
        单个作业继续失败时记录错误并跳过，不影响其他作业。
        """
        summaries: list[JobSummary] = []
        statuses = await self._job_store.get_job_status_by_lang_pair(source_lang, target_lang)
        for job_guid, (status, _) in sorted(statuses.items()):
            if status != JobStatus.PENDING.value:
                continue
            pending = await self._job_store.get_job(job_guid)
            request = await self._job_store.get_job_request(job_guid)
            if pending is None:
                continue
            log = logger.bind(job_guid=job_guid, provider=pending.translation_provider)
            try:
                provider = self.get_provider(pending.translation_provider)
                response = await provider.continue_job(pending)
            except L10nHubError as e:
                log.error("继续作业失败，已跳过该作业", error=str(e), exc_info=True)
                continue

            if response.status is JobStatus.PENDING and not response.tus:
                log.info("作业仍在进行中", inflight=len(response.inflight or []))
                continue

            if response.status is JobStatus.PENDING:
                summaries.extend(await self._split_job(response, request))
                log.info(
                    "作业部分完成，剩余 TU 已拆分为新作业",
                    done=len(response.tus),
                    inflight=len(response.inflight or []),
                )
                continue

            final = await self.process_job(response, request, persist_request=False)
            if final is not None and final.status is JobStatus.CANCELLED:
                await self._job_store.write_job(
                    final.model_copy(update={"tus": [], "updated_at": self._ctx.now_iso()})
                )
            if final is not None:
                summaries.append(_summary(final))
        return summaries

    async def _split_job(self, response: Job, request: Job | None) -> list[JobSummary]:
        assert response.job_guid is not None
        done_response = response.model_copy(
            update={"status": JobStatus.DONE, "inflight": None}
        )
        done = await self.process_job(done_response, request, persist_request=False)

        new_guid = self._tm_manager.generate_job_guid()
        original_job_guid = response.original_job_guid or response.job_guid
        inflight = set(response.inflight or [])
        new_request = None
        if request is not None:
            new_request = request.model_copy(
                update={
                    "job_guid": new_guid,
                    "original_job_guid": original_job_guid,
                    "tus": [tu for tu in request.tus if tu.guid in inflight],
                }
            )
        new_response = response.model_copy(
            update={
                "job_guid": new_guid,
                "original_job_guid": original_job_guid,
                "tus": [],
                "status": JobStatus.PENDING,
            }
        )
        pending = await self.process_job(new_response, new_request)
        return [_summary(job) for job in (done, pending) if job is not None]

    async def process_job(
        self,
        job_response: Job | None,
        job_request: Job | None,
        *,
        persist_request: bool = True,
    ) -> Job | None:
        """
        合并一对作业请求/响应：写入作业工件并更新 TM。

        - 请求与响应都存在，但响应既没有完成的 TU 也没有在途的 TU：标记为 cancelled，不写入。
        - 只有请求且状态为 created：标记为 cancelled，不写入。
        - 否则把请求的 TU 裁剪为响应中完成或在途的部分，写入两个工件后更新 TM。

        Returns:
            最终的作业（响应优先）；没有任何输入时返回 None。
        """
        if job_request is None and job_response is None:
            return None
        if job_request is not None and job_response is not None:
            if not job_response.tus and not job_response.inflight:
                return job_response.model_copy(update={"status": JobStatus.CANCELLED})
        if job_request is not None and job_response is None:
            if job_request.status in (None, JobStatus.CREATED):
                return job_request.model_copy(update={"status": JobStatus.CANCELLED})

        updated_at = self._ctx.now_iso()
        request = None
        if job_request is not None:
            tus = job_request.tus
            if job_response is not None:
                accepted = set(job_response.inflight or []) | {tu.guid for tu in job_response.tus}
                tus = [tu for tu in tus if tu.guid in accepted]
            request = job_request.model_copy(
                update={"updated_at": updated_at, "tus": [as_source(tu) for tu in tus]}
            )
        response = None
        if job_response is not None:
            response = job_response.model_copy(
                update={"updated_at": updated_at, "tus": [as_target(tu) for tu in job_response.tus]}
            )

        if request is not None and persist_request:
            await self._job_store.write_job(request)
        if response is not None:
            await self._job_store.write_job(response)
        await self._tm_manager.ingest_job(response, request)
        return response or request
