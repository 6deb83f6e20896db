# l10n_hub/providers/base.py
"""
本模块定义了所有翻译提供者插件必须继承的抽象基类（ABC）。

提供者按“家族” (`FAMILY`) 与“执行方式” (`EXECUTION`) 声明自己的能力，
基类据此选择执行路径，而不是在运行时探测子类是否覆盖了某个方法：

- `sync`: 子类实现 `translate_tus`，直接返回译文。
- `task`: 子类实现 `create_task`，由可恢复的操作图驱动执行。
- `leverage`: 译文在 `create` 阶段就已确定（TM 复用、遗留译文），`start` 只负责整理。
"""

from __future__ import annotations

from abc import ABC
from enum import Enum
from typing import Any, ClassVar, Generic, TypeVar

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator

from l10n_hub._nstr.compat import normalized_strings_equal
from l10n_hub.context import ProviderContext
from l10n_hub.core.exceptions import (
    ConfigurationError,
    JobStateError,
    ProviderError,
    TaskExecutionError,
)
from l10n_hub.core.types import Job, JobStatus, OpState, TranslationUnit
from l10n_hub.ops.registry import OpRegistry
from l10n_hub.ops.task import Task
from l10n_hub.tu import as_source, char_count, word_count

logger = structlog.get_logger(__name__)

_ConfigType = TypeVar("_ConfigType", bound="ProviderConfig")


class ProviderFamily(str, Enum):
    DEBUG = "debug"
    CHUNKED_REMOTE = "chunked_remote"
    LLM = "llm"
    GRANDFATHER = "grandfather"
    REPETITION = "repetition"


class ExecutionMode(str, Enum):
    SYNC = "sync"
    TASK = "task"
    LEVERAGE = "leverage"


# 每种作业状态下允许执行的动作
STATUS_ACTIONS: dict[JobStatus, tuple[str, ...]] = {
    JobStatus.CREATED: ("start",),
    JobStatus.PENDING: ("continue",),
    JobStatus.DONE: (),
    JobStatus.CANCELLED: (),
    JobStatus.BLOCKED: (),
}

STATUS_DESCRIPTIONS: dict[JobStatus, str] = {
    JobStatus.CREATED: "作业已创建，等待启动",
    JobStatus.PENDING: "作业等待完成",
    JobStatus.DONE: "作业已完成",
    JobStatus.CANCELLED: "作业已取消",
    JobStatus.BLOCKED: "作业被阻塞",
}


class ProviderConfig(BaseModel):
    """所有提供者配置模型的基类。"""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    quality: int | None = Field(default=None, ge=0, description="提供者产出译文的质量")
    supported_pairs: dict[str, list[str]] | None = Field(
        default=None, description="支持的语言对，例如 {'en': ['de', 'fr']}"
    )
    translation_groups: list[str] | None = None
    default_instructions: str | None = None
    min_word_quota: int | None = Field(default=None, ge=0)
    max_word_quota: int | None = Field(default=None, ge=0)
    cost_per_word: float = 0.0
    cost_per_mchar: float = 0.0
    save_identical_entries: bool = False
    parallelism: int | None = Field(default=None, gt=0)

    @field_validator("translation_groups", mode="before")
    @classmethod
    def _split_groups(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = [group.strip() for group in v.split(",") if group.strip()]
        if v is not None and not v:
            raise ValueError("translation_groups 不能为空")
        return v


class BaseTranslationProvider(ABC, Generic[_ConfigType]):
    """翻译提供者的纯异步抽象基类。"""

    CONFIG_MODEL: type[_ConfigType]
    FAMILY: ClassVar[ProviderFamily]
    EXECUTION: ClassVar[ExecutionMode]
    REQUIRES_QUALITY: ClassVar[bool] = False

    def __init__(self, config: _ConfigType):
        if self.REQUIRES_QUALITY and config.quality is None:
            raise ConfigurationError(f"提供者 '{self.__class__.__name__}' 必须配置 quality")
        self.config = config
        self._p_context: ProviderContext | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], **collaborators: Any) -> BaseTranslationProvider[Any]:
        return cls(cls.CONFIG_MODEL.model_validate(data), **collaborators)

    @property
    def id(self) -> str:
        return self.config.id or self.__class__.__name__

    @property
    def quality(self) -> int | None:
        return self.config.quality

    @property
    def p_context(self) -> ProviderContext:
        if self._p_context is None:
            raise JobStateError(f"提供者 '{self.id}' 尚未初始化")
        return self._p_context

    async def init(self, p_context: ProviderContext) -> None:
        """注入运行时协作者，并注册提供者自己的操作。"""
        self._p_context = p_context
        self.register_ops(p_context.op_registry)

    async def close(self) -> None:
        pass

    def register_ops(self, registry: OpRegistry) -> None:
        """[子类实现] 注册 `task` 执行方式所需的操作回调。"""

    def status_actions(self, status: JobStatus | None) -> tuple[str, ...]:
        return STATUS_ACTIONS.get(status, ()) if status is not None else ()

    def _check_action(self, job: Job, action: str) -> None:
        if action not in self.status_actions(job.status):
            status = job.status.value if job.status else None
            raise JobStateError(f"不能对处于 '{status}' 状态的作业执行 {action}")

    def now_ts(self) -> int:
        return self.p_context.ctx.now_ms()

    def info(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.__class__.__name__,
            "family": self.FAMILY.value,
            "execution": self.EXECUTION.value,
            "quality": self.quality,
            "supported_pairs": self.config.supported_pairs,
            "cost_per_word": self.config.cost_per_word,
            "cost_per_mchar": self.config.cost_per_mchar,
        }

    # --- 创建 ---

    def supports_pair(self, source_lang: str, target_lang: str) -> bool:
        pairs = self.config.supported_pairs
        return pairs is None or target_lang in pairs.get(source_lang, [])

    async def get_accepted_tus(self, job: Job) -> list[TranslationUnit]:
        """[子类实现] 从已通过基础过滤的 TU 中挑选本提供者接受的部分。"""
        return list(job.tus)

    def estimate_cost(self, tus: list[TranslationUnit]) -> float:
        return sum(
            (tu.words or 0) * self.config.cost_per_word
            + (tu.chars or 0) / 1_000_000 * self.config.cost_per_mchar
            for tu in tus
        )

    async def create(
        self,
        job: Job,
        *,
        skip_quality_check: bool = False,
        skip_group_check: bool = False,
    ) -> Job:
        """
        根据语言对、质量下限、翻译分组与字数配额，从作业请求中挑选本提供者接受的 TU。

        Returns:
            接受了任意 TU 时状态为 created 的作业，否则为 cancelled。
        """
        if job.status is not None:
            raise JobStateError(f"作业已处于 '{job.status.value}' 状态，不能再次创建")
        log = logger.bind(provider=self.id, lang_pair=job.lang_pair)

        tus = [
            tu.model_copy(
                update={
                    "words": tu.words if tu.words is not None else word_count(tu.nsrc or []),
                    "chars": tu.chars if tu.chars is not None else char_count(tu.nsrc or []),
                }
            )
            for tu in job.tus
        ]
        accepted: list[TranslationUnit] = []
        if self.supports_pair(job.source_lang, job.target_lang):
            if skip_quality_check or self.quality is None:
                accepted = tus
            else:
                accepted = [tu for tu in tus if (tu.min_q or 0) <= self.quality]
                if len(accepted) != len(tus):
                    log.debug("部分 TU 的质量要求高于提供者质量", rejected=len(tus) - len(accepted))
        else:
            log.debug("提供者不支持该语言对")

        groups = self.config.translation_groups
        if not skip_group_check and groups and accepted:
            before = len(accepted)
            accepted = [tu for tu in accepted if tu.group in groups]
            if len(accepted) != before:
                log.debug("部分 TU 的翻译分组不匹配", rejected=before - len(accepted))

        if accepted:
            accepted = await self.get_accepted_tus(job.model_copy(update={"tus": accepted}))

        total_words = sum(tu.words or 0 for tu in accepted)
        if accepted and self.config.min_word_quota is not None and total_words < self.config.min_word_quota:
            log.debug("作业字数低于最小配额", words=total_words, quota=self.config.min_word_quota)
            accepted = []
        if accepted and self.config.max_word_quota is not None and total_words > self.config.max_word_quota:
            log.debug("作业字数超过最大配额", words=total_words, quota=self.config.max_word_quota)
            accepted = []

        status = JobStatus.CREATED if accepted else JobStatus.CANCELLED
        estimated_cost = self.estimate_cost(accepted)
        if accepted:
            log.info("提供者接受了作业", tus=len(accepted), words=total_words, cost=estimated_cost)
        return job.model_copy(
            update={
                "status": status,
                "tus": accepted,
                "translation_provider": self.id,
                "estimated_cost": estimated_cost,
                "instructions": job.instructions or self.config.default_instructions,
                "status_description": job.status_description or STATUS_DESCRIPTIONS[status],
            }
        )

    # --- 启动 ---

    async def translate_tus(self, job: Job) -> list[TranslationUnit]:
        """[子类实现] `sync` 执行方式：直接返回带译文的 TU。"""
        raise NotImplementedError(f"{self.__class__.__name__} 未实现 translate_tus")

    def create_task(self, job: Job) -> Task:
        """[子类实现] `task` 执行方式：返回一个执行后产出译文的任务。"""
        raise NotImplementedError(f"{self.__class__.__name__} 未实现 create_task")

    def build_task_response(self, job: Job, output: Any) -> Job:
        """把任务根操作的输出转换为作业响应。默认输出为目标 TU 字典的列表。"""
        return job.model_copy(
            update={"tus": [TranslationUnit.model_validate(tu) for tu in output or []]}
        )

    def new_task(self, root_op_name: str, args: dict[str, Any]) -> Task:
        p_context = self.p_context
        return Task.create(
            self.id,
            root_op_name,
            args,
            registry=p_context.op_registry,
            store=p_context.task_store,
            now_ms=p_context.ctx.now_ms(),
            clock=p_context.ctx.now_iso,
        )

    async def execute_task(self, task: Task) -> Any:
        parallelism = self.config.parallelism or self.p_context.ctx.config.scheduler.parallelism
        return await task.execute(parallelism=parallelism)

    def _split_leveraged(self, job: Job) -> Job:
        done = [tu for tu in job.tus if tu.ntgt is not None and not tu.inflight]
        inflight = [tu.guid for tu in job.tus if tu.ntgt is None or tu.inflight]
        return job.model_copy(update={"tus": done, "inflight": inflight or None})

    async def start(self, job: Job) -> Job:
        """
        启动一个 created 状态的作业，并返回作业响应。

        与 TM 中最新译文完全相同的结果会被去重（除非配置了 `save_identical_entries`）；
        没有任何译文或在途 TU 的响应被标记为 cancelled。
        """
        self._check_action(job, "start")
        log = logger.bind(provider=self.id, job_guid=job.job_guid)
        response = job.model_copy(
            update={"status": JobStatus.DONE, "status_description": STATUS_DESCRIPTIONS[JobStatus.DONE]}
        )
        try:
            if self.EXECUTION is ExecutionMode.SYNC:
                response.tus = await self.translate_tus(job)
            elif self.EXECUTION is ExecutionMode.TASK:
                task = self.create_task(job)
                log.info("通过任务执行翻译", task_name=task.task_name)
                response.task_name = task.task_name
                response = self.build_task_response(response, await self.execute_task(task))
            else:
                response = self._split_leveraged(response)
        except (ProviderError, TaskExecutionError) as e:
            if not self.p_context.ctx.config.scheduler.save_failed_jobs:
                raise
            log.warning("作业启动失败，已保存为 pending 以便稍后继续", error=str(e))
            response = response.model_copy(
                update={
                    "tus": [],
                    "inflight": [tu.guid for tu in job.tus],
                    "status": JobStatus.PENDING,
                    "status_description": STATUS_DESCRIPTIONS[JobStatus.PENDING],
                }
            )

        if response.inflight and response.status is JobStatus.DONE:
            response.status = JobStatus.PENDING
            response.status_description = STATUS_DESCRIPTIONS[JobStatus.PENDING]
        if not self.config.save_identical_entries and response.tus:
            response.tus = await self._dedupe_against_tm(response)
        if not response.tus and not response.inflight:
            response.status = JobStatus.CANCELLED
            response.status_description = STATUS_DESCRIPTIONS[JobStatus.CANCELLED]
        return response

    async def _dedupe_against_tm(self, response: Job) -> list[TranslationUnit]:
        tm = self.p_context.tm_manager.get_tm(response.source_lang, response.target_lang)
        existing = await tm.get_entries_by_guids([tu.guid for tu in response.tus])
        kept = []
        for tu in response.tus:
            entry = existing.get(tu.guid)
            if entry is None or entry.inflight or not normalized_strings_equal(entry.ntgt, tu.ntgt):
                kept.append(tu)
        if len(kept) != len(response.tus):
            logger.debug(
                "已去除与 TM 相同的译文", provider=self.id, removed=len(response.tus) - len(kept)
            )
        return kept

    # --- 继续 ---

    async def continue_job(self, job: Job) -> Job:
        """继续一个 pending 状态的作业。无法继续时原样返回作业。"""
        self._check_action(job, "continue")
        return await self.resume_job(job)

    async def resume_job(self, job: Job) -> Job:
        """
        默认实现：从任务存储中恢复作业的任务并继续执行。

        任务已经完成但作业仍有在途 TU 时（例如作业被拆分，或某个分块被整块拒绝），
        用这些 TU 在 TM 中的在途条目重建一个新任务。
        """
        if not job.task_name or self.p_context.task_store is None:
            return job
        task = await Task.hydrate(
            self.p_context.task_store,
            job.task_name,
            registry=self.p_context.op_registry,
            clock=self.p_context.ctx.now_iso,
        )
        if task.root.state == OpState.DONE.value:
            rebuilt = await self._rebuild_task(job)
            if rebuilt is None:
                return job
            task = rebuilt
        try:
            output = await self.execute_task(task)
        except TaskExecutionError as e:
            logger.warning("暂时无法继续作业", job_guid=job.job_guid, error=str(e))
            return job
        pending_guids = set(job.inflight or [])
        response = self.build_task_response(job, output)
        tus = [tu for tu in response.tus if tu.guid in pending_guids]
        resolved = {tu.guid for tu in tus}
        inflight = [guid for guid in job.inflight or [] if guid not in resolved]
        status = JobStatus.PENDING if inflight else JobStatus.DONE
        return response.model_copy(
            update={
                "tus": tus,
                "inflight": inflight or None,
                "task_name": task.task_name,
                "status": status,
                "status_description": STATUS_DESCRIPTIONS[status],
            }
        )

    async def _rebuild_task(self, job: Job) -> Task | None:
        tm = self.p_context.tm_manager.get_tm(job.source_lang, job.target_lang)
        entries = await tm.get_entries_by_guids(list(job.inflight or []))
        sources = [
            as_source(entries[guid])
            for guid in job.inflight or []
            if guid in entries and entries[guid].nsrc is not None
        ]
        log = logger.bind(provider=self.id, job_guid=job.job_guid, task_name=job.task_name)
        if not sources:
            log.warning("任务已完成，且 TM 中没有在途 TU 的原文，无法继续作业")
            return None
        task = self.create_task(job.model_copy(update={"tus": sources}))
        log.info("任务已完成但作业仍有在途 TU，已为其重建任务", tus=len(sources), new_task=task.task_name)
        return task
