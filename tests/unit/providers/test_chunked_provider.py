# tests/unit/providers/test_chunked_provider.py
"""针对分块远程提供者（同步与异步模式）的单元测试。"""

from typing import Any

import pytest
import pytest_asyncio
from conftest import make_tu, ph

from l10n_hub.config import SchedulerConfig
from l10n_hub.context import L10nContext, ProviderContext
from l10n_hub.core.exceptions import ConfigurationError, ProviderError
from l10n_hub.core.types import Job, JobStatus, TranslationUnit
from l10n_hub.dispatcher import Dispatcher
from l10n_hub.job_store import JsonJobStore
from l10n_hub.providers.chunked import (
    ChunkedRemoteConfig,
    ChunkedRemoteTranslationProvider,
    split_into_chunks,
)


class FakeChunkedProvider(ChunkedRemoteTranslationProvider[ChunkedRemoteConfig]):
    """把每个 XML 原文加上目标语言前缀作为译文的远端服务替身。"""

    CONFIG_MODEL = ChunkedRemoteConfig

    def __init__(self, config: ChunkedRemoteConfig):
        super().__init__(config)
        self.chunk_args: list[dict[str, Any]] = []
        self.submitted: list[dict[str, Any]] = []
        self.short_chunks: set[int] = set()
        self.failures = 0
        self.ready = True

    def _echo(self, args: dict[str, Any]) -> list[dict[str, Any]]:
        return [{"tgt": f"[{args['targetLang']}] {src}"} for src in args["src"]]

    async def translate_chunk(self, args: dict[str, Any]) -> Any:
        self.chunk_args.append(args)
        if self.failures:
            self.failures -= 1
            raise ProviderError("远端暂时不可用")
        translations = self._echo(args)
        return translations[:-1] if args["chunk"] in self.short_chunks else translations

    async def submit_chunk(self, args: dict[str, Any]) -> Any:
        self.submitted.append(args)
        return {"jobGuid": args["jobGuid"], "chunk": args["chunk"]}

    async def fetch_chunk(self, args: dict[str, Any]) -> Any:
        if not self.ready:
            raise ProviderError("译文尚未就绪")
        submitted = next(
            sub
            for sub in self.submitted
            if sub["jobGuid"] == args["jobGuid"] and sub["chunk"] == args["chunk"]
        )
        return self._echo(submitted)

    def convert_translation_response(self, chunk: Any) -> list[dict[str, Any]]:
        return chunk


@pytest.fixture
def tus() -> list[TranslationUnit]:
    return [
        make_tu("res", "greet", ["Hello ", ph("{name}")]),
        make_tu("res", "bye", ["Bye"]),
        make_tu("res", "thanks", ["Thanks"]),
    ]


@pytest_asyncio.fixture
async def failing_context(p_context: ProviderContext) -> ProviderContext:
    config = p_context.ctx.config.model_copy(
        update={"scheduler": SchedulerConfig(save_failed_jobs=True)}
    )
    return ProviderContext(
        ctx=L10nContext.from_config(config),
        tm_manager=p_context.tm_manager,
        op_registry=p_context.op_registry,
        task_store=p_context.task_store,
    )


async def _started(
    p_context: ProviderContext, tus: list[TranslationUnit], **config: Any
) -> tuple[FakeChunkedProvider, Job]:
    provider = FakeChunkedProvider.from_dict(
        {"id": "fake", "quality": 60, "max_chunk_size": 2, "language_map": {"de": "DE"}, **config}
    )
    await provider.init(p_context)
    return provider, await provider.create(Job(source_lang="en", target_lang="de", tus=tus))


def test_split_into_chunks() -> None:
    assert split_into_chunks(["aa", "bb", "cc"], 2, 100) == [["aa", "bb"], ["cc"]]
    assert split_into_chunks(["aaaa", "bbbb", "cc"], 10, 9) == [["aaaa", "bbbb"], ["cc"]]
    with pytest.raises(ProviderError):
        split_into_chunks(["x" * 10], 5, 10)


def test_quality_is_required() -> None:
    with pytest.raises(ConfigurationError):
        FakeChunkedProvider.from_dict({"id": "fake"})


@pytest.mark.asyncio
async def test_sync_chunks_are_translated_and_merged(
    p_context: ProviderContext, tus: list[TranslationUnit]
) -> None:
    provider, created = await _started(p_context, tus)

    response = await provider.start(created.model_copy(update={"job_guid": "job1"}))

    assert [len(args["src"]) for args in provider.chunk_args] == [2, 1]
    assert provider.chunk_args[0]["targetLang"] == "DE"
    assert provider.chunk_args[0]["src"][0] == "Hello <x1 />"
    assert response.status is JobStatus.DONE
    assert response.task_name is not None
    assert [tu.guid for tu in response.tus] == [tu.guid for tu in tus]
    assert response.tus[0].ntgt == ["[DE] Hello ", ph("{name}", v1="a_x_name")]
    assert response.tus[2].ntgt == ["[DE] Thanks"]
    assert {tu.q for tu in response.tus} == {60}


@pytest.mark.asyncio
async def test_chunk_with_wrong_cardinality_is_rejected(
    p_context: ProviderContext, tus: list[TranslationUnit]
) -> None:
    """测试译文数量与分块大小不符时整块被拒绝，其余分块照常合并。"""
    provider, created = await _started(p_context, tus)
    provider.short_chunks = {0}

    response = await provider.start(created.model_copy(update={"job_guid": "job1"}))

    assert [tu.guid for tu in response.tus] == [tus[2].guid]
    assert response.status is JobStatus.DONE


@pytest.mark.asyncio
async def test_failed_task_resumes_from_task_store(
    failing_context: ProviderContext, tus: list[TranslationUnit]
) -> None:
    provider, created = await _started(failing_context, tus)
    provider.failures = 1

    pending = await provider.start(created.model_copy(update={"job_guid": "job1"}))

    assert pending.status is JobStatus.PENDING
    assert pending.inflight == [tu.guid for tu in tus]
    assert pending.task_name in failing_context.task_store.task_names()

    done = await provider.continue_job(pending)

    assert done.status is JobStatus.DONE
    assert done.inflight is None
    assert len(done.tus) == 3


@pytest.mark.asyncio
async def test_async_mode_submits_then_fetches(
    p_context: ProviderContext, tus: list[TranslationUnit]
) -> None:
    provider, created = await _started(p_context, tus, asynchronous=True)

    pending = await provider.start(created.model_copy(update={"job_guid": "job1"}))

    assert pending.status is JobStatus.PENDING
    assert pending.tus == []
    assert pending.inflight == [tu.guid for tu in tus]
    assert pending.envelope["chunkSizes"] == [2, 1]
    assert [sub["chunk"] for sub in provider.submitted] == [0, 1]

    provider.ready = False
    unchanged = await provider.continue_job(pending)
    assert unchanged is pending

    provider.ready = True
    done = await provider.continue_job(pending)
    assert done.status is JobStatus.DONE
    assert [tu.ntgt for tu in done.tus][1:] == [["[DE] Bye"], ["[DE] Thanks"]]


@pytest.mark.asyncio
async def test_async_split_job_fetches_with_original_guid(
    p_context: ProviderContext, tus: list[TranslationUnit]
) -> None:
    """测试拆分出的作业使用原始 jobGuid 取回译文，且只保留仍在途的 TU。"""
    provider, created = await _started(p_context, tus, asynchronous=True)
    pending = await provider.start(created.model_copy(update={"job_guid": "job1"}))
    remainder = pending.model_copy(
        update={"job_guid": "job2", "original_job_guid": "job1", "inflight": [tus[1].guid]}
    )

    done = await provider.continue_job(remainder)

    assert [tu.guid for tu in done.tus] == [tus[1].guid]
    assert done.status is JobStatus.DONE


@pytest.mark.asyncio
async def test_async_job_without_chunk_info_is_left_alone(
    p_context: ProviderContext, tus: list[TranslationUnit]
) -> None:
    provider, _ = await _started(p_context, tus, asynchronous=True)
    job = Job(
        job_guid="job1",
        source_lang="en",
        target_lang="de",
        status=JobStatus.PENDING,
        inflight=[tus[0].guid],
    )
    assert await provider.continue_job(job) is job


@pytest.mark.asyncio
async def test_split_job_with_finished_task_is_rebuilt(
    failing_context: ProviderContext, tus: list[TranslationUnit], job_store: JsonJobStore
) -> None:
    """测试拆分出的作业沿用的任务已经完成时，按在途 TU 重建任务后继续翻译。"""
    provider = FakeChunkedProvider.from_dict(
        {"id": "fake", "quality": 60, "max_chunk_size": 2, "language_map": {"de": "DE"}}
    )
    dispatcher = Dispatcher(
        [provider],
        failing_context.tm_manager,
        job_store,
        failing_context.ctx,
        failing_context.op_registry,
        failing_context.task_store,
    )
    await dispatcher.init()
    provider.failures = 1
    started = await dispatcher.start_jobs(
        await dispatcher.create_jobs(Job(source_lang="en", target_lang="de", tus=tus))
    )
    assert [(s.job_guid, s.status, s.num_inflight) for s in started] == [
        ("xxx1xxx", JobStatus.PENDING, 3)
    ]

    provider.short_chunks = {0}
    split = await dispatcher.continue_jobs("en", "de")
    assert [(s.job_guid, s.status, s.num_tus, s.num_inflight) for s in split] == [
        ("xxx1xxx", JobStatus.DONE, 1, 0),
        ("xxx2xxx", JobStatus.PENDING, 0, 2),
    ]
    remainder = await job_store.get_job("xxx2xxx")
    assert remainder is not None and remainder.task_name is not None
    finished_task = remainder.task_name

    provider.short_chunks = set()
    continued = await dispatcher.continue_jobs("en", "de")

    assert [(s.job_guid, s.status, s.num_tus) for s in continued] == [
        ("xxx2xxx", JobStatus.DONE, 2)
    ]
    done = await job_store.get_job("xxx2xxx")
    assert done is not None
    assert [tu.guid for tu in done.tus] == [tus[0].guid, tus[1].guid]
    assert done.tus[1].ntgt == ["[DE] Bye"]
    assert done.task_name != finished_task
    assert await dispatcher.continue_jobs("en", "de") == []
