# tests/unit/providers/test_debug_provider.py
"""针对 Debug 提供者以及提供者基类创建/启动流程的单元测试。"""

import pytest
from conftest import make_tu, ph

from l10n_hub.config import SchedulerConfig
from l10n_hub.context import REGRESSION_MILLIS, L10nContext, ProviderContext
from l10n_hub.core.exceptions import JobStateError, ProviderError
from l10n_hub.core.types import Job, JobStatus, TranslationUnit
from l10n_hub.providers.debug import DebugProvider


def _job(tus: list[TranslationUnit], **kwargs) -> Job:
    return Job(source_lang="en", target_lang="de", tus=tus, **kwargs)


async def _provider(p_context: ProviderContext, **config) -> DebugProvider:
    provider = DebugProvider.from_dict({"id": "debug", **config})
    await provider.init(p_context)
    return provider


@pytest.mark.asyncio
async def test_create_accepts_tus_and_estimates_cost(p_context: ProviderContext) -> None:
    provider = await _provider(p_context, cost_per_word=0.5, default_instructions="保持简洁")
    created = await provider.create(_job([make_tu("res", "a", ["Hello big world"])]))

    assert created.status is JobStatus.CREATED
    assert created.translation_provider == "debug"
    assert created.tus[0].words == 3
    assert created.tus[0].chars == 15
    assert created.estimated_cost == 1.5
    assert created.instructions == "保持简洁"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("config", "working"),
    [
        ({"quality": 40}, {"min_q": 50}),
        ({"supported_pairs": {"en": ["fr"]}}, {}),
        ({"translation_groups": "ui, docs"}, {"group": "marketing"}),
        ({"min_word_quota": 10}, {}),
        ({"max_word_quota": 1}, {}),
    ],
)
async def test_create_rejects_unsuitable_tus(
    p_context: ProviderContext, config: dict, working: dict
) -> None:
    provider = await _provider(p_context, **config)
    created = await provider.create(_job([make_tu("res", "a", ["Hello world"], **working)]))

    assert created.status is JobStatus.CANCELLED
    assert created.tus == []


@pytest.mark.asyncio
async def test_create_refuses_job_with_status(p_context: ProviderContext) -> None:
    provider = await _provider(p_context)
    with pytest.raises(JobStateError):
        await provider.create(_job([], status=JobStatus.CREATED))


@pytest.mark.asyncio
async def test_start_translates_text_and_keeps_placeholders(p_context: ProviderContext) -> None:
    provider = await _provider(p_context, quality=80, translation_map={"Bye": "Tschüss"})
    created = await provider.create(
        _job([make_tu("res", "a", ["Hello ", ph("{name}")]), make_tu("res", "b", ["Bye"])])
    )

    response = await provider.start(created.model_copy(update={"job_guid": "job1"}))

    assert response.status is JobStatus.DONE
    assert response.tus[0].ntgt == ["Translated(Hello ) to de", ph("{name}")]
    assert response.tus[1].ntgt == ["Tschüss"]
    assert {tu.q for tu in response.tus} == {80}
    assert {tu.ts for tu in response.tus} == {REGRESSION_MILLIS}


@pytest.mark.asyncio
async def test_start_requires_created_status(p_context: ProviderContext) -> None:
    provider = await _provider(p_context)
    with pytest.raises(JobStateError):
        await provider.start(_job([], job_guid="job1", status=JobStatus.DONE))


@pytest.mark.asyncio
async def test_start_drops_translations_identical_to_tm(p_context: ProviderContext) -> None:
    """测试与 TM 中现有译文完全相同的结果被去重，作业因此被取消。"""
    provider = await _provider(p_context)
    tu = make_tu("res", "a", ["Hello"])
    created = await provider.create(_job([tu]))
    first = await provider.start(created.model_copy(update={"job_guid": "job1"}))
    await p_context.tm_manager.ingest_job(first, created.model_copy(update={"job_guid": "job1"}))

    second = await provider.start(created.model_copy(update={"job_guid": "job2"}))

    assert second.status is JobStatus.CANCELLED
    assert second.tus == []

    keeper = await _provider(p_context, id="keeper", save_identical_entries=True)
    kept = await keeper.start(created.model_copy(update={"job_guid": "job3"}))
    assert kept.status is JobStatus.DONE
    assert len(kept.tus) == 1


@pytest.mark.asyncio
async def test_failures_propagate_by_default(p_context: ProviderContext) -> None:
    provider = await _provider(p_context, fail_on_text="boom")
    created = await provider.create(_job([make_tu("res", "a", ["boom"])]))

    with pytest.raises(ProviderError) as exc_info:
        await provider.start(created.model_copy(update={"job_guid": "job1"}))
    assert exc_info.value.retryable is True


@pytest.mark.asyncio
async def test_failures_saved_as_pending_when_configured(p_context: ProviderContext) -> None:
    config = p_context.ctx.config.model_copy(
        update={"scheduler": SchedulerConfig(save_failed_jobs=True)}
    )
    failing_context = ProviderContext(
        ctx=L10nContext.from_config(config),
        tm_manager=p_context.tm_manager,
        op_registry=p_context.op_registry,
        task_store=p_context.task_store,
    )
    provider = await _provider(failing_context, mode="FAIL")
    tus = [make_tu("res", "a", ["One"]), make_tu("res", "b", ["Two"])]
    created = await provider.create(_job(tus))

    response = await provider.start(created.model_copy(update={"job_guid": "job1"}))

    assert response.status is JobStatus.PENDING
    assert response.tus == []
    assert response.inflight == [tu.guid for tu in tus]


@pytest.mark.asyncio
async def test_provider_must_be_initialized() -> None:
    provider = DebugProvider.from_dict({})
    assert provider.id == "DebugProvider"
    assert provider.quality == 1
    with pytest.raises(JobStateError):
        provider.now_ts()


def test_info_reports_capabilities() -> None:
    info = DebugProvider.from_dict({"id": "dbg"}).info()
    assert info["family"] == "debug"
    assert info["execution"] == "sync"
    assert info["type"] == "DebugProvider"
