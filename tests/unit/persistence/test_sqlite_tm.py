# tests/unit/persistence/test_sqlite_tm.py
"""针对 SQLite TM 后端与 TMManager 写入流程的集成测试。"""

from typing import Any

import pytest
from conftest import make_tu, ph

from l10n_hub.core.exceptions import TUValidationError
from l10n_hub.core.types import Job, JobStatus, TranslationUnit
from l10n_hub.job_store import JsonJobStore
from l10n_hub.persistence import SqlTaskStore
from l10n_hub.tm_manager import TMManager

SRC, TGT = "en", "de"


def _request(job_guid: str, tus: list[TranslationUnit], provider: str = "debug") -> Job:
    return Job(
        job_guid=job_guid,
        source_lang=SRC,
        target_lang=TGT,
        status=JobStatus.CREATED,
        translation_provider=provider,
        tus=tus,
    )


def _response(
    job_guid: str,
    translations: dict[str, Any],
    *,
    q: int = 50,
    ts: int = 1,
    inflight: list[str] | None = None,
    provider: str = "debug",
) -> Job:
    return Job(
        job_guid=job_guid,
        source_lang=SRC,
        target_lang=TGT,
        status=JobStatus.PENDING if inflight else JobStatus.DONE,
        translation_provider=provider,
        inflight=inflight,
        tus=[
            TranslationUnit(guid=guid, ntgt=ntgt, q=q, ts=ts)
            for guid, ntgt in translations.items()
        ],
    )


@pytest.mark.asyncio
async def test_ingest_and_lookup_best_entry(tm_manager: TMManager) -> None:
    """测试同一 guid 的多个条目中，质量最高者胜出。"""
    tu = make_tu("res", "greet", ["Hello"])
    await tm_manager.ingest_job(_response("job1", {tu.guid: ["Hallo"]}, q=50), _request("job1", [tu]))
    await tm_manager.ingest_job(
        _response("job2", {tu.guid: ["Guten Tag"]}, q=80, provider="human"),
        _request("job2", [tu], provider="human"),
    )

    entry = await tm_manager.get_tm(SRC, TGT).get_entry_by_guid(tu.guid)

    assert entry is not None
    assert entry.ntgt == ["Guten Tag"]
    assert entry.q == 80
    assert entry.rid == "res"
    assert entry.job_guid == "job2"
    assert entry.translation_provider == "human"


@pytest.mark.asyncio
async def test_exact_matches_span_sids_and_cache_is_invalidated(tm_manager: TMManager) -> None:
    tm = tm_manager.get_tm(SRC, TGT)
    first = make_tu("res", "a", ["Hello ", ph("{name}")])
    other = make_tu("res", "b", ["Hello ", ph("{name}")])
    assert await tm.get_exact_matches(other.nsrc) == []

    await tm_manager.ingest_job(
        _response("job1", {first.guid: ["Hallo ", ph("{name}")]}), _request("job1", [first])
    )
    matches = await tm.get_exact_matches(other.nsrc)

    assert [match.guid for match in matches] == [first.guid]
    assert matches[0].sid == "a"


@pytest.mark.asyncio
async def test_incompatible_translations_are_dropped(tm_manager: TMManager) -> None:
    tu = make_tu("res", "greet", ["Hello ", ph("{name}")])
    count = await tm_manager.ingest_job(
        _response("job1", {tu.guid: ["Hallo"]}), _request("job1", [tu])
    )

    assert count == 0
    assert await tm_manager.get_tm(SRC, TGT).get_entry_by_guid(tu.guid) is None
    job = await tm_manager.get_job("job1")
    assert job is not None and job.status is JobStatus.DONE


@pytest.mark.asyncio
async def test_inflight_rows_are_placeholders(tm_manager: TMManager) -> None:
    """测试在途 TU 以质量 0 的条目写入，且不参与精确匹配。"""
    done, waiting = make_tu("res", "a", ["One"]), make_tu("res", "b", ["Two"])
    await tm_manager.ingest_job(
        _response("job1", {done.guid: ["Eins"]}, inflight=[waiting.guid]),
        _request("job1", [done, waiting]),
    )

    tm = tm_manager.get_tm(SRC, TGT)
    entry = await tm.get_entry_by_guid(waiting.guid)
    assert entry is not None
    assert entry.inflight is True
    assert entry.q == 0
    assert await tm.get_exact_matches(["Two"]) == []

    job = await tm_manager.get_job("job1")
    assert job is not None
    assert job.status is JobStatus.PENDING
    assert [tu.guid for tu in job.tus] == [done.guid]
    assert job.inflight == [waiting.guid]


@pytest.mark.asyncio
async def test_reingest_replaces_job_block(tm_manager: TMManager) -> None:
    first, second = make_tu("res", "a", ["One"]), make_tu("res", "b", ["Two"])
    request = _request("job1", [first, second])
    await tm_manager.ingest_job(
        _response("job1", {first.guid: ["Eins"]}, inflight=[second.guid]), request
    )
    await tm_manager.ingest_job(_response("job1", {first.guid: ["Eins"]}), request)

    entries = await tm_manager.get_tm(SRC, TGT).get_entries_by_job_guid("job1")
    assert [entry.guid for entry in entries] == [first.guid]


@pytest.mark.asyncio
async def test_invalid_tu_aborts_whole_job(tm_manager: TMManager) -> None:
    tu = make_tu("res", "greet", ["Hello"])
    response = _response("job1", {}).model_copy(
        update={"tus": [TranslationUnit(guid=tu.guid, ntgt=["Hallo"], q=50)]}
    )

    with pytest.raises(TUValidationError):
        await tm_manager.ingest_job(response, _request("job1", [tu]))
    assert await tm_manager.get_job("job1") is None


@pytest.mark.asyncio
async def test_stats_and_lang_pairs(tm_manager: TMManager) -> None:
    done, waiting = make_tu("res", "a", ["One"]), make_tu("res", "b", ["Two"])
    await tm_manager.ingest_job(
        _response("job1", {done.guid: ["Eins"]}, inflight=[waiting.guid]),
        _request("job1", [done, waiting]),
    )

    assert await tm_manager.get_available_lang_pairs() == [(SRC, TGT)]
    assert await tm_manager.get_tm(SRC, TGT).get_stats() == [
        {"source_lang": SRC, "target_lang": TGT, "provider": "debug", "entries": 2, "inflight": 1}
    ]
    status = await tm_manager.get_job_status_by_lang_pair(SRC, TGT)
    assert status["job1"][0] == JobStatus.PENDING.value


@pytest.mark.asyncio
async def test_sql_task_store_roundtrip(tm_manager: TMManager) -> None:
    store = SqlTaskStore(tm_manager.handler.sessionmaker)
    ops = [
        {"opName": "root", "opId": 0, "args": {"x": 1}, "inputOpIds": [1], "state": "pending"},
        {"opName": "leaf", "opId": 1, "args": {}, "inputOpIds": [], "state": "done", "output": 2},
    ]
    await store.save_ops("Task-1-grp-abc", ops)
    await store.save_ops("Task-1-grp-abc", ops[:1])

    assert [op async for op in store.get_task("Task-1-grp-abc")] == ops[:1]
    assert await store.list_tasks() == ["Task-1-grp-abc"]
    assert [op async for op in store.get_task("missing")] == []


@pytest.mark.asyncio
async def test_warm_up_imports_missing_jobs_once(
    tm_manager: TMManager, job_store: JsonJobStore
) -> None:
    tu = make_tu("res", "greet", ["Hello"])
    request = _request("job1", [tu])
    response = _response("job1", {tu.guid: ["Hallo"]})
    await job_store.write_job(request)
    await job_store.write_job(response)

    assert await tm_manager.warm_up(job_store) == 1
    assert await tm_manager.warm_up(job_store) == 0
    entry = await tm_manager.get_tm(SRC, TGT).get_entry_by_guid(tu.guid)
    assert entry is not None and entry.ntgt == ["Hallo"]


@pytest.mark.asyncio
async def test_warm_up_skips_jobs_that_fail_to_ingest(
    tm_manager: TMManager, job_store: JsonJobStore
) -> None:
    """测试预热时某个作业写入 TM 失败只跳过该作业，其余作业照常导入。"""
    broken, good = make_tu("res", "broken", ["Oops"]), make_tu("res", "greet", ["Hello"])
    await job_store.write_job(_request("job1", [broken]))
    await job_store.write_job(
        _response("job1", {}).model_copy(
            update={"tus": [TranslationUnit(guid=broken.guid, ntgt=["Hoppla"], q=50)]}
        )
    )
    await job_store.write_job(_request("job2", [good]))
    await job_store.write_job(_response("job2", {good.guid: ["Hallo"]}))

    assert await tm_manager.warm_up(job_store, max_workers=1) == 1

    assert await tm_manager.get_job("job1") is None
    entry = await tm_manager.get_tm(SRC, TGT).get_entry_by_guid(good.guid)
    assert entry is not None and entry.ntgt == ["Hallo"]
