# tests/unit/test_job_store.py
"""针对基于文件的作业工件存储的单元测试。"""

import pytest
from conftest import make_tu

from l10n_hub.core.exceptions import ImmutableArtifactError
from l10n_hub.core.types import Job, JobStatus, TranslationUnit
from l10n_hub.job_store import JsonJobStore, artifact_name


def _job(job_guid: str, status: JobStatus | None, provider: str | None = "debug") -> Job:
    return Job(
        job_guid=job_guid,
        source_lang="en",
        target_lang="de",
        status=status,
        translation_provider=provider,
        updated_at="2023-11-14T22:13:20Z",
    )


@pytest.mark.parametrize(
    ("status", "suffix"),
    [
        (None, "req"),
        (JobStatus.CREATED, "req"),
        (JobStatus.BLOCKED, "req"),
        (JobStatus.PENDING, "pending"),
        (JobStatus.DONE, "done"),
        (JobStatus.CANCELLED, "cancelled"),
    ],
)
def test_artifact_name(status: JobStatus | None, suffix: str) -> None:
    assert artifact_name(_job("g1", status)) == f"debug_en_de_job_g1-{suffix}.json"


def test_artifact_name_for_unassigned_job() -> None:
    assert artifact_name(_job("g1", None, provider=None)).startswith("unassigned_en_de_job_g1")
    with pytest.raises(ValueError):
        artifact_name(_job("", None))


@pytest.mark.asyncio
async def test_artifacts_are_immutable(job_store: JsonJobStore) -> None:
    await job_store.write_job(_job("g1", JobStatus.PENDING))
    with pytest.raises(ImmutableArtifactError):
        await job_store.write_job(_job("g1", JobStatus.PENDING))


@pytest.mark.asyncio
async def test_done_takes_priority_over_pending(job_store: JsonJobStore) -> None:
    tu = make_tu("res", "greet", ["Hello"])
    await job_store.write_job(_job("g1", JobStatus.CREATED).model_copy(update={"tus": [tu]}))
    await job_store.write_job(_job("g1", JobStatus.PENDING).model_copy(update={"inflight": [tu.guid]}))
    assert (await job_store.get_job("g1")).status is JobStatus.PENDING

    done = _job("g1", JobStatus.DONE).model_copy(
        update={"tus": [TranslationUnit(guid=tu.guid, ntgt=["Hallo"], q=50, ts=1)]}
    )
    await job_store.write_job(done)

    latest = await job_store.get_job("g1")
    assert latest is not None
    assert latest.status is JobStatus.DONE
    assert latest.tus[0].ntgt == ["Hallo"]
    request = await job_store.get_job_request("g1")
    assert request is not None and request.tus[0].nsrc == ["Hello"]


@pytest.mark.asyncio
async def test_cancelled_takes_priority_over_pending(job_store: JsonJobStore) -> None:
    """测试 pending 作业被取消后，状态列表不再把它当作 pending。"""
    await job_store.write_job(_job("g1", JobStatus.PENDING))
    await job_store.write_job(_job("g1", JobStatus.CANCELLED))

    latest = await job_store.get_job("g1")
    assert latest is not None and latest.status is JobStatus.CANCELLED
    assert await job_store.get_job_status_by_lang_pair("en", "de") == {
        "g1": ("cancelled", "2023-11-14T22:13:20Z"),
    }


@pytest.mark.asyncio
async def test_status_listing_by_lang_pair(job_store: JsonJobStore) -> None:
    await job_store.write_job(_job("g1", JobStatus.DONE))
    await job_store.write_job(_job("g2", JobStatus.PENDING))
    await job_store.write_job(_job("g3", JobStatus.CREATED))
    await job_store.write_job(_job("g4", JobStatus.DONE).model_copy(update={"target_lang": "fr"}))

    assert await job_store.get_available_lang_pairs() == [("en", "de"), ("en", "fr")]
    assert await job_store.get_job_status_by_lang_pair("en", "de") == {
        "g1": ("done", "2023-11-14T22:13:20Z"),
        "g2": ("pending", "2023-11-14T22:13:20Z"),
    }
    assert len(await job_store.list_jobs("en", "fr")) == 1


@pytest.mark.asyncio
async def test_missing_jobs_return_none(job_store: JsonJobStore) -> None:
    assert await job_store.get_job("missing") is None
    assert await job_store.get_job_request("missing") is None
    assert await job_store.get_available_lang_pairs() == []
