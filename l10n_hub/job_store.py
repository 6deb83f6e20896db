# l10n_hub/job_store.py
"""
基于文件的作业工件存储。

每个工件一个 JSON 文件，文件名为
`{provider}_{sourceLang}_{targetLang}_job_{jobGuid}-{req|pending|done|cancelled}.json`，
created/blocked 状态的请求都记为 `req`。文件以独占模式创建，已存在的工件永远不会被覆盖。
"""

from __future__ import annotations

import asyncio
import json
import re
from pathlib import Path

import structlog

from l10n_hub.core.exceptions import ImmutableArtifactError
from l10n_hub.core.types import Job, JobStatus

logger = structlog.get_logger(__name__)

UNASSIGNED_PROVIDER = "unassigned"

_REQUEST_SUFFIX = "req"
_FILENAME_PATTERN = re.compile(
    r"^(?P<provider>.+)_(?P<src>[^_]+)_(?P<tgt>[^_]+)_job_(?P<guid>.+)-"
    r"(?P<suffix>req|pending|done|cancelled)\.json$"
)
# 响应工件的优先级：终态 (done、cancelled) 优先于 pending
_RESPONSE_PRIORITY = ("done", "cancelled", "pending")


def artifact_suffix(status: JobStatus | None) -> str:
    if status in (None, JobStatus.CREATED, JobStatus.BLOCKED):
        return _REQUEST_SUFFIX
    assert status is not None
    return status.value


def artifact_name(job: Job) -> str:
    if not job.job_guid:
        raise ValueError("作业工件必须带有 jobGuid")
    provider = job.translation_provider or UNASSIGNED_PROVIDER
    return (
        f"{provider}_{job.source_lang}_{job.target_lang}"
        f"_job_{job.job_guid}-{artifact_suffix(job.status)}.json"
    )


class JsonJobStore:
    def __init__(self, jobs_dir: str | Path):
        self.jobs_dir = Path(jobs_dir)

    # --- 同步的文件操作，通过 asyncio.to_thread 调用 ---

    def _write(self, job: Job) -> Path:
        self.jobs_dir.mkdir(parents=True, exist_ok=True)
        path = self.jobs_dir / artifact_name(job)
        payload = json.dumps(job.to_wire(), ensure_ascii=False, indent=2)
        try:
            with path.open("x", encoding="utf-8") as f:
                f.write(payload)
        except FileExistsError:
            raise ImmutableArtifactError(f"不能覆盖不可变的作业工件: {path.name}") from None
        return path

    def _scan(self) -> list[tuple[re.Match[str], Path]]:
        if not self.jobs_dir.is_dir():
            return []
        found = []
        for path in sorted(self.jobs_dir.glob("*_job_*.json")):
            match = _FILENAME_PATTERN.match(path.name)
            if match:
                found.append((match, path))
        return found

    def _find(self, job_guid: str, suffixes: tuple[str, ...]) -> Path | None:
        by_suffix = {
            match["suffix"]: path for match, path in self._scan() if match["guid"] == job_guid
        }
        for suffix in suffixes:
            if suffix in by_suffix:
                return by_suffix[suffix]
        return None

    @staticmethod
    def _read(path: Path) -> Job:
        return Job.model_validate(json.loads(path.read_text(encoding="utf-8")))

    def _latest_responses(self, source_lang: str, target_lang: str) -> dict[str, Path]:
        latest: dict[str, tuple[int, Path]] = {}
        for match, path in self._scan():
            if (match["src"], match["tgt"]) != (source_lang, target_lang):
                continue
            if match["suffix"] not in _RESPONSE_PRIORITY:
                continue
            rank = _RESPONSE_PRIORITY.index(match["suffix"])
            current = latest.get(match["guid"])
            if current is None or rank < current[0]:
                latest[match["guid"]] = (rank, path)
        return {guid: path for guid, (_, path) in latest.items()}

    # --- JobStore 协议 ---

    async def write_job(self, job: Job) -> None:
        path = await asyncio.to_thread(self._write, job)
        logger.debug("作业工件已写入", file=path.name)

    async def get_job(self, job_guid: str) -> Job | None:
        path = await asyncio.to_thread(self._find, job_guid, _RESPONSE_PRIORITY)
        return await asyncio.to_thread(self._read, path) if path else None

    async def get_job_request(self, job_guid: str) -> Job | None:
        path = await asyncio.to_thread(self._find, job_guid, (_REQUEST_SUFFIX,))
        return await asyncio.to_thread(self._read, path) if path else None

    async def list_jobs(self, source_lang: str, target_lang: str) -> list[Job]:
        paths = await asyncio.to_thread(self._latest_responses, source_lang, target_lang)
        return [await asyncio.to_thread(self._read, path) for path in paths.values()]

    async def get_available_lang_pairs(self) -> list[tuple[str, str]]:
        scanned = await asyncio.to_thread(self._scan)
        return sorted({(match["src"], match["tgt"]) for match, _ in scanned})

    async def get_job_status_by_lang_pair(
        self, source_lang: str, target_lang: str
    ) -> dict[str, tuple[str, str | None]]:
        status: dict[str, tuple[str, str | None]] = {}
        for job in await self.list_jobs(source_lang, target_lang):
            assert job.job_guid is not None and job.status is not None
            status[job.job_guid] = (job.status.value, job.updated_at)
        return status
