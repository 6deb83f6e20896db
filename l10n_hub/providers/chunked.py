# l10n_hub/providers/chunked.py
"""
分块远程翻译提供者的抽象基类。

TU 原文被扁平化为 XML-V1 文本后按数量与总字符数分块，每块对应任务中的一个操作；
根操作依赖全部分块操作，负责校验每块返回的译文数量并按原始 guid 顺序重组译文。

同步模式下分块操作直接返回译文；异步模式下分块操作只负责提交，作业进入 pending，
之后由 `continue_job` 创建新的任务逐块取回译文。
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Any, TypeVar

import structlog
from pydantic import Field

from l10n_hub._nstr.xml import extract_xml, flatten_xml
from l10n_hub.core.exceptions import (
    ChunkCardinalityError,
    PlaceholderExtractionError,
    ProviderError,
    TaskExecutionError,
)
from l10n_hub.core.types import Job, JobStatus, Placeholder
from l10n_hub.ops.registry import OpRegistry
from l10n_hub.ops.task import Task, TaskHandle
from l10n_hub.providers.base import (
    STATUS_DESCRIPTIONS,
    BaseTranslationProvider,
    ExecutionMode,
    ProviderConfig,
    ProviderFamily,
)

logger = structlog.get_logger(__name__)

MAX_CHAR_LENGTH = 9900
MAX_CHUNK_SIZE = 125


class ChunkedRemoteConfig(ProviderConfig):
    max_char_length: int = Field(default=MAX_CHAR_LENGTH, gt=0)
    max_chunk_size: int = Field(default=MAX_CHUNK_SIZE, gt=0)
    language_map: dict[str, str] = Field(
        default_factory=dict, description="把语言代码转换为远端服务使用的代码"
    )
    asynchronous: bool = Field(default=False, description="先提交、稍后取回译文")


_ChunkedConfigType = TypeVar("_ChunkedConfigType", bound=ChunkedRemoteConfig)


def split_into_chunks(
    payload: list[str], max_chunk_size: int, max_char_length: int
) -> list[list[str]]:
    """
    按数量与总字符数把载荷切分为分块。

    Raises:
        ProviderError: 单个字符串本身就超过了字符数上限。
    """
    chunks: list[list[str]] = []
    idx = 0
    while idx < len(payload):
        chunk: list[str] = []
        total = 0
        while (
            idx < len(payload)
            and len(chunk) < max_chunk_size
            and total + len(payload[idx]) < max_char_length
        ):
            total += len(payload[idx])
            chunk.append(payload[idx])
            idx += 1
        if not chunk:
            raise ProviderError(
                f"索引 {idx} 处的字符串超过了 {max_char_length} 个字符的上限", retryable=False
            )
        chunks.append(chunk)
    return chunks


class ChunkedRemoteTranslationProvider(BaseTranslationProvider[_ChunkedConfigType]):
    FAMILY = ProviderFamily.CHUNKED_REMOTE
    EXECUTION = ExecutionMode.TASK
    REQUIRES_QUALITY = True

    # --- 操作名称 ---

    @property
    def translate_chunk_op(self) -> str:
        return f"{self.id}.translate_chunk"

    @property
    def merge_chunks_op(self) -> str:
        return f"{self.id}.merge_translated_chunks"

    @property
    def submit_chunk_op(self) -> str:
        return f"{self.id}.submit_chunk"

    @property
    def wait_submissions_op(self) -> str:
        return f"{self.id}.wait_submissions"

    @property
    def fetch_chunk_op(self) -> str:
        return f"{self.id}.fetch_chunk"

    def register_ops(self, registry: OpRegistry) -> None:
        registry.register_op(self.translate_chunk_op, self._translate_chunk_op, idempotent=False)
        registry.register_op(self.merge_chunks_op, self._merge_chunks_op, idempotent=True)
        registry.register_op(self.submit_chunk_op, self._submit_chunk_op, idempotent=False)
        registry.register_op(self.wait_submissions_op, self._wait_submissions_op, idempotent=True)
        registry.register_op(self.fetch_chunk_op, self._fetch_chunk_op, idempotent=True)

    def map_lang(self, lang: str) -> str:
        return self.config.language_map.get(lang, lang)

    # --- 子类钩子 ---

    async def translate_chunk(self, args: dict[str, Any]) -> Any:
        """[子类实现] 同步翻译一个分块，返回值交给 `convert_translation_response`。"""
        raise NotImplementedError(f"{self.__class__.__name__} 未实现 translate_chunk")

    async def submit_chunk(self, args: dict[str, Any]) -> Any:
        """[子类实现] 异步模式：提交一个分块，返回提交回执。"""
        raise NotImplementedError(f"{self.__class__.__name__} 未实现 submit_chunk")

    async def fetch_chunk(self, args: dict[str, Any]) -> Any:
        """[子类实现] 异步模式：取回一个分块的译文；尚未就绪时应抛出异常。"""
        raise NotImplementedError(f"{self.__class__.__name__} 未实现 fetch_chunk")

    @abstractmethod
    def convert_translation_response(self, chunk: Any) -> list[dict[str, Any]]:
        """[子类实现] 把一个分块的原始响应转换为 `[{"tgt": xml文本, ...}]`。"""
        ...

    # --- 操作回调 ---

    async def _translate_chunk_op(
        self, args: dict[str, Any], inputs: list[Any], handle: TaskHandle
    ) -> Any:
        logger.info("翻译分块", task_name=handle.task_name, chunk=args["chunk"], size=len(args["src"]))
        return await self.translate_chunk(args)

    async def _submit_chunk_op(
        self, args: dict[str, Any], inputs: list[Any], handle: TaskHandle
    ) -> Any:
        return await self.submit_chunk(args)

    async def _wait_submissions_op(
        self, args: dict[str, Any], inputs: list[Any], handle: TaskHandle
    ) -> dict[str, Any]:
        for idx, receipt in enumerate(inputs):
            logger.debug("分块已提交", chunk=idx, receipt=receipt)
        return {
            "guids": args["guids"],
            "tuMeta": args.get("tuMeta") or {},
            "chunkSizes": args["chunkSizes"],
            "receipts": inputs,
        }

    async def _fetch_chunk_op(
        self, args: dict[str, Any], inputs: list[Any], handle: TaskHandle
    ) -> Any:
        return await self.fetch_chunk(args)

    async def _merge_chunks_op(
        self, args: dict[str, Any], inputs: list[Any], handle: TaskHandle
    ) -> list[dict[str, Any]]:
        """
        按原始顺序重组各分块的译文。

        返回数量与分块大小不符的分块整块被拒绝；占位符无法还原的单个 TU 被丢弃。
        """
        guids: list[str] = args["guids"]
        tu_meta: dict[str, dict[str, Any]] = args.get("tuMeta") or {}
        chunk_sizes: list[int] = args["chunkSizes"]
        merged: list[dict[str, Any]] = []
        offset = 0
        for chunk_idx, (size, chunk) in enumerate(zip(chunk_sizes, inputs)):
            start = offset
            offset += size
            try:
                translations = self.convert_translation_response(chunk)
                if len(translations) != size:
                    raise ChunkCardinalityError(
                        f"分块 {chunk_idx} 应包含 {size} 条译文，实际为 {len(translations)} 条"
                    )
            except ChunkCardinalityError as e:
                logger.error("分块译文数量不符，整块被拒绝", chunk=chunk_idx, error=str(e))
                continue

            for position, translation in enumerate(translations):
                idx = start + position
                ph_map = {
                    key: Placeholder.model_validate(value)
                    for key, value in tu_meta.get(str(idx), {}).items()
                }
                try:
                    if not isinstance(translation.get("tgt"), str):
                        raise PlaceholderExtractionError("响应中缺少译文文本")
                    ntgt = extract_xml(translation["tgt"], ph_map)
                except PlaceholderExtractionError as e:
                    logger.warning("译文中的占位符无法还原，已丢弃", guid=guids[idx], error=str(e))
                    continue
                tu = {key: value for key, value in translation.items() if key != "tgt"}
                tu.update(
                    guid=guids[idx],
                    q=args["quality"],
                    ts=args["ts"],
                    ntgt=[part.to_wire() if isinstance(part, Placeholder) else part for part in ntgt],
                )
                merged.append(tu)
        return merged

    # --- 任务构建 ---

    def create_task(self, job: Job) -> Task:
        tu_meta: dict[str, dict[str, Any]] = {}
        payload: list[str] = []
        for idx, tu in enumerate(job.tus):
            xml_src, ph_map = flatten_xml(tu.nsrc or [])
            if ph_map:
                tu_meta[str(idx)] = {key: ph.to_wire() for key, ph in ph_map.items()}
            payload.append(xml_src)
        chunks = split_into_chunks(payload, self.config.max_chunk_size, self.config.max_char_length)
        chunk_sizes = [len(chunk) for chunk in chunks]

        root_op = self.wait_submissions_op if self.config.asynchronous else self.merge_chunks_op
        chunk_op = self.submit_chunk_op if self.config.asynchronous else self.translate_chunk_op
        task = self.new_task(
            root_op,
            {
                "guids": [tu.guid for tu in job.tus],
                "tuMeta": tu_meta,
                "quality": self.quality,
                "ts": self.now_ts(),
                "chunkSizes": chunk_sizes,
            },
        )
        for chunk_idx, src in enumerate(chunks):
            logger.info("准备分块翻译", chunk=chunk_idx, strings=len(src), chars=sum(map(len, src)))
            op = task.enqueue(
                chunk_op,
                {
                    "sourceLang": self.map_lang(job.source_lang),
                    "targetLang": self.map_lang(job.target_lang),
                    "src": src,
                    "jobGuid": job.job_guid,
                    "instructions": job.instructions,
                    "chunk": chunk_idx,
                },
            )
            task.add_dependency(task.root.op_id, op.op_id)
        return task

    def build_task_response(self, job: Job, output: Any) -> Job:
        if not self.config.asynchronous:
            return super().build_task_response(job, output)
        envelope = {key: output[key] for key in ("guids", "tuMeta", "chunkSizes")}
        return job.model_copy(
            update={
                "tus": [],
                "inflight": list(output["guids"]),
                "envelope": {**(job.envelope or {}), **envelope},
                "status": JobStatus.PENDING,
                "status_description": STATUS_DESCRIPTIONS[JobStatus.PENDING],
            }
        )

    async def resume_job(self, job: Job) -> Job:
        """
        异步模式：创建新的任务逐块取回译文。

        任一分块尚未就绪时作业原样返回。取回的译文只保留仍在途的 guid，
        被整块拒绝或无法还原的 guid 继续留在 `inflight` 中。
        """
        if not self.config.asynchronous:
            return await super().resume_job(job)
        envelope = job.envelope or {}
        if "chunkSizes" not in envelope:
            logger.warning("作业缺少分块信息，无法取回译文", job_guid=job.job_guid)
            return job

        remote_job_guid = job.original_job_guid or job.job_guid
        task = self.new_task(
            self.merge_chunks_op,
            {
                "guids": envelope["guids"],
                "tuMeta": envelope.get("tuMeta") or {},
                "quality": self.quality,
                "ts": self.now_ts(),
                "chunkSizes": envelope["chunkSizes"],
            },
        )
        for chunk_idx, chunk_size in enumerate(envelope["chunkSizes"]):
            op = task.enqueue(
                self.fetch_chunk_op,
                {"jobGuid": remote_job_guid, "chunk": chunk_idx, "chunkSize": chunk_size},
            )
            task.add_dependency(task.root.op_id, op.op_id)
        try:
            output = await self.execute_task(task)
        except TaskExecutionError as e:
            logger.info("译文尚未就绪，作业保持 pending", job_guid=job.job_guid, error=str(e))
            return job

        still_inflight = set(job.inflight or [])
        tus = [tu for tu in super().build_task_response(job, output).tus if tu.guid in still_inflight]
        resolved = {tu.guid for tu in tus}
        inflight = [guid for guid in job.inflight or [] if guid not in resolved]
        status = JobStatus.PENDING if inflight else JobStatus.DONE
        return job.model_copy(
            update={
                "tus": tus,
                "inflight": inflight or None,
                "task_name": task.task_name,
                "status": status,
                "status_description": STATUS_DESCRIPTIONS[status],
            }
        )
