# l10n_hub/core/types.py
"""
本模块定义了 l10n-hub 的核心数据传输对象 (DTOs)、枚举和类型别名。

持久化与跨进程传递的结构（TU、作业、占位符）都使用 camelCase 的线上格式，
在 Python 侧以 snake_case 属性访问。
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# ==============================================================================
#  枚举 (Enumerations)
# ==============================================================================


class PlaceholderType(str, Enum):
    """占位符的类型标记。"""

    STANDALONE = "x"
    BEGIN_TAG = "bx"
    END_TAG = "ex"


class JobStatus(str, Enum):
    """作业的生命周期状态。"""

    CREATED = "created"
    BLOCKED = "blocked"
    CANCELLED = "cancelled"
    PENDING = "pending"
    DONE = "done"


class OpState(str, Enum):
    """操作的内建状态。除此之外的任何字符串都被视为自定义的“阻塞”状态。"""

    PENDING = "pending"
    DONE = "done"
    ERROR = "error"


# ==============================================================================
#  归一化内容模型
# ==============================================================================


class Placeholder(BaseModel):
    """归一化字符串中的一个占位符片段。"""

    model_config = ConfigDict(frozen=True)

    t: PlaceholderType
    v: str
    s: str | None = None
    v1: str | None = None
    flag: str | None = None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


# 文本片段是普通的 str，占位符片段是 Placeholder。
Part = Union[str, Placeholder]
NormalizedString = list[Part]


class _WireModel(BaseModel):
    """线上格式为 camelCase 的模型基类。未知字段在解析时被丢弃。"""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class PlaceholderNote(BaseModel):
    sample: str | None = None
    desc: str | None = None


class StructuredNotes(_WireModel):
    """从开发者注释中提取出的结构化信息。"""

    desc: str | None = None
    ph: dict[str, PlaceholderNote] = Field(default_factory=dict)
    max_width: int | None = None
    screenshot: str | None = None
    tags: list[str] = Field(default_factory=list)


def notes_description(notes: StructuredNotes | str | None) -> str | None:
    """返回注释的描述文本，无论注释是否结构化。"""
    if isinstance(notes, StructuredNotes):
        return notes.desc
    return notes


# ==============================================================================
#  翻译单元与作业
# ==============================================================================


class TranslationUnit(_WireModel):
    """
    翻译单元 (TU)：一个源段落及其翻译状态。

    这里的模型是宽松的，必填字段的校验由 `l10n_hub.tu` 中的构造函数完成。
    `min_q`、`group`、`parent_guid` 等字段只在内存中流转，不会出现在持久化的白名单中。
    """

    guid: str
    rid: str | None = None
    sid: str | None = None
    nsrc: NormalizedString | None = None
    ntgt: NormalizedString | None = None
    q: int | None = None
    ts: int | None = None
    prj: str | None = None
    notes: Union[StructuredNotes, str, None] = None
    nid: str | None = None
    seq: int | None = None
    is_suffix_pluralized: bool | None = None
    inflight: bool | None = None
    job_guid: str | None = None
    translation_provider: str | None = None
    cost: float | None = None
    th: Any = None
    rev: Any = None

    # 仅在内存中使用的工作字段
    min_q: int | None = None
    group: str | None = None
    parent_guid: str | None = None
    plural_form: str | None = None
    words: int | None = None
    chars: int | None = None

    @property
    def is_pluralized(self) -> bool:
        return bool(self.plural_form or self.is_suffix_pluralized)


class Job(_WireModel):
    """一个作业：一组发往某个提供者的 TU，以及它的生命周期状态。"""

    job_guid: str | None = None
    source_lang: str
    target_lang: str
    status: JobStatus | None = None
    tus: list[TranslationUnit] = Field(default_factory=list)
    inflight: list[str] | None = None
    translation_provider: str | None = None
    updated_at: str | None = None
    original_job_guid: str | None = None
    instructions: str | None = None
    envelope: dict[str, Any] | None = None
    task_name: str | None = None
    estimated_cost: float | None = None
    status_description: str | None = None

    @property
    def lang_pair(self) -> tuple[str, str]:
        return self.source_lang, self.target_lang


class Segment(_WireModel):
    """资源格式插件解析出的一个原始段落。原始字符串在线上格式中的键为 `str`。"""

    sid: str
    text: str = Field(alias="str")
    mf: str | None = None
    notes: str | None = None
    plural_form: str | None = None


class JobSummary(BaseModel):
    """`Dispatcher.start_jobs` 返回的单个作业摘要。"""

    job_guid: str
    source_lang: str
    target_lang: str
    provider: str
    status: JobStatus
    num_tus: int = 0
    num_inflight: int = 0
