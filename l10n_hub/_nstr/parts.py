# l10n_hub/_nstr/parts.py
"""
归一化字符串的基础操作：解码流水线、相邻文本合并，以及不依赖占位符映射的扁平化。
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Union

from l10n_hub.core.types import NormalizedString, Part, Placeholder


@dataclass(frozen=True)
class TextRun:
    """解码器产出的、携带标记的文本片段。合并后会退化为普通 str。"""

    v: str
    flag: str | None = None


DecodedPart = Union[str, TextRun, Placeholder]
Decoder = Callable[[list[DecodedPart]], list[DecodedPart]]


def consolidate_parts(
    parts: Iterable[DecodedPart], flags: dict[str, bool] | None = None
) -> NormalizedString:
    """合并相邻的文本片段，并把解码器报告的标记收集到 `flags` 中。"""
    consolidated: NormalizedString = []
    for part in parts:
        if isinstance(part, TextRun):
            if part.flag and flags is not None:
                flags[part.flag] = True
            part = part.v
        elif isinstance(part, Placeholder) and part.flag and flags is not None:
            flags[part.flag] = True

        if isinstance(part, str):
            if not part:
                continue
            if consolidated and isinstance(consolidated[-1], str):
                consolidated[-1] = consolidated[-1] + part
                continue
        consolidated.append(part)
    return consolidated


def get_normalized_string(
    text: str,
    decoders: Iterable[Decoder] | None = None,
    flags: dict[str, bool] | None = None,
) -> NormalizedString:
    """依次运行解码器，把原始字符串转换为归一化的片段序列。"""
    parts: NormalizedString = [text] if text else []
    for decoder in decoders or ():
        parts = consolidate_parts(decoder(list(parts)), flags)
    return parts


def placeholders_of(nstr: NormalizedString) -> list[Placeholder]:
    return [part for part in nstr if isinstance(part, Placeholder)]


def is_normalized_string(value: object) -> bool:
    return isinstance(value, list) and all(
        isinstance(part, (str, Placeholder)) for part in value
    )


def flatten_ordinal(nstr: NormalizedString) -> str:
    """
    扁平化为“序数”字符串：每个占位符只保留类型标记，值与名称全部丢弃。
    用于 GUID 计算和精确匹配索引。
    """
    return "".join(
        part if isinstance(part, str) else f"{{{{{part.t.value}}}}}" for part in nstr
    )


def flatten_plain(nstr: NormalizedString) -> str:
    """把占位符还原为其原始值后拼接，得到可读的纯文本。"""
    return "".join(part if isinstance(part, str) else part.v for part in nstr)


def make_part(value: Part | dict) -> Part:
    """把线上格式的片段（str 或 dict）转换为 Part。"""
    if isinstance(value, (str, Placeholder)):
        return value
    return Placeholder.model_validate(value)
