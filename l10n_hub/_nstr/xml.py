# l10n_hub/_nstr/xml.py
"""
XML-V1 占位符编码，仅用于发送给提供者（尤其是 LLM）的载荷。

占位符被改写为类标签标记：独立占位符为 `<xN />`，成对占位符为 `<xN>…</xN>`，
通过显式的开标签栈跟踪嵌套。带样例 (`s`) 的独立占位符输出为 `<xN>样例</xN>`，
让模型看到可读文本；回程时样例被折叠回占位符。
"""

from __future__ import annotations

import re

from l10n_hub.core.exceptions import PlaceholderExtractionError
from l10n_hub.core.types import NormalizedString, Placeholder, PlaceholderType
from l10n_hub._nstr.linear import PlaceholderMap, mangle_placeholder

_TAG_PATTERN = re.compile(r"<(?P<x>x\d+)\s*/>|<(?P<bx>x\d+)>|</(?P<ex>x\d+)>")

# &amp; 必须最后替换，否则 "&amp;lt;" 会被错误地二次反转义
_UNESCAPE_ORDER = (
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&apos;", "'"),
    ("&nbsp;", "\u00a0"),
    ("&amp;", "&"),
)


def escape_text(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def unescape_text(text: str) -> str:
    for entity, char in _UNESCAPE_ORDER:
        text = text.replace(entity, char)
    return text


def flatten_xml(nstr: NormalizedString) -> tuple[str, PlaceholderMap]:
    """
    把归一化字符串扁平化为 XML-V1 文本。

    映射表的键为：独立占位符 `xN`，开标签 `bxN`，闭标签 `exN`（N 为对应开标签的序号）。
    映射表中的占位符都带有 Linear-V1 的 `v1` 签名。
    """
    ph_map: PlaceholderMap = {}
    chunks: list[str] = []
    open_tags: list[str] = []
    position = 0
    for part in nstr:
        if isinstance(part, str):
            chunks.append(escape_text(part))
            continue
        position += 1
        shorthand = f"x{position}"
        placeholder = part.model_copy(update={"v1": mangle_placeholder(position, part)})
        if part.t is PlaceholderType.BEGIN_TAG:
            open_tags.append(shorthand)
            chunks.append(f"<{shorthand}>")
            ph_map[f"b{shorthand}"] = placeholder
        elif part.t is PlaceholderType.END_TAG and open_tags:
            open_shorthand = open_tags.pop()
            chunks.append(f"</{open_shorthand}>")
            ph_map[f"e{open_shorthand}"] = placeholder
        else:
            # 独立占位符，或者在任何开标签之前出现的闭标签
            if part.s:
                chunks.append(f"<{shorthand}>{escape_text(part.s)}</{shorthand}>")
            else:
                chunks.append(f"<{shorthand} />")
            ph_map[shorthand] = placeholder
    return "".join(chunks), ph_map


def _lookup(ph_map: PlaceholderMap, key: str, tag: str) -> Placeholder:
    placeholder = ph_map.get(key)
    if placeholder is None:
        raise PlaceholderExtractionError(f"标签 '{tag}' 不在占位符映射表中: {sorted(ph_map)}")
    return placeholder


def extract_xml(text: str, ph_map: PlaceholderMap) -> NormalizedString:
    """
    把提供者返回的 XML-V1 文本还原为归一化字符串。

    Raises:
        PlaceholderExtractionError: 文本引用了映射表中不存在的标签。
    """
    parts: list[str | Placeholder] = []
    pos = 0
    for match in _TAG_PATTERN.finditer(text):
        standalone, opening, closing = match.group("x", "bx", "ex")
        segment = text[pos : match.start()]
        sample_placeholder = ph_map.get(closing) if closing else None

        if sample_placeholder is not None:
            # 样例文本被折叠回占位符，只保留首尾的单个空格
            if segment.startswith(" "):
                parts.append(" ")
            parts.append(sample_placeholder)
            if match.start() > 0 and text[match.start() - 1] == " ":
                parts.append(" ")
        else:
            if segment:
                parts.append(unescape_text(segment))
            if standalone:
                parts.append(_lookup(ph_map, standalone, match.group(0)))
            elif opening:
                if opening not in ph_map:
                    parts.append(_lookup(ph_map, f"b{opening}", match.group(0)))
            else:
                parts.append(_lookup(ph_map, f"e{closing}", match.group(0)))
        pos = match.end()
    if pos < len(text):
        parts.append(unescape_text(text[pos:]))

    consolidated: NormalizedString = []
    for part in parts:
        if isinstance(part, str) and consolidated and isinstance(consolidated[-1], str):
            consolidated[-1] = consolidated[-1] + part
        elif part != "":
            consolidated.append(part)
    return consolidated
