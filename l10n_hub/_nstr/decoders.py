# l10n_hub/_nstr/decoders.py
"""
基于正则表达式的解码器与编码器。

解码器只处理文本片段：每个正则匹配被 `part_decoder` 转换为文本（带标记）、
占位符或片段列表；已经是占位符的片段原样传递。编码器则在输出译文时
把文本片段转义回目标格式。
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping
from typing import Union

from l10n_hub.core.types import NormalizedString, Placeholder, PlaceholderType
from l10n_hub._nstr.parts import DecodedPart, Decoder, TextRun

PartDecoder = Callable[[dict[str, str]], Union[str, Placeholder, list[DecodedPart]]]
TextEncoder = Callable[[str, Mapping[str, object]], str]


def decoder_maker(
    flag: str, regex: str | re.Pattern[str], part_decoder: PartDecoder
) -> Decoder:
    """创建一个解码器。正则必须使用命名分组，分组字典会传给 `part_decoder`。"""
    pattern = re.compile(regex) if isinstance(regex, str) else regex

    def decoder(parts: list[DecodedPart]) -> list[DecodedPart]:
        decoded: list[DecodedPart] = []
        for part in parts:
            if isinstance(part, Placeholder):
                decoded.append(part)
                continue
            text = part.v if isinstance(part, TextRun) else part
            pos = 0
            for match in pattern.finditer(text):
                if match.start() > pos:
                    decoded.append(text[pos : match.start()])
                result = part_decoder(match.groupdict())
                if isinstance(result, str):
                    decoded.append(TextRun(result, flag))
                elif isinstance(result, list):
                    decoded.extend(result)
                else:
                    decoded.append(result)
                pos = match.end()
            if pos < len(text):
                decoded.append(text[pos:])
        return decoded

    decoder.__name__ = flag
    return decoder


def encoder_maker(
    name: str, regex: str | re.Pattern[str], match_map: Mapping[str, str]
) -> TextEncoder:
    """创建一个按映射表替换匹配文本的编码器。"""
    pattern = re.compile(regex) if isinstance(regex, str) else regex

    def encoder(text: str, flags: Mapping[str, object] | None = None) -> str:
        return pattern.sub(lambda m: match_map.get(m.group(0), m.group(0)), text)

    encoder.__name__ = name
    return encoder


# ==============================================================================
#  常用解码器
# ==============================================================================

_NAMED_ENTITIES = {
    "&nbsp;": "\u00a0",
    "&amp;": "&",
    "&apos;": "'",
    "&quot;": '"',
    "&lt;": "<",
    "&gt;": ">",
}


def _decode_entity(groups: dict[str, str]) -> str:
    if groups.get("named"):
        return _NAMED_ENTITIES.get(groups["named"], groups["named"])
    if groups.get("hex"):
        return chr(int(groups["hex"], 16))
    return chr(int(groups["numeric"], 10))


xml_entity_decoder = decoder_maker(
    "xmlEntityDecoder",
    r"&#x(?P<hex>[0-9a-fA-F]+);|(?P<named>&[^#;\s]+;)|&#(?P<numeric>\d+);",
    _decode_entity,
)


def _decode_tag(groups: dict[str, str]) -> Placeholder:
    if groups.get("bx"):
        kind = PlaceholderType.BEGIN_TAG
    elif groups.get("ex"):
        kind = PlaceholderType.END_TAG
    else:
        kind = PlaceholderType.STANDALONE
    return Placeholder(t=kind, v=groups["tag"])


# 同时适用于 XML 与 HTML 标签
xml_tag_decoder = decoder_maker(
    "xmlDecoder",
    r"(?P<tag>(?P<x><[^>]+/>)|(?P<bx><[^/!][^>]*>)|(?P<ex></[^>]+>))",
    _decode_tag,
)

# {param} 风格的占位符
brace_placeholder_decoder = decoder_maker(
    "bracePHDecoder",
    r"(?P<x>\{[^}]+\})",
    lambda groups: Placeholder(t=PlaceholderType.STANDALONE, v=groups["x"]),
)

# printf 风格的占位符，例如 %s、%d、%1$s、%.2f
printf_decoder = decoder_maker(
    "printfDecoder",
    r"(?P<x>%(?:\d+\$)?[-+ 0#]*\d*(?:\.\d+)?[sdifuxXoeEgGc@])",
    lambda groups: Placeholder(t=PlaceholderType.STANDALONE, v=groups["x"]),
)

double_percent_decoder = decoder_maker(
    "doublePercentDecoder", r"(?P<percent>%%)", lambda groups: "%"
)


def keyword_decoder(name: str, keywords: Iterable[str]) -> Decoder:
    """把受保护的术语转换为带样例的独立占位符，使提供者不会翻译它们。"""
    words = sorted(set(keywords), key=len, reverse=True)
    if not words:
        raise ValueError("必须至少提供一个受保护的关键字")
    alternation = "|".join(re.escape(word) for word in words)
    return decoder_maker(
        name,
        rf"(?P<kw>{alternation})",
        lambda groups: Placeholder(
            t=PlaceholderType.STANDALONE, v=groups["kw"], s=groups["kw"]
        ),
    )


# ==============================================================================
#  编码器
# ==============================================================================

xml_entity_encoder = encoder_maker(
    "xmlEntityEncoder", "&|<|\u00a0", {"&": "&amp;", "<": "&lt;", "\u00a0": "&#160;"}
)
double_percent_encoder = encoder_maker("doublePercentEncoder", r"%", {"%": "%%"})


def encode_parts(
    nstr: NormalizedString,
    text_encoders: Iterable[TextEncoder] = (),
    flags: Mapping[str, object] | None = None,
) -> str:
    """把归一化字符串编码回原始格式：文本片段依次经过编码器，占位符输出其原始值。"""
    encoders = list(text_encoders)
    flags = flags or {}
    chunks: list[str] = []
    for part in nstr:
        if isinstance(part, str):
            for encoder in encoders:
                part = encoder(part, flags)
            chunks.append(part)
        else:
            chunks.append(part.v)
    return "".join(chunks)
