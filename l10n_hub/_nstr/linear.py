# l10n_hub/_nstr/linear.py
"""
Linear-V1 占位符编码。

每个占位符被改写为 `{{idx_type_frag}}`：`idx` 依次为 a..y，之后为 z1、z2...；
`type` 为占位符类型标记；`frag` 取自占位符值中的第一段 [0-9A-Za-z_] 字符。
该编码用于内容哈希、持久化和兼容性签名。
"""

from __future__ import annotations

import re

from l10n_hub.core.exceptions import PlaceholderExtractionError
from l10n_hub.core.types import NormalizedString, Placeholder

_FRAGMENT_PATTERN = re.compile(r"[0-9A-Za-z_]+")
_MANGLED_PATTERN = re.compile(r"\{\{((?:[a-y]|z\d+)_(?:x|bx|ex)_[0-9A-Za-z_]*)\}\}")

PlaceholderMap = dict[str, Placeholder]


def placeholder_index(position: int) -> str:
    """把 1 起始的占位符序号转换为 Linear-V1 索引前缀。"""
    if position < 1:
        raise ValueError("占位符序号必须从 1 开始")
    if position < 26:
        return chr(96 + position)
    return f"z{position - 25}"


def mangle_placeholder(position: int, placeholder: Placeholder) -> str:
    match = _FRAGMENT_PATTERN.search(placeholder.v)
    fragment = match.group(0) if match else ""
    return f"{placeholder_index(position)}_{placeholder.t.value}_{fragment}"


def minify_v1(v1: str) -> str:
    """去掉描述性后缀，只保留 `idx_type` 作为兼容性签名。"""
    return "_".join(v1.split("_")[:2])


def flatten_linear(nstr: NormalizedString) -> tuple[str, PlaceholderMap]:
    """
    把归一化字符串扁平化为 Linear-V1 文本。

    Returns:
        扁平化后的字符串，以及 “编码名 -> 带 v1 的占位符” 的映射表。
    """
    ph_map: PlaceholderMap = {}
    chunks: list[str] = []
    position = 0
    for part in nstr:
        if isinstance(part, str):
            chunks.append(part)
            continue
        position += 1
        mangled = mangle_placeholder(position, part)
        ph_map[mangled] = part.model_copy(update={"v1": mangled})
        chunks.append(f"{{{{{mangled}}}}}")
    return "".join(chunks), ph_map


def extract_linear(text: str, ph_map: PlaceholderMap) -> NormalizedString:
    """
    把 Linear-V1 文本还原为归一化字符串。

    Raises:
        PlaceholderExtractionError: 文本引用了映射表中不存在的占位符。
    """
    parts: NormalizedString = []
    pos = 0
    for match in _MANGLED_PATTERN.finditer(text):
        if match.start() > pos:
            parts.append(text[pos : match.start()])
        mangled = match.group(1)
        placeholder = ph_map.get(mangled)
        if placeholder is None:
            raise PlaceholderExtractionError(
                f"占位符 '{mangled}' 不在占位符映射表中: {sorted(ph_map)}"
            )
        parts.append(placeholder)
        pos = match.end()
    if pos < len(text):
        parts.append(text[pos:])
    return parts


def flatten_minified(nstr: NormalizedString) -> str:
    """只保留占位符签名（idx_type）的扁平化结果，用于比较两个字符串是否等价。"""
    chunks: list[str] = []
    position = 0
    for part in nstr:
        if isinstance(part, str):
            chunks.append(part)
        else:
            position += 1
            chunks.append(f"{{{{{placeholder_index(position)}_{part.t.value}}}}}")
    return "".join(chunks)
