# l10n_hub/_nstr/compat.py
"""
占位符兼容性匹配。

译文中的每个占位符都必须能在原文中找到对应项：优先通过最简化的 Linear-V1 签名
(idx_type) 匹配，其次通过字面值匹配。此外两边的占位符数量必须相等。
"""

from __future__ import annotations

from typing import Any

from l10n_hub.core.types import NormalizedString, Placeholder
from l10n_hub._nstr.linear import flatten_linear, flatten_minified, minify_v1


class PlaceholderMatcher:
    """基于原文构建的占位符匹配器。"""

    def __init__(self, nsrc: NormalizedString):
        _, ph_map = flatten_linear(nsrc)
        self._by_signature: dict[str, Placeholder] = {
            minify_v1(mangled): placeholder for mangled, placeholder in ph_map.items()
        }
        self._by_value: dict[str, Placeholder] = {}
        for placeholder in ph_map.values():
            self._by_value.setdefault(placeholder.v, placeholder)
        self.count = len(ph_map)

    def match(self, part: Placeholder) -> Placeholder | None:
        """返回与译文占位符对应的原文占位符；无法对应时返回 None。"""
        if part.v1:
            matched = self._by_signature.get(minify_v1(part.v1))
            if matched is not None:
                return matched
        return self._by_value.get(part.v)


def are_compatible(nsrc: Any, ntgt: Any) -> bool:
    """判断译文的占位符集合是否对原文有效。任意一方不是序列时返回 False。"""
    if not isinstance(nsrc, list) or not isinstance(ntgt, list):
        return False
    matcher = PlaceholderMatcher(nsrc)
    target_count = 0
    for part in ntgt:
        if isinstance(part, Placeholder):
            target_count += 1
            if matcher.match(part) is None:
                return False
    return target_count == matcher.count


def normalized_strings_equal(a: NormalizedString | None, b: NormalizedString | None) -> bool:
    if a is None or b is None:
        return a is b
    return flatten_minified(a) == flatten_minified(b)


def remap_translation(nsrc: NormalizedString, ntgt: NormalizedString) -> NormalizedString | None:
    """
    把借用来的译文中的占位符改写为接收方原文中的占位符。

    用于复用同一原文、但占位符取值不同的其他段落的译文。无法对应时返回 None。
    """
    if not are_compatible(nsrc, ntgt):
        return None
    matcher = PlaceholderMatcher(nsrc)
    remapped: NormalizedString = []
    for part in ntgt:
        if isinstance(part, Placeholder):
            matched = matcher.match(part)
            if matched is None:
                return None
            remapped.append(matched)
        else:
            remapped.append(part)
    return remapped
