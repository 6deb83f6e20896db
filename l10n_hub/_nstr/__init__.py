# l10n_hub/_nstr/__init__.py
"""归一化字符串模型：解码、Linear-V1 / XML-V1 编解码与占位符兼容性匹配。"""

from .compat import (
    PlaceholderMatcher,
    are_compatible,
    normalized_strings_equal,
    remap_translation,
)
from .linear import extract_linear, flatten_linear, flatten_minified, minify_v1
from .parts import (
    TextRun,
    consolidate_parts,
    flatten_ordinal,
    flatten_plain,
    get_normalized_string,
    placeholders_of,
)
from .xml import extract_xml, flatten_xml

__all__ = [
    "PlaceholderMatcher",
    "TextRun",
    "are_compatible",
    "consolidate_parts",
    "extract_linear",
    "extract_xml",
    "flatten_linear",
    "flatten_minified",
    "flatten_ordinal",
    "flatten_plain",
    "flatten_xml",
    "get_normalized_string",
    "minify_v1",
    "normalized_strings_equal",
    "placeholders_of",
    "remap_translation",
]
