# l10n_hub/_nstr/notes.py
"""从开发者注释中提取结构化标注：PH(名称|样例|描述)、MAXWIDTH(n)、SCREENSHOT(url)、TAG(a,b)。"""

from __future__ import annotations

import re

from l10n_hub.core.types import (
    NormalizedString,
    Placeholder,
    PlaceholderNote,
    PlaceholderType,
    StructuredNotes,
)

_ANNOTATION_PATTERN = re.compile(
    r"PH\((?P<ph_name>(?:[^()|]+|[^(|]*\([^()|]*\)[^()|]*))"
    r"\|(?P<ph_sample>[^)|]+)(?:\|(?P<ph_desc>[^)|]+))?\)"
    r"|MAXWIDTH\((?P<max_width>\d+)\)"
    r"|SCREENSHOT\((?P<screenshot>[^)]+)\)"
    r"|TAG\((?P<tags>[^)]+)\)"
)


def extract_structured_notes(notes: str) -> StructuredNotes:
    structured = StructuredNotes()

    def _collect(match: re.Match[str]) -> str:
        if match.group("max_width") is not None:
            structured.max_width = int(match.group("max_width"))
        elif match.group("ph_name") is not None:
            desc = match.group("ph_desc")
            structured.ph[match.group("ph_name").strip()] = PlaceholderNote(
                sample=match.group("ph_sample").strip(),
                desc=desc.strip() if desc else None,
            )
        elif match.group("screenshot") is not None:
            structured.screenshot = match.group("screenshot")
        elif match.group("tags") is not None:
            structured.tags = [tag.strip() for tag in match.group("tags").split(",")]
        return ""

    structured.desc = _ANNOTATION_PATTERN.sub(_collect, notes)
    return structured


def apply_placeholder_samples(
    nstr: NormalizedString, notes: StructuredNotes
) -> NormalizedString:
    """把注释中声明的占位符样例附加到尚无样例的独立占位符上。"""
    if not notes.ph:
        return nstr
    enriched: NormalizedString = []
    for part in nstr:
        if (
            isinstance(part, Placeholder)
            and part.t is PlaceholderType.STANDALONE
            and part.s is None
            and part.v in notes.ph
            and notes.ph[part.v].sample is not None
        ):
            part = part.model_copy(update={"s": notes.ph[part.v].sample})
        enriched.append(part)
    return enriched
