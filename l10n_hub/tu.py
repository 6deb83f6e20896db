# l10n_hub/tu.py
"""
翻译单元 (TU) 的构造函数。

这里是持久化数据的解析边界：每种构造方式都有自己的字段白名单，白名单之外的字段
被静默丢弃；缺少必填字段则立即抛出 `TUValidationError`。
"""

from __future__ import annotations

from collections import defaultdict, deque
from typing import Any, Union

from pydantic import ValidationError

from l10n_hub._guid.encoder import generate_tu_guid
from l10n_hub._nstr.linear import flatten_linear
from l10n_hub._nstr.parts import make_part
from l10n_hub.core.exceptions import TUValidationError
from l10n_hub.core.types import NormalizedString, Placeholder, TranslationUnit

SOURCE_FIELDS = frozenset(
    {"guid", "nid", "seq", "rid", "sid", "nsrc", "prj", "isSuffixPluralized", "notes"}
)
TARGET_FIELDS = frozenset(
    {
        "guid",
        "inflight",
        "q",
        "ntgt",
        "cost",
        "jobGuid",
        "translationProvider",
        "ts",
        "th",
        "rev",
    }
)
PAIR_FIELDS = SOURCE_FIELDS | TARGET_FIELDS

_ALIASES = {
    name: field.alias or name for name, field in TranslationUnit.model_fields.items()
}

TULike = Union[TranslationUnit, dict[str, Any]]


def _wire_dict(obj: TULike) -> dict[str, Any]:
    """把 TU 或字典统一为 camelCase 键的字典。"""
    if isinstance(obj, TranslationUnit):
        return obj.model_dump(by_alias=True, exclude_none=True)
    return {_ALIASES.get(key, key): value for key, value in obj.items() if value is not None}


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _require_source(fields: dict[str, Any]) -> None:
    missing = [
        name for name in ("guid", "rid", "sid") if not isinstance(fields.get(name), str)
    ]
    if not isinstance(fields.get("nsrc"), list):
        missing.append("nsrc")
    if missing:
        raise TUValidationError(f"源 TU 缺少必填字段 {missing}: guid={fields.get('guid')}")


def _require_target(fields: dict[str, Any]) -> None:
    missing = []
    if not isinstance(fields.get("guid"), str):
        missing.append("guid")
    if not _is_int(fields.get("q")):
        missing.append("q")
    if not isinstance(fields.get("ntgt"), list) and not fields.get("inflight"):
        missing.append("ntgt|inflight")
    if not _is_int(fields.get("ts")):
        missing.append("ts")
    if missing:
        raise TUValidationError(f"目标 TU 缺少必填字段 {missing}: guid={fields.get('guid')}")


def _build(fields: dict[str, Any], whitelist: frozenset[str]) -> TranslationUnit:
    filtered = {key: value for key, value in fields.items() if key in whitelist}
    try:
        return TranslationUnit.model_validate(filtered)
    except ValidationError as e:
        raise TUValidationError(f"TU 字段格式无效: {e}") from e


def as_source(obj: TULike) -> TranslationUnit:
    fields = _wire_dict(obj)
    _require_source(fields)
    return _build(fields, SOURCE_FIELDS)


def as_target(obj: TULike) -> TranslationUnit:
    fields = _wire_dict(obj)
    _require_target(fields)
    return _build(fields, TARGET_FIELDS)


def as_pair(obj: TULike) -> TranslationUnit:
    fields = _wire_dict(obj)
    _require_source(fields)
    _require_target(fields)
    return _build(fields, PAIR_FIELDS)


def from_segment(
    rid: str, segment: dict[str, Any], prj: str | None = None
) -> TranslationUnit:
    """
    从已归一化的段落创建源 TU。

    `segment` 需包含 `sid` 与 `nstr`，可选 `notes`、`pluralForm`、`isSuffixPluralized`、`guid`。
    """
    nsrc = [make_part(part) for part in segment["nstr"]]
    fields: dict[str, Any] = {
        "guid": segment.get("guid") or generate_tu_guid(rid, segment["sid"], nsrc),
        "rid": rid,
        "sid": segment["sid"],
        "nsrc": nsrc,
        "prj": prj,
        "notes": segment.get("notes"),
        "isSuffixPluralized": segment.get("isSuffixPluralized"),
    }
    tu = as_source({key: value for key, value in fields.items() if value is not None})
    if segment.get("pluralForm"):
        tu = tu.model_copy(update={"plural_form": segment["pluralForm"]})
    return tu


def from_request_response(
    request_tu: TULike,
    response_tu: TULike,
    *,
    job_guid: str | None = None,
    translation_provider: str | None = None,
) -> TranslationUnit:
    """合并请求与响应中的同一 TU；响应字段覆盖请求字段。"""
    merged = {**_wire_dict(request_tu), **_wire_dict(response_tu)}
    if job_guid is not None:
        merged["jobGuid"] = job_guid
    if translation_provider is not None:
        merged["translationProvider"] = translation_provider
    return as_pair(merged)


def cleanup_tu(obj: dict[str, Any]) -> dict[str, Any]:
    """
    升级旧格式的 TU：把 `src`/`tgt` 字符串转换为 `nsrc`/`ntgt`，
    并按值的先后顺序 (FIFO) 为缺少 `v1` 的目标占位符回填原文的签名。
    """
    fields = dict(obj)
    if "src" in fields:
        src = fields.pop("src")
        fields.setdefault("nsrc", [src] if src else [])
    if "tgt" in fields:
        tgt = fields.pop("tgt")
        fields.setdefault("ntgt", [tgt] if tgt else [])

    nsrc = fields.get("nsrc")
    ntgt = fields.get("ntgt")
    if isinstance(nsrc, list) and isinstance(ntgt, list):
        _, ph_map = flatten_linear([make_part(part) for part in nsrc])
        signatures: dict[str, deque[str]] = defaultdict(deque)
        for mangled, placeholder in ph_map.items():
            signatures[placeholder.v].append(mangled)
        fields["ntgt"] = [_backfill_v1(make_part(part), signatures) for part in ntgt]
    return fields


def _backfill_v1(part: Any, signatures: dict[str, deque[str]]) -> Any:
    if isinstance(part, Placeholder) and part.v1 is None and signatures.get(part.v):
        return part.model_copy(update={"v1": signatures[part.v].popleft()})
    return part


def word_count(nsrc: NormalizedString) -> int:
    return sum(len(part.split()) for part in nsrc if isinstance(part, str))


def char_count(nsrc: NormalizedString) -> int:
    return sum(len(part) for part in nsrc if isinstance(part, str))
