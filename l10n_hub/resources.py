# l10n_hub/resources.py
"""
资源桥接：在外部资源格式插件与归一化的 TU 之间转换。

资源格式插件只负责把原始资源拆分为段落、以及用译文重新生成资源；
归一化、GUID 计算、注释解析与 TM 查询都在这里完成。
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

import structlog

from l10n_hub._guid.encoder import generate_tu_guid
from l10n_hub._nstr.compat import remap_translation
from l10n_hub._nstr.decoders import TextEncoder, encode_parts
from l10n_hub._nstr.notes import apply_placeholder_samples, extract_structured_notes
from l10n_hub._nstr.parts import Decoder, get_normalized_string
from l10n_hub.core.exceptions import ConfigurationError, IncompatibleTranslationError
from l10n_hub.core.interfaces import ResourceFilter
from l10n_hub.core.types import NormalizedString, Segment, TranslationUnit
from l10n_hub.tm import TM
from l10n_hub.tu import from_segment

logger = structlog.get_logger(__name__)


def translate_with_tm_entry(
    nsrc: NormalizedString, entry: TranslationUnit | None
) -> NormalizedString:
    """
    用 TM 条目的译文翻译原文，译文中的占位符被替换为原文自己的占位符。

    Raises:
        IncompatibleTranslationError: 条目缺失、仍在途，或与原文占位符不兼容。
    """
    if entry is None or entry.inflight or entry.ntgt is None:
        raise IncompatibleTranslationError("TM 条目缺失或仍在途")
    ntgt = remap_translation(nsrc, entry.ntgt)
    if ntgt is None:
        raise IncompatibleTranslationError(f"译文与原文的占位符不兼容: guid={entry.guid}")
    return ntgt


class ResourceHandler:
    """
    包装一个资源格式插件。

    Args:
        resource_filter: 满足 `ResourceFilter` 协议的资源格式插件。
        decoders_by_mf: 消息格式 (mf) -> 解码器列表。段落未声明 mf 时使用 `default_mf`。
        default_mf: 默认的消息格式；为 None 且段落未声明 mf 时，原文不做任何解码。
        text_encoders: 生成译文资源时依次应用于文本片段的编码器。
    """

    def __init__(
        self,
        resource_filter: ResourceFilter,
        decoders_by_mf: Mapping[str, Sequence[Decoder]] | None = None,
        default_mf: str | None = None,
        text_encoders: Iterable[TextEncoder] = (),
    ):
        self._filter = resource_filter
        self._decoders_by_mf = dict(decoders_by_mf or {})
        self._default_mf = default_mf
        self._text_encoders = list(text_encoders)

    def _decoders(self, mf: str | None) -> Sequence[Decoder]:
        mf = mf or self._default_mf
        if mf is None:
            return ()
        try:
            return self._decoders_by_mf[mf]
        except KeyError:
            raise ConfigurationError(f"未知的消息格式 '{mf}'") from None

    def normalize(
        self, segment: Segment, flags: dict[str, bool] | None = None
    ) -> NormalizedString:
        return get_normalized_string(segment.text, self._decoders(segment.mf), flags)

    async def _parse(
        self,
        rid: str,
        resource: str,
        prj: str | None,
        source_plural_forms: list[str] | None,
        target_plural_forms: list[str] | None,
    ) -> list[tuple[Segment, TranslationUnit]]:
        parsed = await self._filter.parse_resource(
            resource=resource,
            is_source=True,
            source_plural_forms=source_plural_forms,
            target_plural_forms=target_plural_forms,
        )
        if parsed.get("subresources"):
            logger.warning("资源包含子资源，子资源不会被归一化", rid=rid)

        normalized: list[tuple[Segment, TranslationUnit]] = []
        for raw in parsed.get("segments") or []:
            segment = Segment.model_validate(raw)
            nsrc = self.normalize(segment)
            notes: Any = None
            if segment.notes:
                notes = extract_structured_notes(segment.notes)
                nsrc = apply_placeholder_samples(nsrc, notes)
            tu = from_segment(
                rid,
                {
                    "sid": segment.sid,
                    "nstr": nsrc,
                    "notes": notes,
                    "pluralForm": segment.plural_form,
                },
                prj,
            )
            normalized.append((segment, tu))
        return normalized

    async def get_normalized_resource(
        self,
        rid: str,
        resource: str,
        *,
        prj: str | None = None,
        source_plural_forms: list[str] | None = None,
        target_plural_forms: list[str] | None = None,
    ) -> list[TranslationUnit]:
        """把原始资源解析为源 TU 列表，顺序与插件返回的段落顺序一致。"""
        normalized = await self._parse(
            rid, resource, prj, source_plural_forms, target_plural_forms
        )
        logger.debug("资源已归一化", rid=rid, segments=len(normalized))
        return [tu for _, tu in normalized]

    async def translate_resource(
        self,
        rid: str,
        resource: str,
        tm: TM,
        *,
        prj: str | None = None,
        source_plural_forms: list[str] | None = None,
        target_plural_forms: list[str] | None = None,
    ) -> str | None:
        """
        用 TM 中的译文生成目标语言的资源。

        插件对每个段落调用 translator(sid, 原始字符串)：原文已过期、TM 中没有可用译文、
        或译文与原文不兼容时返回 None，由插件决定如何处理缺失的段落。
        """
        normalized = await self._parse(
            rid, resource, prj, source_plural_forms, target_plural_forms
        )
        by_sid = {segment.sid: (segment, tu) for segment, tu in normalized}
        base_flags = {"sourceLang": tm.source_lang, "targetLang": tm.target_lang, "prj": prj}
        log = logger.bind(rid=rid, target_lang=tm.target_lang)

        async def translator(sid: str, text: str) -> str | None:
            found = by_sid.get(sid)
            if found is None:
                log.debug("段落不在归一化原文中，已跳过", sid=sid)
                return None
            segment, source_tu = found
            decoder_flags: dict[str, bool] = {}
            nsrc = self.normalize(segment.model_copy(update={"text": text}), decoder_flags)
            if generate_tu_guid(rid, sid, nsrc) != source_tu.guid:
                log.debug("归一化原文已过期", sid=sid)
                return None
            entry = await tm.get_entry_by_guid(source_tu.guid)
            if entry is None:
                return None
            try:
                ntgt = translate_with_tm_entry(source_tu.nsrc or [], entry)
            except IncompatibleTranslationError as e:
                log.warning("无法使用 TM 译文翻译段落", sid=sid, guid=source_tu.guid, error=str(e))
                return None
            return encode_parts(ntgt, self._text_encoders, {**base_flags, **decoder_flags})

        return await self._filter.translate_resource(
            resource=resource,
            translator=translator,
            source_plural_forms=source_plural_forms,
            target_plural_forms=target_plural_forms,
        )
