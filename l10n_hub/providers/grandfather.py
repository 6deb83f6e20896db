# l10n_hub/providers/grandfather.py
"""
“遗留译文”提供者：复用资源中已经存在的译文。

遗留译文通过构造时注入的查询函数获取：`lookup(rid, target_lang)` 返回该资源现有译文的
`{sid: 归一化字符串}` 映射。只有与原文占位符兼容的译文才会被复用，质量固定为配置值。
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import structlog

from l10n_hub._nstr.compat import are_compatible
from l10n_hub._nstr.parts import make_part
from l10n_hub.core.types import Job, NormalizedString, TranslationUnit
from l10n_hub.providers.base import (
    BaseTranslationProvider,
    ExecutionMode,
    ProviderConfig,
    ProviderFamily,
)

logger = structlog.get_logger(__name__)

TranslationLookup = Callable[[str, str], Awaitable[Mapping[str, Any] | None]]


class GrandfatherProvider(BaseTranslationProvider[ProviderConfig]):
    CONFIG_MODEL = ProviderConfig
    FAMILY = ProviderFamily.GRANDFATHER
    EXECUTION = ExecutionMode.LEVERAGE
    REQUIRES_QUALITY = True

    def __init__(self, config: ProviderConfig, lookup: TranslationLookup | None = None):
        super().__init__(config)
        self._lookup = lookup

    async def _existing_translations(self, rid: str, target_lang: str) -> dict[str, NormalizedString]:
        assert self._lookup is not None
        existing = await self._lookup(rid, target_lang)
        return {
            sid: [make_part(part) for part in nstr] for sid, nstr in (existing or {}).items()
        }

    async def get_accepted_tus(self, job: Job) -> list[TranslationUnit]:
        if self._lookup is None:
            logger.debug("未配置遗留译文查询，跳过", provider=self.id)
            return []
        cache: dict[str, dict[str, NormalizedString]] = {}
        ts = self.now_ts()
        matched: list[TranslationUnit] = []
        for tu in job.tus:
            if tu.rid is None or tu.sid is None:
                continue
            if tu.rid not in cache:
                cache[tu.rid] = await self._existing_translations(tu.rid, job.target_lang)
            previous = cache[tu.rid].get(tu.sid)
            if previous is None:
                continue
            if not are_compatible(tu.nsrc, previous):
                logger.debug(
                    "遗留译文与原文不兼容，无法复用",
                    rid=tu.rid,
                    sid=tu.sid,
                    target_lang=job.target_lang,
                )
                continue
            matched.append(tu.model_copy(update={"ntgt": previous, "q": self.quality, "ts": ts}))
        return matched
