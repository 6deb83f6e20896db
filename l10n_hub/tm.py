# l10n_hub/tm.py
"""单个语言对的翻译记忆库视图。"""

from __future__ import annotations

from typing import Any

from cachetools import LRUCache

from l10n_hub._nstr.compat import are_compatible
from l10n_hub._nstr.parts import flatten_ordinal
from l10n_hub.core.interfaces import TmHandler
from l10n_hub.core.types import NormalizedString, TranslationUnit


class TM:
    """
    按 (sourceLang, targetLang) 划分的 TM。

    主查询为 guid -> 排名最高的条目（质量降序、时间降序）；次查询为按序数化原文的
    精确匹配，跨越所有 sid，并按占位符兼容性过滤。
    """

    def __init__(
        self,
        source_lang: str,
        target_lang: str,
        handler: TmHandler,
        cache_size: int = 1024,
    ):
        self.source_lang = source_lang
        self.target_lang = target_lang
        self._handler = handler
        self._exact_matches: LRUCache[str, list[TranslationUnit]] = LRUCache(maxsize=cache_size)

    async def get_entry_by_guid(self, guid: str) -> TranslationUnit | None:
        return await self._handler.get_best_entry(self.source_lang, self.target_lang, guid)

    async def get_entries_by_guids(self, guids: list[str]) -> dict[str, TranslationUnit]:
        return await self._handler.get_entries_by_guids(
            self.source_lang, self.target_lang, guids
        )

    async def get_exact_matches(self, nsrc: NormalizedString) -> list[TranslationUnit]:
        """返回原文完全相同（任意 sid）且译文与 `nsrc` 兼容的全部条目。"""
        flat_src = flatten_ordinal(nsrc)
        candidates = self._exact_matches.get(flat_src)
        if candidates is None:
            candidates = await self._handler.get_entries_by_flat_src(
                self.source_lang, self.target_lang, flat_src
            )
            self._exact_matches[flat_src] = candidates
        return [entry for entry in candidates if are_compatible(nsrc, entry.ntgt)]

    async def get_entries_by_job_guid(self, job_guid: str) -> list[TranslationUnit]:
        return await self._handler.get_entries_by_job(job_guid)

    async def get_stats(self) -> list[dict[str, Any]]:
        """按提供者统计本语言对的条目数与在途数。"""
        return [
            row
            for row in await self._handler.get_tm_stats()
            if (row["source_lang"], row["target_lang"]) == (self.source_lang, self.target_lang)
        ]

    def invalidate(self) -> None:
        """作业写入后清空精确匹配缓存。"""
        self._exact_matches.clear()
