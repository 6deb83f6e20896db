# l10n_hub/providers/debug.py
"""提供一个用于开发和测试的调试翻译提供者。"""

from typing import Literal, Optional

from pydantic import Field

from l10n_hub.core.exceptions import ProviderError
from l10n_hub.core.types import Job, NormalizedString, TranslationUnit
from l10n_hub.providers.base import (
    BaseTranslationProvider,
    ExecutionMode,
    ProviderConfig,
    ProviderFamily,
)


class DebugProviderConfig(ProviderConfig):
    """Debug 提供者的配置模型。"""

    quality: Optional[int] = Field(default=1, ge=0)
    mode: Literal["SUCCESS", "FAIL"] = "SUCCESS"
    fail_on_text: Optional[str] = Field(default=None)
    fail_is_retryable: bool = Field(default=True)
    translation_map: dict[str, str] = Field(default_factory=dict)


class DebugProvider(BaseTranslationProvider[DebugProviderConfig]):
    """一个同步的伪翻译提供者：文本片段被改写，占位符原样保留。"""

    CONFIG_MODEL = DebugProviderConfig
    FAMILY = ProviderFamily.DEBUG
    EXECUTION = ExecutionMode.SYNC

    def _translate_text(self, text: str, target_lang: str) -> str:
        if self.config.fail_on_text and text == self.config.fail_on_text:
            raise ProviderError(
                f"模拟失败：检测到配置的文本 '{text}'",
                retryable=self.config.fail_is_retryable,
            )
        return self.config.translation_map.get(text, f"Translated({text}) to {target_lang}")

    def _translate_parts(self, nsrc: NormalizedString, target_lang: str) -> NormalizedString:
        return [
            self._translate_text(part, target_lang) if isinstance(part, str) else part
            for part in nsrc
        ]

    async def translate_tus(self, job: Job) -> list[TranslationUnit]:
        """[实现] 逐个 TU 生成伪译文。"""
        if self.config.mode == "FAIL":
            raise ProviderError(
                "DebugProvider 处于 FAIL 模式。", retryable=self.config.fail_is_retryable
            )
        ts = self.now_ts()
        return [
            tu.model_copy(
                update={
                    "ntgt": self._translate_parts(tu.nsrc or [], job.target_lang),
                    "q": self.quality or 0,
                    "ts": ts,
                }
            )
            for tu in job.tus
        ]
