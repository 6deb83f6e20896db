# l10n_hub/providers/llm.py
"""
基于大语言模型的分块翻译提供者抽象基类。

每个分块被组织成一个 JSON 载荷发送给模型，模型以 JSON 数组返回同样数量、同样顺序的译文。
调用失败时按 `base_delay × attempt²` 的间隔重试，只有超时、限流、5xx 或状态码未知的错误才会重试。
"""

from __future__ import annotations

import asyncio
import json
from abc import abstractmethod
from typing import Any, Optional, TypeVar

import httpx
import structlog
from pydantic import Field

from l10n_hub.core.exceptions import ProviderError
from l10n_hub.providers.base import ProviderFamily
from l10n_hub.providers.chunked import ChunkedRemoteConfig, ChunkedRemoteTranslationProvider

logger = structlog.get_logger(__name__)

DEFAULT_PERSONA = (
    "You are a professional translator.\n"
    "- Each string may contain XML-like tags such as <x1/> or <x2>...</x2>. "
    "Preserve ALL tags exactly and translate only the text around them.\n"
    "- Return your answer as a JSON array with exactly one item per input segment, "
    'in the same order. Each item is an object: {"translation": string, '
    '"confidence": integer 0-100, "notes": string}.'
)


class LLMProviderConfig(ChunkedRemoteConfig):
    model: str
    temperature: float = Field(default=0.1, ge=0)
    persona: Optional[str] = None
    target_lang_instructions: dict[str, str] = Field(default_factory=dict)
    max_retries: Optional[int] = Field(default=None, ge=0, description="默认取全局重试策略")
    sleep_base_period: Optional[float] = Field(
        default=None, ge=0, description="重试等待的基数（秒），默认取全局重试策略"
    )


_LLMConfigType = TypeVar("_LLMConfigType", bound=LLMProviderConfig)


def error_status_code(error: BaseException) -> int | None:
    """从 SDK 或 HTTP 异常中读取状态码，未知时返回 None。"""
    status = getattr(error, "status_code", None)
    if status is None:
        status = getattr(getattr(error, "response", None), "status_code", None)
    return status if isinstance(status, int) else None


def is_retryable(error: BaseException) -> bool:
    """判断一次调用失败是否值得重试：超时、限流 (429)、5xx，或状态码未知。"""
    if isinstance(error, ProviderError) and error.retryable is not None:
        return error.retryable
    if isinstance(error, (asyncio.TimeoutError, httpx.TimeoutException)):
        return True
    status = error_status_code(error)
    if status is None:
        return True
    return status == 429 or status >= 500


def parse_translations(content: str) -> list[dict[str, Any]]:
    """
    解析模型返回的内容。既接受 JSON 数组，也接受带有 `translations` 数组的对象。

    Raises:
        ProviderError: 内容不是预期的 JSON 结构。
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ProviderError(f"模型返回的内容不是有效的 JSON: {e}") from e
    if isinstance(data, dict):
        data = data.get("translations")
    if not isinstance(data, list):
        raise ProviderError("模型返回的 JSON 中没有译文数组")
    return [item if isinstance(item, dict) else {"translation": item} for item in data]


class LLMTranslationProvider(ChunkedRemoteTranslationProvider[_LLMConfigType]):
    FAMILY = ProviderFamily.LLM

    @property
    def system_prompt(self) -> str:
        persona = self.config.persona or DEFAULT_PERSONA
        return f"{persona}\n{self.config.default_instructions or ''}\n"

    @property
    def max_retries(self) -> int:
        if self.config.max_retries is not None:
            return self.config.max_retries
        return self.p_context.ctx.config.retry_policy.max_attempts

    @property
    def sleep_base_period(self) -> float:
        if self.config.sleep_base_period is not None:
            return self.config.sleep_base_period
        return self.p_context.ctx.config.retry_policy.base_delay

    def build_user_prompt(
        self,
        source_lang: str,
        target_lang: str,
        xml_tus: list[str],
        instructions: str | None = None,
    ) -> str:
        lines: list[str] = []
        if target_lang in self.config.target_lang_instructions:
            lines.append(self.config.target_lang_instructions[target_lang])
        if instructions:
            lines.append(f"Consider also the following instructions: {instructions}")
        lines.append(f"Source language: {source_lang}")
        lines.append(f"Target language: {target_lang}")
        lines.append(f"Number of segments: {len(xml_tus)}")
        lines.append(f"Segments: {json.dumps(xml_tus, ensure_ascii=False)}")
        return "\n".join(lines)

    async def lazy_init(self) -> None:
        """[子类实现] 首次调用前的初始化，例如创建 SDK 客户端。"""

    @abstractmethod
    async def generate_content(self, args: dict[str, Any]) -> list[dict[str, Any]]:
        """[子类实现] 调用模型翻译一个分块，返回模型给出的译文对象列表。"""
        ...

    async def translate_chunk(self, args: dict[str, Any]) -> list[dict[str, Any]]:
        await self.lazy_init()
        attempt = 0
        while True:
            try:
                return await self.generate_content(args)
            except Exception as e:
                attempt += 1
                if attempt > self.max_retries or not is_retryable(e):
                    raise
                delay = self.sleep_base_period * attempt * attempt
                logger.warning(
                    "模型调用失败，稍后重试",
                    provider=self.id,
                    attempt=attempt,
                    max_retries=self.max_retries,
                    delay=delay,
                    error=str(e),
                )
                await asyncio.sleep(delay)

    def convert_translation_response(self, chunk: Any) -> list[dict[str, Any]]:
        converted = []
        for item in chunk or []:
            translation: dict[str, Any] = {"tgt": item.get("translation")}
            if item.get("cost") is not None:
                translation["cost"] = item["cost"]
            converted.append(translation)
        return converted
