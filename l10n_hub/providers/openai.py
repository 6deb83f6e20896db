# l10n_hub/providers/openai.py
"""提供一个使用 OpenAI Chat Completions API 的 LLM 翻译提供者。"""

from typing import Any, Optional

import httpx
import structlog
from openai import AsyncOpenAI
from pydantic import Field, SecretStr

from l10n_hub.core.exceptions import ConfigurationError, ProviderError
from l10n_hub.providers.llm import (
    LLMProviderConfig,
    LLMTranslationProvider,
    parse_translations,
)

logger = structlog.get_logger(__name__)


class OpenAIProviderConfig(LLMProviderConfig):
    """OpenAI 提供者的配置模型。"""

    api_key: Optional[SecretStr] = None
    endpoint: str = "https://api.openai.com/v1"
    model: str = "gpt-4o-mini"
    timeout_total: float = Field(default=60.0, gt=0)
    timeout_connect: float = Field(default=5.0, gt=0)


class OpenAIProvider(LLMTranslationProvider[OpenAIProviderConfig]):
    CONFIG_MODEL = OpenAIProviderConfig

    def __init__(self, config: OpenAIProviderConfig):
        super().__init__(config)
        self.client: AsyncOpenAI | None = None

    async def lazy_init(self) -> None:
        if self.client is not None:
            return
        if self.config.api_key is None:
            raise ConfigurationError(f"OpenAI 提供者 '{self.id}' 配置错误: 缺少 API 密钥。")
        timeout = httpx.Timeout(self.config.timeout_total, connect=self.config.timeout_connect)
        # 重试由提供者自己的退避策略负责，SDK 内部不再重试
        self.client = AsyncOpenAI(
            api_key=self.config.api_key.get_secret_value(),
            base_url=self.config.endpoint,
            timeout=timeout,
            max_retries=0,
        )
        logger.info("OpenAI 客户端已创建", provider=self.id, model=self.config.model)

    async def close(self) -> None:
        if self.client is not None:
            await self.client.close()
            self.client = None

    async def generate_content(self, args: dict[str, Any]) -> list[dict[str, Any]]:
        """[实现] 发送一次 chat completion 请求并解析 JSON 数组格式的译文。"""
        assert self.client is not None
        user_prompt = self.build_user_prompt(
            args["sourceLang"], args["targetLang"], args["src"], args.get("instructions")
        )
        response = await self.client.chat.completions.create(
            model=self.config.model,
            temperature=self.config.temperature,
            messages=[
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        )
        if not response.choices:
            raise ProviderError("API 返回了空的 'choices' 列表。")
        content = response.choices[0].message.content
        if not content:
            raise ProviderError("API 返回了空内容。")
        return parse_translations(content.strip())
