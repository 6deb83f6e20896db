# tests/unit/providers/test_openai_provider.py
"""针对 OpenAI 提供者的单元测试。SDK 客户端被替换为 mock，不会发出网络请求。"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

pytest.importorskip("openai")

from l10n_hub.core.exceptions import ConfigurationError, ProviderError  # noqa: E402
from l10n_hub.providers.openai import OpenAIProvider  # noqa: E402

ARGS = {"sourceLang": "en", "targetLang": "de", "src": ["Hello <x1 />"], "instructions": None}


def _completion(content: str | None) -> SimpleNamespace:
    choices = [] if content is None else [SimpleNamespace(message=SimpleNamespace(content=content))]
    return SimpleNamespace(choices=choices)


def _provider_with_client(completion: SimpleNamespace) -> OpenAIProvider:
    provider = OpenAIProvider.from_dict(
        {"id": "openai", "quality": 70, "api_key": "sk-test", "default_instructions": "简洁"}
    )
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=completion)
    client.close = AsyncMock()
    provider.client = client
    return provider


@pytest.mark.asyncio
async def test_missing_api_key_is_a_configuration_error() -> None:
    provider = OpenAIProvider.from_dict({"id": "openai", "quality": 70})
    with pytest.raises(ConfigurationError):
        await provider.lazy_init()


@pytest.mark.asyncio
async def test_lazy_init_creates_client_once() -> None:
    provider = OpenAIProvider.from_dict({"id": "openai", "quality": 70, "api_key": "sk-test"})
    await provider.lazy_init()
    client = provider.client
    await provider.lazy_init()

    assert client is not None
    assert provider.client is client
    await provider.close()
    assert provider.client is None


@pytest.mark.asyncio
async def test_generate_content_sends_prompts_and_parses_reply() -> None:
    provider = _provider_with_client(_completion(' [{"translation": "Hallo <x1 />"}] '))

    translations = await provider.generate_content(ARGS)

    assert translations == [{"translation": "Hallo <x1 />"}]
    kwargs = provider.client.chat.completions.create.await_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    system, user = kwargs["messages"]
    assert system["role"] == "system" and "简洁" in system["content"]
    assert "Target language: de" in user["content"]


@pytest.mark.asyncio
@pytest.mark.parametrize("content", [None, ""])
async def test_empty_replies_raise_provider_error(content: str | None) -> None:
    provider = _provider_with_client(_completion(content))
    with pytest.raises(ProviderError):
        await provider.generate_content(ARGS)
