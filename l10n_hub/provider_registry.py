# l10n_hub/provider_registry.py
"""本模块负责动态发现和加载 `l10n_hub.providers` 包下所有可用的翻译提供者。"""

import importlib
import inspect
import pkgutil
from typing import Any

import structlog

from l10n_hub.config import L10nHubConfig
from l10n_hub.core.exceptions import ProviderNotFoundError
from l10n_hub.providers.base import BaseTranslationProvider

log = structlog.get_logger(__name__)
PROVIDER_REGISTRY: dict[str, type[BaseTranslationProvider[Any]]] = {}

_NON_PROVIDER_MODULES = {"base", "chunked", "llm"}


def provider_type_name(cls: type) -> str:
    """从类名推断提供者类型名，例如 `OpenAIProvider` -> `openai`。"""
    return cls.__name__.removesuffix("Provider").lower()


def discover_providers() -> None:
    """
    动态发现 `l10n_hub.providers` 包下的所有具体提供者并注册。

    此函数是幂等的，只在首次调用时执行发现操作。缺少可选依赖的模块会被跳过并记录。
    """
    if PROVIDER_REGISTRY:
        return

    import l10n_hub.providers

    successful: list[str] = []
    skipped: list[dict[str, str]] = []

    for module_info in pkgutil.iter_modules(l10n_hub.providers.__path__):
        module_name = module_info.name
        if module_name in _NON_PROVIDER_MODULES or module_name.startswith("_"):
            continue

        try:
            module = importlib.import_module(f"l10n_hub.providers.{module_name}")
        except ImportError as e:
            skipped.append({"provider_name": module_name, "missing_dependency": str(e.name)})
            continue

        for _, attr in inspect.getmembers(module, inspect.isclass):
            if (
                issubclass(attr, BaseTranslationProvider)
                and attr.__module__ == module.__name__
                and not inspect.isabstract(attr)
            ):
                name = provider_type_name(attr)
                PROVIDER_REGISTRY[name] = attr
                successful.append(name)

    log_payload: dict[str, Any] = {}
    if successful:
        log_payload["registered"] = sorted(successful)
    if skipped:
        log_payload["skipped"] = skipped
    log.info("提供者发现完成。", **log_payload)


def get_provider_class(type_name: str) -> type[BaseTranslationProvider[Any]]:
    discover_providers()
    try:
        return PROVIDER_REGISTRY[type_name]
    except KeyError:
        raise ProviderNotFoundError(
            f"未知的提供者类型 '{type_name}'，可用类型: {sorted(PROVIDER_REGISTRY)}"
        ) from None


def build_provider_pipeline(
    config: L10nHubConfig,
    collaborators: dict[str, dict[str, Any]] | None = None,
) -> list[BaseTranslationProvider[Any]]:
    """
    按 `config.provider_pipeline` 的顺序实例化提供者。

    每个提供者的配置取自 `config.provider_configs[provider_id]`，其中的 `type` 字段指定
    提供者类型（缺省时与 id 相同）；`collaborators[provider_id]` 中的对象作为关键字参数
    注入构造函数，例如遗留译文提供者的查询函数。
    """
    collaborators = collaborators or {}
    pipeline: list[BaseTranslationProvider[Any]] = []
    for provider_id in config.provider_pipeline:
        settings = dict(config.provider_configs.get(provider_id) or {})
        cls = get_provider_class(settings.pop("type", provider_id))
        settings.setdefault("id", provider_id)
        provider = cls.from_dict(settings, **collaborators.get(provider_id, {}))
        pipeline.append(provider)
        log.debug("提供者已创建", provider=provider_id, type=cls.__name__)
    return pipeline
