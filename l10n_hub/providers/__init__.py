# l10n_hub/providers/__init__.py
"""翻译提供者插件。具体实现由 `l10n_hub.provider_registry.discover_providers` 动态发现。"""
