# l10n_hub/cli/__init__.py
"""l10n-hub 命令行工具。"""
