# l10n_hub/_guid/__init__.py
"""
内容寻址模块。

TU 的 GUID 是 (rid, sid, 序数化原文) 的纯函数：文本或占位符类型序列的变化会产生
新的 GUID（从而触发重新翻译），而占位符的命名变化不会。
"""
