# l10n_hub/utils.py
"""本模块包含项目范围内的通用工具函数。"""

import re
import secrets
import string
import time
from collections.abc import Iterator, Sequence
from typing import TypeVar

from langcodes import Language
from langcodes.tag_parser import LanguageTagError

# 语言子标签应该由 2-3 个字母组成 (BCP 47)
LANGUAGE_SUBTAG_PATTERN = re.compile(r"^[a-zA-Z]{2,3}$")

_T = TypeVar("_T")


def validate_lang_codes(lang_codes: list[str]) -> None:
    """使用 `langcodes` 库校验语言代码列表中的每个代码是否符合 BCP 47 规范。"""
    for code in lang_codes:
        try:
            lang = Language.get(code)
            if not lang.language or not LANGUAGE_SUBTAG_PATTERN.match(lang.language):
                raise LanguageTagError(
                    f"Tag '{code}' lacks a valid 2-3 letter language subtag."
                )
        except LanguageTagError as e:
            raise ValueError(f"提供的语言代码 '{code}' 格式无效。原因: {e}") from e


def current_millis() -> int:
    return int(time.time() * 1000)


def random_letters(length: int = 3) -> str:
    return "".join(secrets.choice(string.ascii_lowercase) for _ in range(length))


def batched(items: Sequence[_T], size: int) -> Iterator[Sequence[_T]]:
    """按固定大小切分序列，最后一批可能不足 `size` 个。"""
    if size <= 0:
        raise ValueError("批大小必须为正数")
    for start in range(0, len(items), size):
        yield items[start : start + size]
