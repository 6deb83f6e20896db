# l10n_hub/_guid/encoder.py
from __future__ import annotations

import base64
import hashlib

from l10n_hub.core.types import NormalizedString
from l10n_hub._nstr.parts import flatten_ordinal

GUID_LENGTH = 43


def generate_guid(text: str) -> str:
    """对任意字符串计算 SHA-256，并以定长的 URL 安全 Base64 编码输出。"""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii")[:GUID_LENGTH]


def generate_tu_guid(rid: str, sid: str, nsrc: NormalizedString) -> str:
    """计算 TU 的内容地址。"""
    return generate_guid(f"{rid}|{sid}|{flatten_ordinal(nsrc)}")
