"""
`Info.plist` 读取工具（自动识别 XML/Binary 格式）。
"""

from __future__ import annotations

import plistlib
from typing import Any

IDENTIFIER_KEY = "CFBundleIdentifier"


def load_plist(path: str) -> Any:
    """从磁盘读取 plist 并返回对象。"""
    with open(path, "rb") as f:
        return plistlib.load(f)


def loads_plist(data: bytes) -> Any:
    """从字节串读取 plist（用于压缩包内的条目）。"""
    return plistlib.loads(data)


def bundle_identifier_of(info: Any) -> str:
    """取出 `CFBundleIdentifier`；缺失或类型不符时返回空串。"""
    if not isinstance(info, dict):
        return ""
    v = info.get(IDENTIFIER_KEY)
    return v if isinstance(v, str) else ""
