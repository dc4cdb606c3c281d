"""
库层抛出的异常类型；CLI 统一转换为带 `Error:` 前缀的 `SystemExit`。
"""

from __future__ import annotations


class BundleGuardError(RuntimeError):
    """所有致命错误的基类。"""


class ParseError(BundleGuardError):
    """工程描述文件缺失、无法解码或结构不可识别。"""


class AssignmentError(BundleGuardError):
    """标识分配结果不满足唯一性。"""


class AssignmentExhausted(AssignmentError):
    """在尝试上限内找不到未占用的标识。"""

    def __init__(self, target: str, candidate: str, attempts: int) -> None:
        super().__init__(
            f"no free bundle identifier for target {target} "
            f"after {attempts} attempts (last candidate: {candidate})"
        )
        self.target = target
        self.candidate = candidate
        self.attempts = attempts


class WriteError(BundleGuardError):
    """描述文件在加载之后被改动，记录的位置已失效。"""


class ScanError(BundleGuardError):
    """打包产物根路径无法打开。"""
