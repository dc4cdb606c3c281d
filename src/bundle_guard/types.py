"""
预构建分配与打包后扫描两个阶段共享的轻量类型定义。
"""

from __future__ import annotations

from dataclasses import dataclass, field

# 目标角色（`BuildTarget.role`）：
# - `main`：主应用，标识固定为配置的主标识。
# - `test`：测试包，标识固定为 `<main>.tests`。
# - `generic`：依赖/插件等其余目标。
ROLE_MAIN = "main"
ROLE_TEST = "test"
ROLE_GENERIC = "generic"

# 分配依据（`Assignment.rationale`）。
PROTECTED = "protected"
GENERATED_UNIQUE = "generated_unique"
UNCHANGED_EXTERNAL = "unchanged_external"


@dataclass(frozen=True)
class FieldLocation:
    """标识字段在工程描述文件中的文本位置，供原地改写时校验与替换。"""

    # `[start, end)` 为原值 token 的区间；字段缺失时 `start == end` 为插入点。
    start: int
    end: int
    # 区间内应当存在的原始文本（含引号）；插入时为空串。
    original: str
    # 紧随区间之后应当存在的文本，用于插入点的二次校验。
    guard: str = ""
    # 插入缺失字段时包在新值两侧的文本。
    prefix: str = ""
    suffix: str = ""

    @property
    def is_insert(self) -> bool:
        return self.start == self.end and not self.original


@dataclass(frozen=True)
class BuildTarget:
    """一个 (target, build configuration) 组合。"""

    name: str
    configuration: str = ""
    role: str = ""
    current_identifier: str | None = None
    location: FieldLocation | None = None
    target_id: str = ""

    @property
    def label(self) -> str:
        if self.configuration:
            return f"{self.name} [{self.configuration}]"
        return self.name


@dataclass(frozen=True)
class Assignment:
    """引擎对单个目标做出的标识决定。"""

    target: BuildTarget
    identifier: str
    rationale: str
    # 触发重新生成的冲突原因（`empty` / `main` / `suspicious` 等），保留时为空。
    reason: str = ""

    @property
    def changed(self) -> bool:
        return self.identifier != (self.target.current_identifier or "")


@dataclass(frozen=True)
class BundleRecord:
    """打包产物中一个嵌套 bundle 的标识记录。"""

    path: str
    identifier: str
    descriptor: str = ""


@dataclass(frozen=True)
class ScanWarning:
    """扫描过程中的非致命问题（描述文件不可读、缺少标识等）。"""

    path: str
    message: str


@dataclass(frozen=True)
class Duplicate:
    identifier: str
    paths: list[str]

    @property
    def count(self) -> int:
        return len(self.paths)


@dataclass(frozen=True)
class CollisionReport:
    """一次扫描的汇总结果。"""

    artifact: str
    total_bundles: int
    identifier_counts: dict[str, int]
    duplicates: list[Duplicate]
    warnings: list[ScanWarning] = field(default_factory=list)
    records: list[BundleRecord] = field(default_factory=list)
    main_identifier: str = ""

    @property
    def has_collisions(self) -> bool:
        return bool(self.duplicates)

    @property
    def main_identifier_occurrences(self) -> int:
        if not self.main_identifier:
            return 0
        return self.identifier_counts.get(self.main_identifier, 0)
