"""
bundle 标识分配引擎。

按加载顺序处理每个构建目标：
1) 主应用目标固定使用配置的主标识；
2) 测试目标固定使用 `<main>.tests`（或显式覆盖值）；
3) 其余目标若当前标识存在冲突风险（为空、等于主/测试标识、命中可疑模式、
   已被其他目标占用），生成 `<main>.<namespace>.<sanitized-name>`，
   仍被占用时依次追加 `.1`、`.2`……；否则保留原值并登记占用。

可保留的现有标识在生成任何新标识之前统一登记。
"""

from __future__ import annotations

import re
import time
from collections.abc import Sequence
from dataclasses import dataclass, replace
from fnmatch import fnmatchcase

from .errors import AssignmentError, AssignmentExhausted
from .registry import MAIN_OWNER, TEST_OWNER, IdentifierRegistry
from .types import (
    GENERATED_UNIQUE,
    PROTECTED,
    ROLE_GENERIC,
    ROLE_MAIN,
    ROLE_TEST,
    UNCHANGED_EXTERNAL,
    Assignment,
    BuildTarget,
)

MAX_ATTEMPTS = 100
DEFAULT_NAMESPACE = "universal"
DEFAULT_MAIN_TARGET = "Runner"
DEFAULT_TEST_MARKER = "Tests"
# 模板默认值与 CocoaPods 默认值。
DEFAULT_DENYLIST = (
    "com.example",
    "com.example.*",
    "org.cocoapods.${PRODUCT_NAME:rfc1034identifier}",
)
FALLBACK_NAME = "framework"
DIGIT_PREFIX = "pod"

_BUNDLE_ID_RE = re.compile(r"^[A-Za-z0-9_-]+(\.[A-Za-z0-9_-]+)*$")


def validate_bundle_identifier(value: str, *, what: str = "bundle identifier") -> str:
    """校验点分标识格式，非法时抛出 `ValueError`。"""
    if not _BUNDLE_ID_RE.match(value):
        raise ValueError(f"invalid {what}: {value!r}")
    return value


@dataclass(frozen=True)
class AssignConfig:
    """分配引擎的配置项。"""

    main_identifier: str
    test_identifier: str = ""
    namespace: str = DEFAULT_NAMESPACE
    main_target: str = DEFAULT_MAIN_TARGET
    test_marker: str = DEFAULT_TEST_MARKER
    denylist: tuple[str, ...] = DEFAULT_DENYLIST
    # 非空时附加在生成标识末尾，换取跨运行的绝对唯一（牺牲幂等性）。
    salt: str = ""
    max_attempts: int = MAX_ATTEMPTS

    def __post_init__(self) -> None:
        validate_bundle_identifier(self.main_identifier, what="main bundle identifier")
        if self.test_identifier:
            validate_bundle_identifier(self.test_identifier, what="test bundle identifier")
        validate_bundle_identifier(self.namespace, what="namespace")
        if self.salt:
            validate_bundle_identifier(self.salt, what="salt")

    @property
    def resolved_test_identifier(self) -> str:
        return self.test_identifier or f"{self.main_identifier}.tests"


def timestamp_salt(now: float | None = None) -> str:
    """生成 `<秒级时间戳后 8 位>.<微秒 6 位>` 形式的盐值。"""
    t = time.time() if now is None else now
    seconds = int(t)
    micros = int(round((t - seconds) * 1_000_000)) % 1_000_000
    return f"{seconds % 100_000_000:08d}.{micros:06d}"


def sanitize_name(name: str) -> str:
    """目标名转为标识片段：小写、仅保留 `[a-z0-9]`，首字符非字母时替换为 `pod`。"""
    safe = re.sub(r"[^a-z0-9]", "", name.lower())
    safe = re.sub(r"^[^a-z]", DIGIT_PREFIX, safe)
    return safe or FALLBACK_NAME


def classify_role(name: str, config: AssignConfig) -> tuple[str, bool]:
    """按 main、test、generic 的优先顺序判定角色，并返回是否同时命中多个模式。"""
    is_main = fnmatchcase(name, config.main_target)
    is_test = bool(config.test_marker) and config.test_marker in name
    if is_main:
        return ROLE_MAIN, is_test
    if is_test:
        return ROLE_TEST, False
    return ROLE_GENERIC, False


def is_suspicious(identifier: str, denylist: Sequence[str]) -> bool:
    return any(fnmatchcase(identifier, pattern) for pattern in denylist)


def _collision_reason(
    current: str | None,
    owner: str,
    config: AssignConfig,
    registry: IdentifierRegistry,
) -> str:
    """返回冲突原因；无冲突风险时返回空串。"""
    if not current:
        return "empty"
    if current == config.main_identifier:
        return "main"
    if current == config.resolved_test_identifier:
        return "test"
    if is_suspicious(current, config.denylist):
        return "suspicious"
    claimed_by = registry.owner_of(current)
    if claimed_by is not None and claimed_by != owner:
        return f"claimed by {claimed_by}"
    return ""


def _generate(
    target: BuildTarget,
    config: AssignConfig,
    registry: IdentifierRegistry,
) -> str:
    base = f"{config.main_identifier}.{config.namespace}.{sanitize_name(target.name)}"
    if config.salt:
        base = f"{base}.{config.salt}"

    candidate = base
    attempt = 0
    while registry.is_claimed(candidate) and registry.owner_of(candidate) != target.name:
        attempt += 1
        if attempt > config.max_attempts:
            raise AssignmentExhausted(target.label, candidate, config.max_attempts)
        candidate = f"{base}.{attempt}"
    registry.claim(candidate, target.name)
    return candidate


def _owner_for(assignment: Assignment) -> str:
    if assignment.target.role == ROLE_MAIN:
        return MAIN_OWNER
    if assignment.target.role == ROLE_TEST:
        return TEST_OWNER
    return assignment.target.name


def verify_unique(assignments: Sequence[Assignment]) -> None:
    """校验不同目标之间没有共享标识；同一目标的多个配置允许相同。"""
    owners: dict[str, str] = {}
    for a in assignments:
        owner = _owner_for(a)
        seen = owners.setdefault(a.identifier, owner)
        if seen != owner:
            raise AssignmentError(
                f"duplicate bundle identifier {a.identifier} assigned to "
                f"{a.target.label} and {seen}"
            )


def assign_identifiers(
    targets: Sequence[BuildTarget],
    config: AssignConfig,
    *,
    registry: IdentifierRegistry | None = None,
    warnings: list[str] | None = None,
) -> list[Assignment]:
    """为全部目标计算无冲突的标识分配。"""
    main_id = config.main_identifier
    test_id = config.resolved_test_identifier
    if registry is None:
        registry = IdentifierRegistry(main_id, test_id)
    else:
        registry.claim(main_id, MAIN_OWNER)
        registry.claim(test_id, TEST_OWNER)

    def _warn(message: str) -> None:
        if warnings is not None and message not in warnings:
            warnings.append(message)

    # 先登记所有无冲突风险的现有标识，生成的候选值不得占用后续目标的合法标识。
    for raw in targets:
        if classify_role(raw.name, config)[0] != ROLE_GENERIC:
            continue
        if not _collision_reason(raw.current_identifier, raw.name, config, registry):
            registry.claim(raw.current_identifier or "", raw.name)

    decided: list[Assignment] = []
    roles_seen: set[str] = set()
    protected_owners: dict[str, str] = {}

    for raw in targets:
        role, ambiguous = classify_role(raw.name, config)
        target = replace(raw, role=role)
        if ambiguous:
            _warn(f"target {target.name} matches both main and test patterns; treated as main")

        if role in (ROLE_MAIN, ROLE_TEST):
            roles_seen.add(role)
            first = protected_owners.setdefault(role, target.name)
            if first != target.name:
                _warn(f"targets {first} and {target.name} both have the {role} role")
            identifier = main_id if role == ROLE_MAIN else test_id
            decided.append(Assignment(target=target, identifier=identifier, rationale=PROTECTED))
            continue

        reason = _collision_reason(target.current_identifier, target.name, config, registry)
        if not reason:
            current = target.current_identifier or ""
            registry.claim(current, target.name)
            decided.append(
                Assignment(target=target, identifier=current, rationale=UNCHANGED_EXTERNAL)
            )
            continue

        identifier = _generate(target, config, registry)
        decided.append(
            Assignment(
                target=target,
                identifier=identifier,
                rationale=GENERATED_UNIQUE,
                reason=reason,
            )
        )

    reserved: list[Assignment] = []
    if ROLE_MAIN not in roles_seen:
        reserved.append(
            Assignment(
                target=BuildTarget(name=config.main_target, role=ROLE_MAIN),
                identifier=main_id,
                rationale=PROTECTED,
            )
        )
    if ROLE_TEST not in roles_seen:
        reserved.append(
            Assignment(
                target=BuildTarget(name=f"{config.main_target}{config.test_marker}", role=ROLE_TEST),
                identifier=test_id,
                rationale=PROTECTED,
            )
        )

    result = reserved + decided
    verify_unique(result)
    return result
