"""
从 Xcode 工程描述文件加载构建目标模型。

沿 `rootObject -> PBXProject.targets -> buildConfigurationList ->
XCBuildConfiguration.buildSettings` 逐层解析，为每个 (target, configuration)
组合产出一条 `BuildTarget`，并记录 `PRODUCT_BUNDLE_IDENTIFIER` 的文本位置。
"""

from __future__ import annotations

import os
from typing import Any

from .errors import ParseError
from .pbxproj import PbxDict, PbxString, parse_pbxproj
from .types import BuildTarget, FieldLocation

BUNDLE_ID_KEY = "PRODUCT_BUNDLE_IDENTIFIER"
TARGET_ISAS = ("PBXNativeTarget", "PBXAggregateTarget", "PBXLegacyTarget")
DEFAULT_PROJECT = os.path.join("ios", "Runner.xcodeproj", "project.pbxproj")


def resolve_project_file(path: str) -> str:
    """支持直接传 `.xcodeproj` 目录，返回其中的 `project.pbxproj`。"""
    if os.path.isdir(path):
        return os.path.join(path, "project.pbxproj")
    return path


def read_project_text(path: str) -> str:
    """读取描述文件文本；关闭换行转换，保证偏移与磁盘内容一致。"""
    with open(path, encoding="utf-8", newline="") as f:
        return f.read()


def _insertion_point(text: str, settings: PbxDict) -> FieldLocation:
    """字段缺失时，在 `buildSettings` 的右花括号之前插入一行。"""
    close = settings.end
    line_start = text.rfind("\n", 0, close) + 1
    lead = text[line_start:close]
    if line_start > settings.start and not lead.strip():
        return FieldLocation(
            start=line_start,
            end=line_start,
            original="",
            guard=text[line_start:close + 1],
            prefix=f"{lead}\t{BUNDLE_ID_KEY} = ",
            suffix=";\n",
        )
    return FieldLocation(
        start=close,
        end=close,
        original="",
        guard="}",
        prefix=f"{BUNDLE_ID_KEY} = ",
        suffix="; ",
    )


def _object(objects: dict[str, Any], ref: Any, what: str) -> dict[str, Any]:
    obj = objects.get(str(ref)) if ref is not None else None
    if not isinstance(obj, dict):
        raise ParseError(f"{what} not found (ref: {ref})")
    return obj


def targets_from_project(root: Any, text: str) -> list[BuildTarget]:
    """从已解析的工程结构中提取构建目标列表。"""
    if not isinstance(root, dict):
        raise ParseError("project root is not a dictionary")
    objects = root.get("objects")
    if not isinstance(objects, dict):
        raise ParseError("missing 'objects' section")
    if "rootObject" not in root:
        raise ParseError("missing 'rootObject'")
    project = _object(objects, root.get("rootObject"), "root project object")
    if project.get("isa") != "PBXProject":
        raise ParseError(f"root object is not a PBXProject (isa: {project.get('isa')})")

    target_refs = project.get("targets", [])
    if not isinstance(target_refs, list):
        raise ParseError("PBXProject 'targets' is not a list")

    out: list[BuildTarget] = []
    for ref in target_refs:
        target = _object(objects, ref, "target")
        if target.get("isa") not in TARGET_ISAS:
            continue
        name = str(target.get("name") or target.get("productName") or ref)

        cfg_list = _object(
            objects,
            target.get("buildConfigurationList"),
            f"build configuration list of target {name}",
        )
        cfg_refs = cfg_list.get("buildConfigurations", [])
        if not isinstance(cfg_refs, list):
            raise ParseError(f"target {name}: 'buildConfigurations' is not a list")

        for cfg_ref in cfg_refs:
            cfg = _object(objects, cfg_ref, f"build configuration of target {name}")
            cfg_name = str(cfg.get("name", ""))
            label = f"{name} [{cfg_name}]" if cfg_name else name
            settings = cfg.get("buildSettings")
            if not isinstance(settings, PbxDict):
                raise ParseError(f"target {label}: missing buildSettings")

            value = settings.get(BUNDLE_ID_KEY)
            if isinstance(value, PbxString):
                current: str | None = str(value)
                location = FieldLocation(start=value.start, end=value.end, original=value.raw)
            elif value is None:
                current = None
                location = _insertion_point(text, settings)
            else:
                raise ParseError(f"target {label}: {BUNDLE_ID_KEY} is not a string")

            out.append(
                BuildTarget(
                    name=name,
                    configuration=cfg_name,
                    current_identifier=current,
                    location=location,
                    target_id=str(ref),
                )
            )
    return out


def load_targets(path: str) -> list[BuildTarget]:
    """读取并解析工程描述文件，返回按工程顺序排列的构建目标。"""
    project_file = resolve_project_file(path)
    if not os.path.isfile(project_file):
        raise ParseError(f"project file not found: {project_file}")
    try:
        text = read_project_text(project_file)
    except (OSError, UnicodeDecodeError) as e:
        raise ParseError(f"cannot read project file {project_file}: {e}") from e
    try:
        root = parse_pbxproj(text)
        return targets_from_project(root, text)
    except ParseError as e:
        raise ParseError(f"{project_file}: {e}") from e
