"""
在打包产物（解包目录、`Payload/`、`.app`、`.xcarchive` 或 `.ipa`）中定位
所有嵌套应用包（bundle），读取各自的 `CFBundleIdentifier` 并统计重复。
"""

from __future__ import annotations

import os
import re
import zipfile
from collections import Counter
from collections.abc import Iterable
from typing import Any

from .errors import ScanError
from .plist_io import IDENTIFIER_KEY, bundle_identifier_of, load_plist, loads_plist
from .types import BundleRecord, CollisionReport, Duplicate, ScanWarning

BUNDLE_SUFFIXES = (".app", ".appex", ".framework", ".xpc", ".bundle")
# 这些类型缺少描述文件时需要提示；资源包 `.bundle` 允许没有 `Info.plist`。
_DESCRIPTOR_REQUIRED = (".app", ".appex", ".framework", ".xpc")
_DESCRIPTOR_CANDIDATES = ("Info.plist", os.path.join("Contents", "Info.plist"),
                          os.path.join("Resources", "Info.plist"))
_VARIABLE_RE = re.compile(r"\$[({]")


def _is_bundle(name: str) -> bool:
    return name.endswith(BUNDLE_SUFFIXES)


def find_bundles_under(root: str) -> list[str]:
    """收集根路径下的全部嵌套应用包；根路径本身是应用包时排在首位。"""
    out: list[str] = []
    if _is_bundle(os.path.basename(os.path.normpath(root))):
        out.append(root)
    for dirpath, dirs, _files in os.walk(root):
        for d in sorted(dirs):
            if _is_bundle(d):
                out.append(os.path.join(dirpath, d))
    out.sort(key=lambda p: (0 if p == root else 1, p.count(os.sep), p))
    return out


def find_descriptor(bundle_path: str) -> str:
    """返回应用包的 `Info.plist` 路径，找不到时返回空串。"""
    for rel in _DESCRIPTOR_CANDIDATES:
        p = os.path.join(bundle_path, rel)
        if os.path.isfile(p):
            return p
    return ""


def _record(
    rel_path: str,
    info: Any,
    descriptor: str,
    warnings: list[ScanWarning],
) -> BundleRecord:
    """根据已读取的 plist 生成记录，并在缺少或未展开标识时追加告警。"""
    identifier = bundle_identifier_of(info)
    if not isinstance(info, dict):
        warnings.append(ScanWarning(rel_path, "Info.plist is not a dictionary"))
    elif not identifier:
        warnings.append(ScanWarning(rel_path, f"missing {IDENTIFIER_KEY}"))
    elif _VARIABLE_RE.search(identifier):
        warnings.append(
            ScanWarning(rel_path, f"unresolved build variable in CFBundleIdentifier: {identifier}")
        )
    return BundleRecord(path=rel_path, identifier=identifier, descriptor=descriptor)


def scan_directory(root: str) -> tuple[list[BundleRecord], list[ScanWarning]]:
    """扫描目录形式的产物。"""
    if not os.path.isdir(root):
        raise ScanError(f"artifact not found: {root}")
    root = os.path.normpath(root)
    base = os.path.dirname(root) if _is_bundle(os.path.basename(root)) else root

    records: list[BundleRecord] = []
    warnings: list[ScanWarning] = []
    for bundle in find_bundles_under(root):
        rel = os.path.relpath(bundle, base).replace(os.sep, "/")
        descriptor = find_descriptor(bundle)
        if not descriptor:
            if bundle.endswith(_DESCRIPTOR_REQUIRED):
                warnings.append(ScanWarning(rel, "Info.plist not found"))
            continue
        rel_descriptor = os.path.relpath(descriptor, base).replace(os.sep, "/")
        try:
            info = load_plist(descriptor)
        except Exception as e:
            warnings.append(ScanWarning(rel, f"unreadable Info.plist: {e}"))
            continue
        records.append(_record(rel, info, rel_descriptor, warnings))
    return records, warnings


def _bundle_of_descriptor(name: str) -> str:
    """把压缩包内 `Info.plist` 条目映射到所属应用包路径，不属于应用包时返回空串。"""
    parent = name[: -len("/Info.plist")]
    leaf = parent.rsplit("/", 1)[-1]
    if leaf in ("Contents", "Resources") and "/" in parent:
        parent = parent.rsplit("/", 1)[0]
        leaf = parent.rsplit("/", 1)[-1]
    return parent if _is_bundle(leaf) else ""


def _bundles_in_names(names: Iterable[str]) -> set[str]:
    """从压缩包条目名推导出现过的全部应用包目录。"""
    out: set[str] = set()
    for name in names:
        parts = name.rstrip("/").split("/")
        # 文件条目的最后一段是文件名；目录条目的最后一段可能本身就是应用包。
        limit = len(parts) if name.endswith("/") else len(parts) - 1
        for i in range(limit):
            if _is_bundle(parts[i]):
                out.add("/".join(parts[: i + 1]))
    return out


def scan_archive(path: str) -> tuple[list[BundleRecord], list[ScanWarning]]:
    """不解压，直接从 `.ipa`/zip 中读取各应用包的描述文件。"""
    records: list[BundleRecord] = []
    warnings: list[ScanWarning] = []
    try:
        zf = zipfile.ZipFile(path, "r")
    except (OSError, zipfile.BadZipFile) as e:
        raise ScanError(f"cannot open artifact {path}: {e}") from e

    with zf:
        names = zf.namelist()
        seen: set[str] = set()
        for name in sorted(names, key=lambda n: (n.count("/"), n)):
            if not name.endswith("/Info.plist"):
                continue
            bundle = _bundle_of_descriptor(name)
            if not bundle or bundle in seen:
                continue
            seen.add(bundle)
            try:
                info = loads_plist(zf.read(name))
            except Exception as e:
                warnings.append(ScanWarning(bundle, f"unreadable Info.plist: {e}"))
                continue
            records.append(_record(bundle, info, name, warnings))

        for bundle in sorted(_bundles_in_names(names) - seen):
            if bundle.endswith(_DESCRIPTOR_REQUIRED):
                warnings.append(ScanWarning(bundle, "Info.plist not found"))
    records.sort(key=lambda r: (r.path.count("/"), r.path))
    return records, warnings


def build_report(
    records: Iterable[BundleRecord],
    warnings: Iterable[ScanWarning],
    *,
    artifact: str,
    main_identifier: str = "",
) -> CollisionReport:
    """统计标识出现次数并整理重复项；空标识不参与统计。"""
    records = list(records)
    counts = Counter(r.identifier for r in records if r.identifier)
    paths_by_id: dict[str, list[str]] = {}
    for r in records:
        if r.identifier:
            paths_by_id.setdefault(r.identifier, []).append(r.path)

    duplicates = [
        Duplicate(identifier=ident, paths=sorted(paths_by_id[ident]))
        for ident in sorted(counts)
        if counts[ident] > 1
    ]
    return CollisionReport(
        artifact=artifact,
        total_bundles=len(records),
        identifier_counts=dict(sorted(counts.items())),
        duplicates=duplicates,
        warnings=list(warnings),
        records=records,
        main_identifier=main_identifier,
    )


def scan_artifact(path: str, *, main_identifier: str = "") -> CollisionReport:
    """扫描打包产物并生成冲突报告；仅在根路径无法打开时抛出 `ScanError`。"""
    if os.path.isdir(path):
        records, warnings = scan_directory(path)
    elif os.path.isfile(path):
        if not zipfile.is_zipfile(path):
            raise ScanError(f"artifact is neither a directory nor a zip archive: {path}")
        records, warnings = scan_archive(path)
    else:
        raise ScanError(f"artifact not found: {path}")
    return build_report(records, warnings, artifact=path, main_identifier=main_identifier)
