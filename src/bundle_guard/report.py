"""
扫描结果与分配决定的格式化输出。

文本格式每行以固定关键字开头（`SUMMARY` / `DUPLICATE` / `WARNING` /
`RESULT` / `ASSIGN`），便于在 CI 日志中 grep。
"""

from __future__ import annotations

import json
import os
from collections.abc import Sequence
from typing import Any

from .types import Assignment, CollisionReport

FORMATS = ("text", "json")


def report_to_dict(report: CollisionReport) -> dict[str, Any]:
    """把报告转换为可 JSON 序列化的字典。"""
    return {
        "artifact": report.artifact,
        "status": "fail" if report.has_collisions else "ok",
        "total_bundles": report.total_bundles,
        "unique_identifiers": len(report.identifier_counts),
        "identifier_counts": dict(report.identifier_counts),
        "duplicates": [
            {"identifier": d.identifier, "count": d.count, "paths": list(d.paths)}
            for d in report.duplicates
        ],
        "warnings": [{"path": w.path, "message": w.message} for w in report.warnings],
        "main_identifier": report.main_identifier or None,
        "main_identifier_occurrences": (
            report.main_identifier_occurrences if report.main_identifier else None
        ),
    }


def _format_text(report: CollisionReport) -> str:
    status = "FAIL" if report.has_collisions else "OK"
    lines = [
        f"SUMMARY artifact={report.artifact} total_bundles={report.total_bundles} "
        f"unique_identifiers={len(report.identifier_counts)} "
        f"duplicates={len(report.duplicates)} warnings={len(report.warnings)} status={status}"
    ]
    if report.main_identifier:
        lines.append(
            f"MAIN {report.main_identifier} occurrences={report.main_identifier_occurrences}"
        )
    for d in report.duplicates:
        lines.append(f"DUPLICATE {d.identifier} count={d.count}")
        lines.extend(f"  - {p}" for p in d.paths)
    for w in report.warnings:
        lines.append(f"WARNING {w.path}: {w.message}")
    if report.has_collisions:
        lines.append(f"RESULT FAIL: {len(report.duplicates)} duplicate bundle identifier(s)")
    else:
        lines.append("RESULT OK: all bundle identifiers are unique")
    return "\n".join(lines) + "\n"


def format_collision_report(report: CollisionReport, fmt: str = "text") -> str:
    """按 `text` 或 `json` 格式输出报告。"""
    if fmt == "json":
        return json.dumps(report_to_dict(report), indent=2, ensure_ascii=False) + "\n"
    if fmt == "text":
        return _format_text(report)
    raise ValueError(f"unknown report format: {fmt}")


def format_assignments(assignments: Sequence[Assignment]) -> str:
    """逐条列出分配决定；没有文件位置的受保护条目标记为 reserved。"""
    lines: list[str] = []
    for a in assignments:
        old = a.target.current_identifier
        if a.target.location is None:
            lines.append(f"ASSIGN {a.rationale} {a.target.label}: {a.identifier} (reserved)")
            continue
        detail = f" ({a.reason})" if a.reason else ""
        if a.changed:
            lines.append(
                f"ASSIGN {a.rationale} {a.target.label}: {old or '-'} -> {a.identifier}{detail}"
            )
        else:
            lines.append(f"ASSIGN {a.rationale} {a.target.label}: {a.identifier} (unchanged)")
    changed = sum(1 for a in assignments if a.target.location is not None and a.changed)
    lines.append(f"SUMMARY targets={len(assignments)} changed={changed}")
    return "\n".join(lines) + "\n"


def write_report(text: str, destination: str = "") -> None:
    """写到标准输出（空串或 `-`）或指定文件。"""
    if not destination or destination == "-":
        print(text, end="")
        return
    parent = os.path.dirname(os.path.abspath(destination))
    os.makedirs(parent, exist_ok=True)
    with open(destination, "w", encoding="utf-8") as f:
        f.write(text)
