"""
把分配结果写回工程描述文件。

只改写每个 (target, configuration) 的 `PRODUCT_BUNDLE_IDENTIFIER` 值，
其余内容逐字节保留。所有位置先全部校验再统一改写，写入采用临时文件
加 `os.replace`，失败时原文件保持不变。
"""

from __future__ import annotations

import os
import shutil
import tempfile
import time
from collections.abc import Sequence

from .errors import WriteError
from .pbxproj import quote_string
from .targets import read_project_text, resolve_project_file
from .types import Assignment


def _edit_for(assignment: Assignment) -> tuple[int, int, str] | None:
    """返回 `(start, end, replacement)`；无需改动时返回 `None`。"""
    loc = assignment.target.location
    if loc is None:
        return None
    if not loc.is_insert and assignment.identifier == assignment.target.current_identifier:
        return None
    return loc.start, loc.end, f"{loc.prefix}{quote_string(assignment.identifier)}{loc.suffix}"


def _validate(text: str, assignment: Assignment) -> None:
    loc = assignment.target.location
    if loc is None:
        return
    found = text[loc.start:loc.end]
    after = text[loc.end:loc.end + len(loc.guard)]
    if found != loc.original or after != loc.guard:
        raise WriteError(
            f"identifier field of target {assignment.target.label} moved or changed since "
            f"loading (expected {loc.original or loc.guard!r} at offset {loc.start})"
        )


def apply_assignments(text: str, assignments: Sequence[Assignment]) -> tuple[str, int]:
    """对文本应用全部分配，返回 `(新文本, 改动数)`。"""
    for a in assignments:
        _validate(text, a)

    edits: dict[tuple[int, int], tuple[str, Assignment]] = {}
    for a in assignments:
        edit = _edit_for(a)
        if edit is None:
            continue
        start, end, replacement = edit
        prev = edits.get((start, end))
        if prev is not None and prev[0] != replacement:
            raise WriteError(
                f"conflicting identifiers for the same field: "
                f"{prev[1].target.label} and {a.target.label}"
            )
        edits[(start, end)] = (replacement, a)

    ordered = sorted(edits.items(), key=lambda kv: kv[0], reverse=True)
    limit = len(text) + 1
    out = text
    for (start, end), (replacement, a) in ordered:
        if end > limit:
            raise WriteError(f"overlapping identifier fields at target {a.target.label}")
        out = out[:start] + replacement + out[end:]
        limit = start
    return out, len(ordered)


def backup_descriptor(path: str) -> str:
    """在同目录生成带时间戳的备份副本，返回备份路径。"""
    project_file = resolve_project_file(path)
    suffix = time.strftime("%Y%m%d_%H%M%S", time.localtime())
    backup = f"{project_file}.{suffix}.bak"
    shutil.copyfile(project_file, backup)
    return backup


def write_descriptor(path: str, assignments: Sequence[Assignment]) -> int:
    """重新读取描述文件、应用分配并原子写回，返回改动的字段数。"""
    project_file = resolve_project_file(path)
    try:
        text = read_project_text(project_file)
    except (OSError, UnicodeDecodeError) as e:
        raise WriteError(f"cannot read project file {project_file}: {e}") from e

    new_text, changed = apply_assignments(text, assignments)
    if not changed:
        return 0

    fd, tmp = tempfile.mkstemp(
        prefix=".project.", suffix=".tmp", dir=os.path.dirname(os.path.abspath(project_file))
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(new_text)
        shutil.copymode(project_file, tmp)
        os.replace(tmp, project_file)
    except OSError as e:
        if os.path.exists(tmp):
            os.remove(tmp)
        raise WriteError(f"cannot write project file {project_file}: {e}") from e
    return changed
