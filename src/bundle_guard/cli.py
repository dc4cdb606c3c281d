"""
`bundle-guard` 的命令行入口模块。

- `assign`：构建前为工程中每个目标分配不冲突的 bundle 标识并写回描述文件。
- `scan`：打包后扫描产物中的嵌套应用包，报告重复的 `CFBundleIdentifier`。
"""

import argparse
import os
import sys
from collections.abc import Sequence
from typing import TextIO

from .assign import (
    DEFAULT_DENYLIST,
    DEFAULT_MAIN_TARGET,
    DEFAULT_NAMESPACE,
    DEFAULT_TEST_MARKER,
    AssignConfig,
    assign_identifiers,
    timestamp_salt,
    validate_bundle_identifier,
)
from .bundle_scan import scan_artifact
from .descriptor_write import backup_descriptor, write_descriptor
from .errors import AssignmentError, ParseError, ScanError, WriteError
from .report import FORMATS, format_assignments, format_collision_report, write_report
from .targets import DEFAULT_PROJECT, load_targets, resolve_project_file


def _log_step(message: str, *, stream: TextIO | None = None) -> None:
    """输出简洁的流程阶段提示。"""
    print(f"[bundle-guard] {message}", file=stream or sys.stdout)


def _abs(p: str) -> str:
    """将输入路径展开为绝对路径，统一后续文件校验逻辑。"""
    return os.path.abspath(os.path.expanduser(p))


def _split_patterns(raw: str) -> list[str]:
    """解析逗号分隔的模式列表（来自环境变量）。"""
    return [x.strip() for x in raw.split(",") if x.strip()]


def _resolve_bundle_id(raw: str, *, flag: str) -> str:
    bundle_id = (raw or "").strip()
    if not bundle_id:
        raise SystemExit(
            f"Error: missing {flag}.\n"
            "Hint: pass it explicitly or export BUNDLE_ID.\n"
        )
    try:
        return validate_bundle_identifier(bundle_id, what="bundle identifier")
    except ValueError as e:
        raise SystemExit(f"Error: {e}") from e


def _resolve_project(raw: str) -> str:
    """定位工程描述文件；未指定时使用 Flutter 工程的默认位置。"""
    if raw:
        project = resolve_project_file(_abs(raw))
    else:
        project = _abs(DEFAULT_PROJECT)
        if not os.path.isfile(project):
            raise SystemExit(
                "Error: missing PROJECT and no project file found at "
                f"{DEFAULT_PROJECT}.\n"
                "Hint: pass the project.pbxproj (or .xcodeproj) path.\n"
            )
    if not os.path.isfile(project):
        raise SystemExit(f"Error: project file not found: {project}")
    return project


def _build_config(ns: argparse.Namespace, bundle_id: str) -> AssignConfig:
    denylist: list[str] = [] if ns.no_default_denylist else list(DEFAULT_DENYLIST)
    denylist += _split_patterns(ns.env_denylist)
    denylist += ns.deny
    salt = timestamp_salt() if ns.salt_timestamp else ""
    try:
        return AssignConfig(
            main_identifier=bundle_id,
            test_identifier=(ns.test_bundle_id or "").strip(),
            namespace=(ns.namespace or DEFAULT_NAMESPACE).strip(),
            main_target=ns.main_target,
            test_marker=ns.test_marker,
            denylist=tuple(denylist),
            salt=salt,
        )
    except ValueError as e:
        raise SystemExit(f"Error: {e}") from e


def _run_assign(ns: argparse.Namespace) -> int:
    bundle_id = _resolve_bundle_id(ns.bundle_id, flag="-b/--bundle-id")
    config = _build_config(ns, bundle_id)

    _log_step("Resolving project file")
    project = _resolve_project(ns.project)
    _log_step(f"Using project: {project}")

    _log_step("Loading build targets")
    try:
        targets = load_targets(project)
    except ParseError as e:
        raise SystemExit(f"Error: failed to load project.\nDetail: {e}") from e
    if ns.verbose:
        for t in targets:
            print(f"  target: {t.label} = {t.current_identifier or '-'}")

    _log_step(f"Assigning bundle identifiers (main: {config.main_identifier})")
    if config.salt:
        _log_step(f"Timestamp salt enabled: {config.salt}")
    warnings: list[str] = []
    try:
        assignments = assign_identifiers(targets, config, warnings=warnings)
    except AssignmentError as e:
        raise SystemExit(f"Error: bundle identifier assignment failed.\nDetail: {e}") from e
    for w in warnings:
        _log_step(f"Warning: {w}")

    text = format_assignments(assignments)
    print(text, end="")
    if ns.report:
        _save_report(text, _abs(ns.report))
        _log_step(f"Assignment report: {_abs(ns.report)}")

    if ns.dry_run:
        _log_step("Dry-run mode enabled (project file not modified)")
        return 0

    if ns.backup:
        try:
            backup = backup_descriptor(project)
        except OSError as e:
            raise SystemExit(f"Error: failed to back up project.\nDetail: {e}") from e
        _log_step(f"Backup: {backup}")
    try:
        changed = write_descriptor(project, assignments)
    except WriteError as e:
        raise SystemExit(f"Error: failed to update project.\nDetail: {e}") from e
    _log_step(f"Updated {changed} identifier field(s) in {project}")
    return 0


def _save_report(text: str, destination: str = "") -> None:
    try:
        write_report(text, destination)
    except OSError as e:
        raise SystemExit(f"Error: failed to write report.\nDetail: {e}") from e


def _run_scan(ns: argparse.Namespace) -> int:
    artifact = _abs(ns.artifact)
    main_id = (ns.bundle_id or "").strip()
    # JSON 报告写到标准输出时，进度提示改走标准错误，保证输出可直接解析。
    log = sys.stderr if ns.format == "json" and not ns.output else sys.stdout

    _log_step(f"Scanning artifact: {artifact}", stream=log)
    try:
        report = scan_artifact(artifact, main_identifier=main_id)
    except ScanError as e:
        raise SystemExit(f"Error: {e}") from e
    if ns.verbose:
        for r in report.records:
            print(f"  bundle: {r.path} = {r.identifier or '-'}", file=log)

    text = format_collision_report(report, ns.format)
    if ns.output:
        _save_report(text, _abs(ns.output))
        _log_step(f"Report: {_abs(ns.output)}", stream=log)
    else:
        _save_report(text)

    if report.has_collisions:
        _log_step(f"Found {len(report.duplicates)} duplicate bundle identifier(s)", stream=log)
        return 1
    _log_step("No duplicate bundle identifiers", stream=log)
    return 0


def build_parser() -> argparse.ArgumentParser:
    """构建并返回 `bundle-guard` 命令行参数解析器。"""
    p = argparse.ArgumentParser(
        prog="bundle-guard",
        formatter_class=argparse.RawTextHelpFormatter,
        description=(
            "Keep bundle identifiers unique across Xcode build targets (assign)\n"
            "and verify packaged artifacts for duplicates (scan)."
        ),
    )
    sub = p.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    a = sub.add_parser(
        "assign",
        formatter_class=argparse.RawTextHelpFormatter,
        help="Assign collision-free PRODUCT_BUNDLE_IDENTIFIER values in a project",
    )
    a.add_argument(
        "project",
        nargs="?",
        default="",
        help=f"project.pbxproj or .xcodeproj path (default: {DEFAULT_PROJECT})",
    )
    # 此处不设为 argparse 的 required，便于输出更可操作的缺参提示。
    a.add_argument(
        "-b",
        "--bundle-id",
        default=os.environ.get("BUNDLE_ID", ""),
        help="Main app bundle identifier (default: $BUNDLE_ID)",
    )
    a.add_argument(
        "--test-bundle-id",
        default=os.environ.get("TEST_BUNDLE_ID", ""),
        help="Test bundle identifier (default: $TEST_BUNDLE_ID or <bundle-id>.tests)",
    )
    a.add_argument(
        "--namespace",
        default=os.environ.get("BUNDLE_ID_NAMESPACE", DEFAULT_NAMESPACE),
        help=f"Segment used in generated identifiers (default: {DEFAULT_NAMESPACE})",
    )
    a.add_argument(
        "--main-target",
        default=DEFAULT_MAIN_TARGET,
        help=f"Main app target name or glob (default: {DEFAULT_MAIN_TARGET})",
    )
    a.add_argument(
        "--test-marker",
        default=DEFAULT_TEST_MARKER,
        help=f"Substring marking test targets (default: {DEFAULT_TEST_MARKER})",
    )
    a.add_argument(
        "--deny",
        action="append",
        default=[],
        metavar="GLOB",
        help="Extra suspicious identifier pattern to regenerate (repeatable)",
    )
    a.add_argument(
        "--no-default-denylist",
        action="store_true",
        help="Do not use the built-in suspicious patterns (com.example.*, CocoaPods default)",
    )
    a.add_argument(
        "--salt-timestamp",
        action="store_true",
        help="Append a timestamp to generated identifiers (not idempotent)",
    )
    a.add_argument(
        "--dry-run",
        action="store_true",
        help="Print decisions without modifying the project file",
    )
    a.add_argument(
        "--backup",
        action="store_true",
        help="Copy the project file to <file>.<timestamp>.bak before writing",
    )
    a.add_argument("--report", default="", help="Also write the assignment listing to a file")
    a.add_argument("--verbose", action="store_true", help="Verbose logging")
    a.set_defaults(env_denylist=os.environ.get("BUNDLE_ID_DENYLIST", ""))

    s = sub.add_parser(
        "scan",
        formatter_class=argparse.RawTextHelpFormatter,
        help="Report duplicate CFBundleIdentifier values in a packaged artifact",
    )
    s.add_argument("artifact", help="Unpacked app/Payload/.xcarchive directory or .ipa file")
    s.add_argument(
        "-b",
        "--bundle-id",
        default=os.environ.get("BUNDLE_ID", ""),
        help="Main app bundle identifier to count in the report (default: $BUNDLE_ID)",
    )
    s.add_argument("--format", choices=FORMATS, default="text", help="Report format")
    s.add_argument("-o", "--output", default="", help="Write the report to a file instead of stdout")
    s.add_argument("--verbose", action="store_true", help="Verbose logging")

    return p


def main(argv: Sequence[str] | None = None) -> int:
    """CLI 入口：解析参数并分发到对应子命令。"""
    parser = build_parser()
    ns = parser.parse_args(argv)
    if ns.command == "assign":
        return _run_assign(ns)
    return _run_scan(ns)
