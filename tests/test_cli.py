import json

import pytest

from conftest import write_bundle

from bundle_guard import cli
from bundle_guard.targets import load_targets


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    for name in ("BUNDLE_ID", "TEST_BUNDLE_ID", "BUNDLE_ID_NAMESPACE", "BUNDLE_ID_DENYLIST"):
        monkeypatch.delenv(name, raising=False)


def _identifiers(path) -> dict[str, str | None]:
    return {t.name: t.current_identifier for t in load_targets(str(path))}


def test_assign_rewrites_project(write_project, capsys) -> None:
    path = write_project([("Runner", '""'), ("RunnerTests", "com.acme.app"), ("PluginX", "com.acme.app")])

    rc = cli.main(["assign", str(path), "-b", "com.acme.app"])

    assert rc == 0
    assert _identifiers(path) == {
        "Runner": "com.acme.app",
        "RunnerTests": "com.acme.app.tests",
        "PluginX": "com.acme.app.universal.pluginx",
    }
    out = capsys.readouterr().out
    assert "ASSIGN generated_unique PluginX [Debug]: com.acme.app -> com.acme.app.universal.pluginx (main)" in out
    assert "[bundle-guard] Updated 9 identifier field(s)" in out


def test_assign_dry_run_leaves_project_untouched(write_project, capsys) -> None:
    path = write_project([("Runner", "com.example.app"), ("PluginX", None)])
    before = path.read_bytes()

    rc = cli.main(["assign", str(path.parent), "-b", "com.acme.app", "--dry-run"])

    assert rc == 0
    assert path.read_bytes() == before
    out = capsys.readouterr().out
    assert "ASSIGN protected RunnerTests: com.acme.app.tests (reserved)" in out
    assert "Dry-run mode enabled" in out


def test_assign_uses_environment_defaults(write_project, monkeypatch) -> None:
    path = write_project([("PluginX", "io.template.x")], configs=("Release",))
    monkeypatch.setenv("BUNDLE_ID", "com.acme.app")
    monkeypatch.setenv("BUNDLE_ID_NAMESPACE", "deps")
    monkeypatch.setenv("BUNDLE_ID_DENYLIST", "io.template.*, io.sample.*")

    rc = cli.main(["assign", str(path)])

    assert rc == 0
    assert _identifiers(path) == {"PluginX": "com.acme.app.deps.pluginx"}


def test_assign_backup_and_report(write_project, tmp_path) -> None:
    path = write_project([("PluginX", "com.example")], configs=("Release",))
    report = tmp_path / "out" / "assign.txt"

    rc = cli.main(["assign", str(path), "-b", "com.acme.app", "--backup", "--report", str(report)])

    assert rc == 0
    backups = list(path.parent.glob("project.pbxproj.*.bak"))
    assert len(backups) == 1
    assert "com.example;" in backups[0].read_text(encoding="utf-8")
    assert report.read_text(encoding="utf-8").endswith("SUMMARY targets=3 changed=1\n")


def test_assign_requires_bundle_id(write_project) -> None:
    path = write_project([("Runner", "com.acme.app")])

    with pytest.raises(SystemExit) as e:
        cli.main(["assign", str(path)])
    assert "missing -b/--bundle-id" in str(e.value)


def test_assign_rejects_invalid_bundle_id(write_project) -> None:
    path = write_project([("Runner", "com.acme.app")])

    with pytest.raises(SystemExit) as e:
        cli.main(["assign", str(path), "-b", "com acme"])
    assert "invalid bundle identifier" in str(e.value)


def test_assign_errors_without_default_project(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)

    with pytest.raises(SystemExit) as e:
        cli.main(["assign", "-b", "com.acme.app"])
    assert "missing PROJECT" in str(e.value)


def test_assign_reports_unparseable_project(tmp_path) -> None:
    path = tmp_path / "project.pbxproj"
    path.write_text("{ objects = {\n", encoding="utf-8")

    with pytest.raises(SystemExit) as e:
        cli.main(["assign", str(path), "-b", "com.acme.app"])
    assert "failed to load project" in str(e.value)


def test_scan_exit_code_reflects_duplicates(tmp_path, capsys) -> None:
    app = write_bundle(tmp_path / "Payload" / "Main.app", "com.acme.app")
    write_bundle(app / "Frameworks" / "A.framework", "com.acme.app", package_type="FMWK")

    rc = cli.main(["scan", str(tmp_path), "-b", "com.acme.app"])

    assert rc == 1
    out = capsys.readouterr().out
    assert "DUPLICATE com.acme.app count=2" in out
    assert "MAIN com.acme.app occurrences=2" in out


def test_scan_clean_artifact_writes_json_report(tmp_path) -> None:
    app = write_bundle(tmp_path / "Main.app", "com.acme.app")
    write_bundle(app / "Frameworks" / "A.framework", "com.acme.app.universal.a", package_type="FMWK")
    output = tmp_path / "scan.json"

    rc = cli.main(["scan", str(app), "--format", "json", "-o", str(output)])

    assert rc == 0
    data = json.loads(output.read_text(encoding="utf-8"))
    assert data["status"] == "ok"
    assert data["total_bundles"] == 2


def test_scan_missing_artifact(tmp_path) -> None:
    with pytest.raises(SystemExit) as e:
        cli.main(["scan", str(tmp_path / "missing.ipa")])
    assert "artifact not found" in str(e.value)


def test_scan_json_on_stdout_is_parseable(tmp_path, capsys) -> None:
    app = write_bundle(tmp_path / "Main.app", "com.acme.app")
    write_bundle(app / "Frameworks" / "A.framework", "com.acme.app", package_type="FMWK")

    rc = cli.main(["scan", str(app), "--format", "json", "--verbose"])

    assert rc == 1
    captured = capsys.readouterr()
    data = json.loads(captured.out)
    assert data["duplicates"][0]["identifier"] == "com.acme.app"
    assert "[bundle-guard] Scanning artifact:" in captured.err


def test_assign_report_write_failure_is_reported(write_project, tmp_path) -> None:
    path = write_project([("PluginX", "com.example")], configs=("Release",))

    with pytest.raises(SystemExit) as e:
        cli.main(["assign", str(path), "-b", "com.acme.app", "--dry-run", "--report", str(tmp_path)])
    assert "failed to write report" in str(e.value)


def test_assign_backup_failure_leaves_project_untouched(write_project, monkeypatch) -> None:
    path = write_project([("PluginX", "com.example")], configs=("Release",))
    before = path.read_bytes()

    def fail_backup(_path: str) -> str:
        raise PermissionError("read-only directory")

    monkeypatch.setattr(cli, "backup_descriptor", fail_backup)

    with pytest.raises(SystemExit) as e:
        cli.main(["assign", str(path), "-b", "com.acme.app", "--backup"])
    assert "failed to back up project" in str(e.value)
    assert "read-only directory" in str(e.value)
    assert path.read_bytes() == before
