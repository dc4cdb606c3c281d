import plistlib
from pathlib import Path

import pytest

_CONFIGS = ("Debug", "Release", "Profile")


def _uuid(n: int) -> str:
    return f"{n:024X}"


def make_pbxproj(targets: list[tuple[str, str | None]], configs: tuple[str, ...] = _CONFIGS) -> str:
    """Build a minimal Flutter-style project.pbxproj.

    Each target entry is (name, identifier); identifier None omits the
    PRODUCT_BUNDLE_IDENTIFIER setting entirely.
    """
    project_id = _uuid(1)
    native: list[str] = []
    cfg_lists: list[str] = []
    build_cfgs: list[str] = []
    target_refs: list[str] = []
    n = 100
    for name, identifier in targets:
        target_id = _uuid(n)
        list_id = _uuid(n + 1)
        n += 2
        target_refs.append(f"\t\t\t\t{target_id} /* {name} */,\n")
        native.append(
            f"\t\t{target_id} /* {name} */ = {{\n"
            "\t\t\tisa = PBXNativeTarget;\n"
            f"\t\t\tbuildConfigurationList = {list_id} "
            f'/* Build configuration list for PBXNativeTarget "{name}" */;\n'
            "\t\t\tbuildPhases = (\n\t\t\t);\n"
            f"\t\t\tname = {name};\n"
            f"\t\t\tproductName = {name};\n"
            '\t\t\tproductType = "com.apple.product-type.application";\n'
            "\t\t};\n"
        )
        cfg_refs: list[str] = []
        for cfg in configs:
            cfg_id = _uuid(n)
            n += 1
            cfg_refs.append(f"\t\t\t\t{cfg_id} /* {cfg} */,\n")
            bundle_line = (
                f"\t\t\t\tPRODUCT_BUNDLE_IDENTIFIER = {identifier};\n"
                if identifier is not None
                else ""
            )
            build_cfgs.append(
                f"\t\t{cfg_id} /* {cfg} */ = {{\n"
                "\t\t\tisa = XCBuildConfiguration;\n"
                "\t\t\tbuildSettings = {\n"
                "\t\t\t\tCLANG_ENABLE_MODULES = YES;\n"
                f"{bundle_line}"
                '\t\t\t\tPRODUCT_NAME = "$(TARGET_NAME)";\n'
                "\t\t\t};\n"
                f"\t\t\tname = {cfg};\n"
                "\t\t};\n"
            )
        cfg_lists.append(
            f"\t\t{list_id} /* Build configuration list for PBXNativeTarget \"{name}\" */ = {{\n"
            "\t\t\tisa = XCConfigurationList;\n"
            "\t\t\tbuildConfigurations = (\n"
            f"{''.join(cfg_refs)}"
            "\t\t\t);\n"
            "\t\t\tdefaultConfigurationIsVisible = 0;\n"
            "\t\t\tdefaultConfigurationName = Release;\n"
            "\t\t};\n"
        )

    return (
        "// !$*UTF8*$!\n"
        "{\n"
        "\tarchiveVersion = 1;\n"
        "\tclasses = {\n\t};\n"
        "\tobjectVersion = 54;\n"
        "\tobjects = {\n\n"
        "/* Begin PBXNativeTarget section */\n"
        f"{''.join(native)}"
        "/* End PBXNativeTarget section */\n\n"
        "/* Begin PBXProject section */\n"
        f"\t\t{project_id} /* Project object */ = {{\n"
        "\t\t\tisa = PBXProject;\n"
        '\t\t\tcompatibilityVersion = "Xcode 9.3";\n'
        "\t\t\ttargets = (\n"
        f"{''.join(target_refs)}"
        "\t\t\t);\n"
        "\t\t};\n"
        "/* End PBXProject section */\n\n"
        "/* Begin XCBuildConfiguration section */\n"
        f"{''.join(build_cfgs)}"
        "/* End XCBuildConfiguration section */\n\n"
        "/* Begin XCConfigurationList section */\n"
        f"{''.join(cfg_lists)}"
        "/* End XCConfigurationList section */\n"
        "\t};\n"
        f"\trootObject = {project_id} /* Project object */;\n"
        "}\n"
    )


@pytest.fixture
def write_project(tmp_path):
    def _write(targets: list[tuple[str, str | None]], **kwargs) -> Path:
        proj = tmp_path / "Runner.xcodeproj"
        proj.mkdir(exist_ok=True)
        path = proj / "project.pbxproj"
        path.write_text(make_pbxproj(targets, **kwargs), encoding="utf-8")
        return path

    return _write


def write_bundle(path: Path, identifier: str | None, *, package_type: str = "APPL") -> Path:
    """Create a bundle directory with an Info.plist carrying `identifier`."""
    path.mkdir(parents=True, exist_ok=True)
    info: dict = {"CFBundlePackageType": package_type}
    if identifier is not None:
        info["CFBundleIdentifier"] = identifier
    with open(path / "Info.plist", "wb") as f:
        plistlib.dump(info, f)
    return path
