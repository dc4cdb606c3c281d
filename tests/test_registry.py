from bundle_guard.registry import MAIN_OWNER, TEST_OWNER, IdentifierRegistry


def test_registry_is_seeded_with_protected_identifiers() -> None:
    reg = IdentifierRegistry("com.acme.app", "com.acme.app.tests")

    assert reg.is_claimed("com.acme.app")
    assert reg.owner_of("com.acme.app") == MAIN_OWNER
    assert reg.owner_of("com.acme.app.tests") == TEST_OWNER
    assert len(reg) == 2


def test_registry_keeps_first_owner() -> None:
    reg = IdentifierRegistry("com.acme.app", "com.acme.app.tests")

    reg.claim("com.acme.app.universal.pluginx", "PluginX")
    reg.claim("com.acme.app.universal.pluginx", "PluginY")
    reg.claim("com.acme.app", "PluginX")

    assert reg.owner_of("com.acme.app.universal.pluginx") == "PluginX"
    assert reg.owner_of("com.acme.app") == MAIN_OWNER
    assert "com.acme.app.universal.pluginx" in reg
    assert "com.acme.other" not in reg
    assert reg.owner_of("com.acme.other") is None
    assert list(reg) == [
        "com.acme.app",
        "com.acme.app.tests",
        "com.acme.app.universal.pluginx",
    ]
