from collections.abc import Iterator

import pytest

from framed import plugins
from tests.plugin_fixtures import FakeEntryPoint, install_entrypoints


@pytest.fixture(autouse=True)
def _reset_plugin_state() -> Iterator[None]:
    plugins.reset_plugin_state()
    yield
    plugins.reset_plugin_state()


def test_list_ids_does_not_load_entrypoints(monkeypatch) -> None:
    calls = {"count": 0}

    def loader():
        calls["count"] += 1
        return object()

    entrypoints = [
        FakeEntryPoint(
            "fun",
            "framed_fun.plugin:PLUGIN",
            plugins.PLUGIN_GROUP,
            loader=loader,
        )
    ]
    install_entrypoints(monkeypatch, entrypoints)

    ids = plugins.list_ids(plugins.PLUGIN_GROUP)
    assert ids == ["fun"]
    assert calls["count"] == 0


def test_load_entrypoint_records_errors(monkeypatch) -> None:
    def loader():
        raise RuntimeError("boom")

    entrypoints = [
        FakeEntryPoint(
            "broken",
            "framed_broken.plugin:PLUGIN",
            plugins.PLUGIN_GROUP,
            loader=loader,
        )
    ]
    install_entrypoints(monkeypatch, entrypoints)

    with pytest.raises(plugins.PluginLoadFailed):
        plugins.load_entrypoint(plugins.PLUGIN_GROUP, "broken")

    errors = plugins.get_load_errors()
    assert errors
    assert errors[0].name == "broken"
    assert "boom" in errors[0].error


def test_duplicate_entrypoints_are_rejected(monkeypatch) -> None:
    entrypoints = [
        FakeEntryPoint(
            "dup",
            "framed_one.plugin:PLUGIN",
            plugins.PLUGIN_GROUP,
            dist_name="one",
        ),
        FakeEntryPoint(
            "dup",
            "framed_two.plugin:PLUGIN",
            plugins.PLUGIN_GROUP,
            dist_name="two",
        ),
    ]
    install_entrypoints(monkeypatch, entrypoints)

    ids = plugins.list_ids(plugins.PLUGIN_GROUP)
    assert ids == []

    with pytest.raises(plugins.PluginLoadFailed):
        plugins.load_entrypoint(plugins.PLUGIN_GROUP, "dup")

    errors = plugins.get_load_errors()
    assert any("duplicate plugin id" in err.error for err in errors)


def test_allowlist_filters_by_distribution(monkeypatch) -> None:
    entrypoints = [
        FakeEntryPoint(
            "fun",
            "framed_fun.plugin:PLUGIN",
            plugins.PLUGIN_GROUP,
            dist_name="framed",
        ),
        FakeEntryPoint(
            "thirdparty",
            "framed_thirdparty.plugin:PLUGIN",
            plugins.PLUGIN_GROUP,
            dist_name="framed-thirdparty",
        ),
    ]
    install_entrypoints(monkeypatch, entrypoints)

    ids = plugins.list_ids(plugins.PLUGIN_GROUP, allowlist=["framed"])
    assert ids == ["fun"]


def test_allowlist_canonicalizes_distribution_names(monkeypatch) -> None:
    entrypoints = [
        FakeEntryPoint(
            "music",
            "framed_music.plugin:PLUGIN",
            plugins.PLUGIN_GROUP,
            dist_name="framed-plugin-music",
        )
    ]
    install_entrypoints(monkeypatch, entrypoints)

    ids = plugins.list_ids(plugins.PLUGIN_GROUP, allowlist=["Framed_Plugin.music"])
    assert ids == ["music"]


def test_reserved_ids_are_hidden(monkeypatch) -> None:
    entrypoints = [
        FakeEntryPoint("core", "evil.plugin:PLUGIN", plugins.PLUGIN_GROUP),
        FakeEntryPoint("fun", "framed_fun.plugin:PLUGIN", plugins.PLUGIN_GROUP),
    ]
    install_entrypoints(monkeypatch, entrypoints)

    assert plugins.list_ids(plugins.PLUGIN_GROUP, reserved_ids=["CORE"]) == ["fun"]


def test_validator_errors_are_captured(monkeypatch) -> None:
    entrypoints = [
        FakeEntryPoint(
            "bad",
            "framed_bad.plugin:PLUGIN",
            plugins.PLUGIN_GROUP,
        )
    ]
    install_entrypoints(monkeypatch, entrypoints)

    def validator(obj, ep):
        raise TypeError("not valid")

    with pytest.raises(plugins.PluginLoadFailed):
        plugins.load_entrypoint(plugins.PLUGIN_GROUP, "bad", validator=validator)

    errors = plugins.get_load_errors()
    assert any("not valid" in err.error for err in errors)


def test_missing_and_disabled_entrypoints(monkeypatch) -> None:
    entrypoints = [
        FakeEntryPoint(
            "fun",
            "framed_fun.plugin:PLUGIN",
            plugins.PLUGIN_GROUP,
            dist_name="framed-fun",
        )
    ]
    install_entrypoints(monkeypatch, entrypoints)

    with pytest.raises(plugins.PluginLoadFailed, match="not found"):
        plugins.load_entrypoint(plugins.PLUGIN_GROUP, "nope")
    with pytest.raises(plugins.PluginLoadFailed, match="not enabled"):
        plugins.load_entrypoint(plugins.PLUGIN_GROUP, "fun", allowlist=["other"])


def test_reset_plugin_state_clears_cache(monkeypatch) -> None:
    calls = {"count": 0}

    def loader():
        calls["count"] += 1
        return object()

    entrypoints = [
        FakeEntryPoint(
            "fun",
            "framed_fun.plugin:PLUGIN",
            plugins.PLUGIN_GROUP,
            loader=loader,
        )
    ]
    install_entrypoints(monkeypatch, entrypoints)

    plugins.load_entrypoint(plugins.PLUGIN_GROUP, "fun")
    plugins.load_entrypoint(plugins.PLUGIN_GROUP, "fun")
    assert calls["count"] == 1

    plugins.reset_plugin_state()
    plugins.load_entrypoint(plugins.PLUGIN_GROUP, "fun")
    assert calls["count"] == 2


def test_clear_load_errors_filters(monkeypatch) -> None:
    def loader():
        raise RuntimeError("boom")

    entrypoints = [
        FakeEntryPoint(
            "broken_one",
            "framed_one.plugin:PLUGIN",
            plugins.PLUGIN_GROUP,
            loader=loader,
            dist_name="one-dist",
        ),
        FakeEntryPoint(
            "broken_two",
            "framed_two.plugin:PLUGIN",
            plugins.PLUGIN_GROUP,
            loader=loader,
            dist_name="two-dist",
        ),
    ]
    install_entrypoints(monkeypatch, entrypoints)

    with pytest.raises(plugins.PluginLoadFailed):
        plugins.load_entrypoint(plugins.PLUGIN_GROUP, "broken_one")
    with pytest.raises(plugins.PluginLoadFailed):
        plugins.load_entrypoint(plugins.PLUGIN_GROUP, "broken_two")

    errors = plugins.get_load_errors()
    assert {err.distribution for err in errors} == {"one-dist", "two-dist"}

    plugins.clear_load_errors(name="broken_one")
    errors = plugins.get_load_errors()
    assert {err.name for err in errors} == {"broken_two"}

    plugins.clear_load_errors(group=plugins.PLUGIN_GROUP)
    assert plugins.get_load_errors() == ()
