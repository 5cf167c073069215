import pytest
from structlog.testing import capture_logs

from framed.registry import (
    CommandCatalog,
    CommandSpec,
    RegistryBuilder,
)


async def _noop(ctx):
    return True


def test_register_command_and_lookup_is_case_insensitive() -> None:
    builder = RegistryBuilder("fun")
    result = builder.register_command(CommandSpec(id="Ping", handler=_noop))
    assert result.ok
    assert result.identifier == "ping"

    registry = builder.build()
    descriptor = registry.lookup("PING")
    assert descriptor is not None
    assert descriptor.id == "ping"
    assert descriptor.full_id == "fun.command.ping"
    assert descriptor.depth == 0
    assert descriptor.parent is None


def test_duplicate_id_is_rejected_and_logged() -> None:
    builder = RegistryBuilder("fun")
    builder.register_command(CommandSpec(id="ping"))
    with capture_logs() as logs:
        result = builder.register_command(CommandSpec(id="PING"))
    assert result.status == "duplicate_id"
    assert [log["event"] for log in logs] == ["registry.duplicate_id"]
    assert logs[0]["log_level"] == "error"


def test_alias_equal_to_existing_id_is_duplicate_alias() -> None:
    builder = RegistryBuilder("fun")
    builder.register_command(CommandSpec(id="x"))
    builder.register_command(CommandSpec(id="y"))
    assert builder.register_alias("x", "y").status == "duplicate_alias"
    assert builder.register_alias("z", "y").ok
    assert builder.register_alias("Z", "x").status == "duplicate_alias"


def test_id_equal_to_existing_alias_is_duplicate_id() -> None:
    builder = RegistryBuilder("fun")
    builder.register_command(CommandSpec(id="x"))
    builder.register_alias("y", "x")
    assert builder.register_command(CommandSpec(id="y")).status == "duplicate_id"


def test_alias_for_unknown_command() -> None:
    builder = RegistryBuilder("fun")
    assert builder.register_alias("p", "ping").status == "unknown_parent"


def test_failed_registration_leaves_state_unchanged() -> None:
    builder = RegistryBuilder("fun")
    builder.register_command(CommandSpec(id="ping", about="first"))
    builder.register_command(CommandSpec(id="ping", about="second"))
    registry = builder.build()
    assert len(registry) == 1
    descriptor = registry.lookup("ping")
    assert descriptor is not None
    assert descriptor.about == "first"


def test_alias_lookup() -> None:
    builder = RegistryBuilder("fun")
    builder.add(CommandSpec(id="ping", aliases=("p", "PONG")))
    registry = builder.build()
    descriptor = registry.lookup("pong")
    assert descriptor is registry.lookup("ping")
    assert descriptor is not None
    assert descriptor.aliases == frozenset({"p", "pong"})


def test_subcommands_nest_to_depth_three() -> None:
    builder = RegistryBuilder("fun")
    builder.register_command(CommandSpec(id="a"))
    assert builder.register_subcommand("a", CommandSpec(id="b")).ok
    assert builder.register_subcommand(["a", "b"], CommandSpec(id="c")).ok
    assert builder.register_subcommand("a b c", CommandSpec(id="d")).ok
    result = builder.register_subcommand("a b c d", CommandSpec(id="e"))
    assert result.status == "nesting_too_deep"

    registry = builder.build()
    root = registry.lookup("a")
    assert root is not None
    b = root.find_subcommand("B")
    assert b is not None
    c = b.find_subcommand("c")
    assert c is not None
    d = c.find_subcommand("d")
    assert d is not None
    assert d.depth == 3
    assert d.subcommands == {}
    assert d.full_id == "fun.command.a.subcommand.b.subcommand.c.subcommand.d"


def test_subcommand_collisions_are_scoped_to_their_parent() -> None:
    builder = RegistryBuilder("fun")
    builder.register_command(CommandSpec(id="group"))
    builder.register_command(CommandSpec(id="other"))
    assert builder.register_subcommand("group", CommandSpec(id="add")).ok
    assert builder.register_subcommand("other", CommandSpec(id="add")).ok
    dup = builder.register_subcommand("group", CommandSpec(id="ADD"))
    assert dup.status == "duplicate_id"
    assert dup.scope == "group"
    assert builder.register_subcommand_alias("group", "new", "add").ok
    assert (
        builder.register_subcommand_alias("group", "add", "add").status
        == "duplicate_alias"
    )
    assert (
        builder.register_subcommand_alias("group", "x", "missing").status
        == "unknown_parent"
    )


def test_subcommand_of_unknown_parent() -> None:
    builder = RegistryBuilder("fun")
    result = builder.register_subcommand("nope", CommandSpec(id="add"))
    assert result.status == "unknown_parent"


def test_add_registers_tree_and_keeps_going_after_collisions() -> None:
    builder = RegistryBuilder("manage")
    spec = CommandSpec(
        id="group",
        aliases=("grp",),
        subcommands=(
            CommandSpec(id="add", aliases=("new",)),
            CommandSpec(id="add"),
            CommandSpec(id="edit", subcommands=(CommandSpec(id="name"),)),
        ),
    )
    results = builder.add(spec)
    statuses = [result.status for result in results]
    assert statuses.count("duplicate_id") == 1
    assert statuses.count("ok") == len(statuses) - 1

    registry = builder.build()
    group = registry.lookup("grp")
    assert group is not None
    assert set(group.subcommands) == {"add", "edit"}
    assert group.find_subcommand("new") is group.subcommands["add"]
    edit = group.subcommands["edit"]
    assert edit.parent == group.full_id
    assert "name" in edit.subcommands


def test_builder_is_closed_after_build() -> None:
    builder = RegistryBuilder("fun")
    builder.build()
    with pytest.raises(RuntimeError):
        builder.register_command(CommandSpec(id="late"))


def test_frozen_maps_reject_mutation() -> None:
    builder = RegistryBuilder("fun")
    builder.add(CommandSpec(id="a", subcommands=(CommandSpec(id="b"),)))
    registry = builder.build()
    with pytest.raises(TypeError):
        registry.commands["x"] = registry.commands["a"]  # type: ignore[index]
    with pytest.raises(TypeError):
        subcommands = registry.commands["a"].subcommands
        subcommands["c"] = registry.commands["a"]  # type: ignore[index]


@pytest.mark.parametrize("value", ["", "   ", "two words"])
def test_invalid_identifiers_raise(value) -> None:
    builder = RegistryBuilder("fun")
    with pytest.raises(ValueError):
        builder.register_command(CommandSpec(id=value))


def test_catalog_first_plugin_wins_and_logs_shadowing() -> None:
    first = RegistryBuilder("one")
    first.add(CommandSpec(id="ping", about="one"))
    second = RegistryBuilder("two")
    second.add(CommandSpec(id="ping", about="two"))
    second.add(CommandSpec(id="pong", prefixes=("$",)))

    with capture_logs() as logs:
        catalog = CommandCatalog([first.build(), second.build()])

    found = catalog.lookup("PING")
    assert found is not None
    assert found.plugin_id == "one"
    assert [log["event"] for log in logs] == ["catalog.shadowed"]
    assert catalog.plugin_ids == ("one", "two")
    assert catalog.override_prefixes() == ("$",)


def test_catalog_rejects_duplicate_plugin_ids() -> None:
    with pytest.raises(ValueError, match="duplicate plugin id"):
        CommandCatalog([RegistryBuilder("a").build(), RegistryBuilder("a").build()])


def test_catalog_walk_visits_parents_first() -> None:
    builder = RegistryBuilder("fun")
    builder.add(
        CommandSpec(
            id="a",
            subcommands=(CommandSpec(id="b", subcommands=(CommandSpec(id="c"),)),),
        )
    )
    catalog = CommandCatalog([builder.build()])
    assert [descriptor.id for descriptor in catalog.walk()] == ["a", "b", "c"]


def test_builder_config_is_read_only() -> None:
    source = {"sides": 6}
    builder = RegistryBuilder("fun", config=source)
    source["sides"] = 8
    assert builder.config == {"sides": 6}
    with pytest.raises(TypeError):
        builder.config["sides"] = 10  # type: ignore[index]
    assert RegistryBuilder("other").config == {}
