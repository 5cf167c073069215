"""Command registries.

Plugins describe their commands while loading through a
:class:`RegistryBuilder`. ``build()`` freezes the result into a
:class:`Registry` whose descriptors and maps are read-only; dispatch only ever
sees frozen registries, collected in load order by a :class:`CommandCatalog`.

Identifiers are case-insensitive. Within one scope (a plugin's top level, or
the subcommands of one command) an id or alias may be used only once;
collisions are logged and the offending registration is skipped so the rest
of the plugin still loads.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from itertools import chain
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Literal

from .logging import get_logger
from .permissions import UserPermissions

if TYPE_CHECKING:
    from .commands import CommandContext

logger = get_logger(__name__)

MAX_SUBCOMMAND_DEPTH = 3

type Handler = Callable[[CommandContext], Awaitable[bool | None]]
type RegistrationStatus = Literal[
    "ok",
    "duplicate_id",
    "duplicate_alias",
    "nesting_too_deep",
    "unknown_parent",
]

_EMPTY: Mapping[str, CommandDescriptor] = MappingProxyType({})


def _empty_map() -> Mapping[str, CommandDescriptor]:
    return _EMPTY


def normalize_identifier(value: str) -> str:
    return value.strip().lower()


def _validated_identifier(value: str, *, label: str) -> str:
    key = normalize_identifier(value)
    if not key or any(char.isspace() for char in key):
        raise ValueError(f"invalid {label} {value!r}; expected a single word")
    return key


@dataclass(frozen=True, slots=True)
class CommandSpec:
    """What a plugin declares; turned into descriptors by the builder."""

    id: str
    handler: Handler | None = None
    aliases: tuple[str, ...] = ()
    subcommands: tuple[CommandSpec, ...] = ()
    prefixes: tuple[str, ...] = ()
    permissions: UserPermissions | None = None
    about: str | None = None
    usage: str | None = None


@dataclass(frozen=True, slots=True, eq=False)
class CommandDescriptor:
    id: str
    plugin_id: str
    handler: Handler | None = None
    aliases: frozenset[str] = frozenset()
    subcommands: Mapping[str, CommandDescriptor] = field(
        default_factory=_empty_map
    )
    subcommand_aliases: Mapping[str, CommandDescriptor] = field(
        default_factory=_empty_map
    )
    prefixes: tuple[str, ...] = ()
    permissions: UserPermissions | None = None
    about: str | None = None
    usage: str | None = None
    parent: str | None = None
    depth: int = 0

    @property
    def full_id(self) -> str:
        if self.parent is None:
            return f"{self.plugin_id}.command.{self.id}"
        return f"{self.parent}.subcommand.{self.id}"

    def find_subcommand(self, name: str) -> CommandDescriptor | None:
        key = normalize_identifier(name)
        found = self.subcommands.get(key)
        if found is None:
            found = self.subcommand_aliases.get(key)
        return found


type SubcommandDescriptor = CommandDescriptor


@dataclass(frozen=True, slots=True)
class Registration:
    status: RegistrationStatus
    scope: str
    identifier: str

    @property
    def ok(self) -> bool:
        return self.status == "ok"


@dataclass(slots=True, eq=False)
class _Node:
    spec: CommandSpec
    id: str
    depth: int
    path: tuple[str, ...]
    aliases: list[str] = field(default_factory=list)
    children: dict[str, _Node] = field(default_factory=dict)
    child_aliases: dict[str, _Node] = field(default_factory=dict)


class RegistryBuilder:
    def __init__(
        self,
        plugin_id: str,
        *,
        config: Mapping[str, Any] | None = None,
        max_depth: int = MAX_SUBCOMMAND_DEPTH,
    ) -> None:
        cleaned = plugin_id.strip()
        if not cleaned:
            raise ValueError("plugin id must be a non-empty string")
        self.plugin_id = cleaned
        # the plugin's `[plugins.<id>]` table, read-only
        self.config: Mapping[str, Any] = MappingProxyType(dict(config or {}))
        self.max_depth = max_depth
        self._commands: dict[str, _Node] = {}
        self._aliases: dict[str, _Node] = {}
        self._built = False

    def register_command(self, spec: CommandSpec) -> Registration:
        self._ensure_open()
        key = _validated_identifier(spec.id, label="command id")
        if key in self._commands or key in self._aliases:
            return self._reject("duplicate_id", self.plugin_id, key)
        self._commands[key] = _Node(spec=spec, id=key, depth=0, path=(key,))
        return Registration("ok", self.plugin_id, key)

    def register_alias(self, alias: str, command_id: str) -> Registration:
        self._ensure_open()
        key = _validated_identifier(alias, label="alias")
        target = self._commands.get(normalize_identifier(command_id))
        if target is None:
            return self._reject("unknown_parent", self.plugin_id, command_id)
        if key in self._commands or key in self._aliases:
            return self._reject("duplicate_alias", self.plugin_id, key)
        self._aliases[key] = target
        target.aliases.append(key)
        return Registration("ok", self.plugin_id, key)

    def register_subcommand(
        self, parent: str | Sequence[str], spec: CommandSpec
    ) -> Registration:
        self._ensure_open()
        key = _validated_identifier(spec.id, label="subcommand id")
        owner = self._find_node(parent)
        if owner is None:
            return self._reject("unknown_parent", self._scope_name(parent), key)
        scope = " ".join(owner.path)
        if owner.depth >= self.max_depth:
            return self._reject("nesting_too_deep", scope, key)
        if key in owner.children or key in owner.child_aliases:
            return self._reject("duplicate_id", scope, key)
        owner.children[key] = _Node(
            spec=spec, id=key, depth=owner.depth + 1, path=(*owner.path, key)
        )
        return Registration("ok", scope, key)

    def register_subcommand_alias(
        self, parent: str | Sequence[str], alias: str, subcommand_id: str
    ) -> Registration:
        self._ensure_open()
        key = _validated_identifier(alias, label="alias")
        owner = self._find_node(parent)
        if owner is None:
            return self._reject("unknown_parent", self._scope_name(parent), key)
        scope = " ".join(owner.path)
        target = owner.children.get(normalize_identifier(subcommand_id))
        if target is None:
            return self._reject("unknown_parent", scope, subcommand_id)
        if key in owner.children or key in owner.child_aliases:
            return self._reject("duplicate_alias", scope, key)
        owner.child_aliases[key] = target
        target.aliases.append(key)
        return Registration("ok", scope, key)

    def add(
        self, spec: CommandSpec, *, parent: str | Sequence[str] | None = None
    ) -> list[Registration]:
        """Register ``spec`` with its aliases and nested subcommands."""
        if parent is None:
            first = self.register_command(spec)
        else:
            first = self.register_subcommand(parent, spec)
        results = [first]
        if not first.ok:
            return results
        path = (
            (first.identifier,)
            if parent is None
            else (*self._split_path(parent), first.identifier)
        )
        for alias in spec.aliases:
            if parent is None:
                results.append(self.register_alias(alias, first.identifier))
            else:
                results.append(
                    self.register_subcommand_alias(
                        self._split_path(parent), alias, first.identifier
                    )
                )
        for child in spec.subcommands:
            results.extend(self.add(child, parent=path))
        if parent is None:
            logger.info(
                "registry.command_loaded",
                plugin=self.plugin_id,
                command=first.identifier,
            )
        else:
            logger.debug(
                "registry.subcommand_loaded",
                plugin=self.plugin_id,
                path=" ".join(path),
            )
        return results

    def build(self) -> Registry:
        self._ensure_open()
        self._built = True
        frozen: dict[str, CommandDescriptor] = {}
        for key, node in self._commands.items():
            frozen[key] = self._freeze(node, parent=None)
        aliases = {alias: frozen[node.id] for alias, node in self._aliases.items()}
        return Registry(
            plugin_id=self.plugin_id,
            commands=MappingProxyType(frozen),
            aliases=MappingProxyType(aliases),
        )

    def _freeze(self, node: _Node, *, parent: str | None) -> CommandDescriptor:
        spec = node.spec
        full_id = (
            f"{self.plugin_id}.command.{node.id}"
            if parent is None
            else f"{parent}.subcommand.{node.id}"
        )
        children = {
            key: self._freeze(child, parent=full_id)
            for key, child in node.children.items()
        }
        child_aliases = {
            alias: children[child.id] for alias, child in node.child_aliases.items()
        }
        return CommandDescriptor(
            id=node.id,
            plugin_id=self.plugin_id,
            handler=spec.handler,
            aliases=frozenset(node.aliases),
            subcommands=MappingProxyType(children) if children else _EMPTY,
            subcommand_aliases=(
                MappingProxyType(child_aliases) if child_aliases else _EMPTY
            ),
            prefixes=tuple(prefix for prefix in spec.prefixes if prefix),
            permissions=spec.permissions,
            about=spec.about,
            usage=spec.usage,
            parent=parent,
            depth=node.depth,
        )

    def _find_node(self, parent: str | Sequence[str]) -> _Node | None:
        path = self._split_path(parent)
        if not path:
            return None
        head, *rest = path
        node = self._commands.get(head) or self._aliases.get(head)
        for segment in rest:
            if node is None:
                return None
            node = node.children.get(segment) or node.child_aliases.get(segment)
        return node

    @staticmethod
    def _split_path(parent: str | Sequence[str]) -> tuple[str, ...]:
        segments = parent.split() if isinstance(parent, str) else parent
        return tuple(normalize_identifier(segment) for segment in segments)

    def _scope_name(self, parent: str | Sequence[str]) -> str:
        return " ".join(self._split_path(parent)) or self.plugin_id

    def _reject(
        self, status: RegistrationStatus, scope: str, identifier: str
    ) -> Registration:
        logger.error(
            f"registry.{status}",
            plugin=self.plugin_id,
            scope=scope,
            identifier=identifier,
        )
        return Registration(status, scope, identifier)

    def _ensure_open(self) -> None:
        if self._built:
            raise RuntimeError(
                f"registry for plugin {self.plugin_id!r} is already built"
            )


@dataclass(frozen=True, slots=True, eq=False)
class Registry:
    plugin_id: str
    commands: Mapping[str, CommandDescriptor] = field(default_factory=_empty_map)
    aliases: Mapping[str, CommandDescriptor] = field(default_factory=_empty_map)

    def lookup(self, name: str) -> CommandDescriptor | None:
        key = normalize_identifier(name)
        found = self.commands.get(key)
        if found is None:
            found = self.aliases.get(key)
        return found

    def __iter__(self) -> Iterator[CommandDescriptor]:
        return iter(self.commands.values())

    def __len__(self) -> int:
        return len(self.commands)


class CommandCatalog:
    """Frozen registries of every loaded plugin, in load order."""

    def __init__(self, registries: Iterable[Registry] = ()) -> None:
        self._registries = tuple(registries)
        by_plugin: dict[str, Registry] = {}
        for registry in self._registries:
            if registry.plugin_id in by_plugin:
                raise ValueError(f"duplicate plugin id: {registry.plugin_id}")
            by_plugin[registry.plugin_id] = registry
        self._by_plugin = by_plugin

        index: dict[str, CommandDescriptor] = {}
        for registry in self._registries:
            for name, descriptor in chain(
                registry.commands.items(), registry.aliases.items()
            ):
                existing = index.get(name)
                if existing is None:
                    index[name] = descriptor
                elif existing is not descriptor:
                    logger.warning(
                        "catalog.shadowed",
                        name=name,
                        plugin=registry.plugin_id,
                        winner=existing.plugin_id,
                    )
        self._index = MappingProxyType(index)

        prefixes: list[str] = []
        for descriptor in self.commands():
            for prefix in descriptor.prefixes:
                if prefix not in prefixes:
                    prefixes.append(prefix)
        self._override_prefixes = tuple(prefixes)

    @property
    def registries(self) -> tuple[Registry, ...]:
        return self._registries

    @property
    def plugin_ids(self) -> tuple[str, ...]:
        return tuple(self._by_plugin)

    def registry(self, plugin_id: str) -> Registry | None:
        return self._by_plugin.get(plugin_id)

    def lookup(self, name: str) -> CommandDescriptor | None:
        return self._index.get(normalize_identifier(name))

    def commands(self) -> Iterator[CommandDescriptor]:
        for registry in self._registries:
            yield from registry

    def override_prefixes(self) -> tuple[str, ...]:
        return self._override_prefixes

    def walk(self) -> Iterator[CommandDescriptor]:
        """Every descriptor, depth first, parents before their subcommands."""

        def visit(descriptor: CommandDescriptor) -> Iterator[CommandDescriptor]:
            yield descriptor
            for child in descriptor.subcommands.values():
                yield from visit(child)

        for descriptor in self.commands():
            yield from visit(descriptor)
