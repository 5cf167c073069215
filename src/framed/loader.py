"""Plugin bootstrap: collect plugins, run their registration, build a catalog."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from importlib.metadata import EntryPoint
from pathlib import Path
from typing import Any

from .config import HOME_CONFIG_PATH, ConfigError
from .logging import get_logger
from .plugins import (
    PLUGIN_GROUP,
    PluginLoadFailed,
    list_entrypoints,
    load_entrypoint,
)
from .registry import CommandCatalog, RegistryBuilder
from .settings import FramedSettings

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class Plugin:
    id: str
    name: str
    register: Callable[[RegistryBuilder], None]
    version: str = "0.0.0"
    description: str | None = None


def _validate_plugin(obj: object, ep: EntryPoint) -> None:
    if not isinstance(obj, Plugin):
        raise TypeError(f"{ep.value} is not a framed Plugin")
    if obj.id != ep.name:
        raise ValueError(
            f"{ep.value} declares plugin id {obj.id!r}, entry point is {ep.name!r}"
        )


def builtin_plugins() -> tuple[Plugin, ...]:
    from .builtins import core

    return (core.PLUGIN,)


def load_plugins(
    *,
    allowlist: Iterable[str] | None = None,
    include_builtins: bool = True,
) -> list[Plugin]:
    """Built-in plugins first, then installed ones sorted by entry-point name.

    Entry points that fail to import or validate are skipped; the failure is
    kept in :func:`framed.plugins.get_load_errors`.
    """
    allowed = list(allowlist) if allowlist is not None else None
    loaded: list[Plugin] = list(builtin_plugins()) if include_builtins else []
    for ep in list_entrypoints(PLUGIN_GROUP, allowlist=allowed):
        try:
            plugin = load_entrypoint(
                PLUGIN_GROUP, ep.name, allowlist=allowed, validator=_validate_plugin
            )
        except PluginLoadFailed as exc:
            logger.warning("loader.plugin_skipped", plugin=ep.name, error=str(exc))
            continue
        loaded.append(plugin)
    return loaded


def get_plugin(plugin_id: str, *, allowlist: Iterable[str] | None = None) -> Plugin:
    plugins = load_plugins(allowlist=allowlist)
    for plugin in plugins:
        if plugin.id == plugin_id:
            return plugin
    available = ", ".join(sorted(plugin.id for plugin in plugins))
    raise ConfigError(f"Unknown plugin {plugin_id!r}. Available: {available}.")


def build_catalog(
    plugins: Iterable[Plugin],
    *,
    configs: Mapping[str, Mapping[str, Any]] | None = None,
) -> CommandCatalog:
    """Run each plugin's registration and freeze the results in load order.

    ``configs`` maps plugin ids to their configuration tables.
    """
    configs = configs or {}
    registries = []
    seen: set[str] = set()
    for plugin in plugins:
        if plugin.id in seen:
            logger.error("loader.duplicate_plugin", plugin=plugin.id)
            continue
        seen.add(plugin.id)
        builder = RegistryBuilder(plugin.id, config=configs.get(plugin.id))
        try:
            plugin.register(builder)
        except Exception as exc:
            logger.exception(
                "loader.register_failed",
                plugin=plugin.id,
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            continue
        registry = builder.build()
        registries.append(registry)
        logger.info(
            "loader.plugin_loaded",
            plugin=plugin.id,
            version=plugin.version,
            commands=len(registry),
        )
    return CommandCatalog(registries)


def load_catalog(
    settings: FramedSettings | None = None,
    *,
    config_path: Path | None = None,
) -> CommandCatalog:
    if settings is None:
        return build_catalog(load_plugins())
    plugins = load_plugins(allowlist=settings.plugins_allowlist)
    path = config_path if config_path is not None else HOME_CONFIG_PATH
    configs = {
        plugin.id: settings.plugin_config(plugin.id, config_path=path)
        for plugin in plugins
    }
    return build_catalog(plugins, configs=configs)
