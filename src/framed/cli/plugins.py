from __future__ import annotations

from importlib.metadata import EntryPoint
from pathlib import Path

import typer

from ..config import ConfigError
from ..loader import builtin_plugins, get_plugin
from ..logging import setup_logging
from ..plugins import (
    PLUGIN_GROUP,
    entrypoint_distribution_name,
    get_load_errors,
    is_entrypoint_allowed,
    list_entrypoints,
    normalize_allowlist,
)
from .config import _CONFIG_PATH_OPTION, _load_settings_optional


def _print_entrypoints(
    entrypoints: list[EntryPoint],
    *,
    allowlist: set[str] | None,
) -> None:
    typer.echo("installed plugins:")
    if not entrypoints:
        typer.echo("  (none)")
        return
    for ep in entrypoints:
        dist = entrypoint_distribution_name(ep) or "unknown"
        status = ""
        if allowlist is not None:
            allowed = is_entrypoint_allowed(ep, allowlist)
            status = " enabled" if allowed else " disabled"
        typer.echo(f"  {ep.name} ({dist}){status}")


def plugins_cmd(
    load: bool = typer.Option(
        False,
        "--load/--no-load",
        help="Load plugins to validate and surface import errors.",
    ),
    config_path: Path | None = _CONFIG_PATH_OPTION,
) -> None:
    """List discovered plugins and optionally validate them."""
    setup_logging(debug=False, cache_logger_on_first_use=False)
    settings, _ = _load_settings_optional(config_path)
    allowlist = settings.plugins_allowlist if settings is not None else None
    allowlist_set = normalize_allowlist(allowlist)

    typer.echo("built-in plugins:")
    for plugin in builtin_plugins():
        typer.echo(f"  {plugin.id} ({plugin.version})")

    entrypoints = list_entrypoints(PLUGIN_GROUP)
    _print_entrypoints(entrypoints, allowlist=allowlist_set)

    if load:
        for ep in entrypoints:
            if allowlist_set is not None and not is_entrypoint_allowed(
                ep, allowlist_set
            ):
                continue
            try:
                get_plugin(ep.name, allowlist=allowlist)
            except ConfigError:
                continue

    errors = get_load_errors()
    if errors:
        typer.echo("errors:")
        for err in errors:
            dist = err.distribution or "unknown"
            typer.echo(f"  {err.name} ({dist}): {err.error}")
