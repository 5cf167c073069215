from __future__ import annotations

from pathlib import Path
from typing import NoReturn

import typer

from ..config import ConfigError
from ..loader import load_catalog
from ..registry import CommandCatalog
from ..settings import FramedSettings, load_settings_if_exists

_CONFIG_PATH_OPTION = typer.Option(
    None,
    "--config-path",
    help="Override the default config path.",
)


def _config_path_display(path: Path) -> str:
    home = Path.home()
    try:
        return f"~/{path.relative_to(home)}"
    except ValueError:
        return str(path)


def _exit_config_error(exc: ConfigError, *, code: int = 1) -> NoReturn:
    typer.echo(f"error: {exc}", err=True)
    raise typer.Exit(code=code) from exc


def _load_settings_optional(
    path: Path | None = None,
) -> tuple[FramedSettings | None, Path | None]:
    """Settings used as hints; a broken or missing config means defaults."""
    try:
        loaded = load_settings_if_exists(path)
    except ConfigError:
        return None, None
    if loaded is None:
        return None, None
    return loaded


def _load_settings_or_exit(
    path: Path | None = None,
) -> tuple[FramedSettings | None, Path | None]:
    """Like :func:`_load_settings_optional`, but an invalid config is fatal."""
    try:
        loaded = load_settings_if_exists(path)
    except ConfigError as exc:
        _exit_config_error(exc)
    if loaded is None:
        return None, None
    return loaded


def _load_catalog_or_exit(
    settings: FramedSettings | None, path: Path | None = None
) -> CommandCatalog:
    try:
        return load_catalog(settings, config_path=path)
    except ConfigError as exc:
        _exit_config_error(exc)
