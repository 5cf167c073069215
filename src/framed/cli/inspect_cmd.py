from __future__ import annotations

from pathlib import Path

import msgspec
import typer

from ..logging import setup_logging
from ..prefixes import longest_first, parse_message
from ..registry import CommandDescriptor
from ..settings import DEFAULT_PREFIX
from ..tokenizer import scan
from .config import (
    _CONFIG_PATH_OPTION,
    _load_catalog_or_exit,
    _load_settings_optional,
)


def _json_list(values: tuple[str, ...]) -> str:
    return msgspec.json.encode(list(values)).decode()


def parse_cmd(
    text: str = typer.Argument(..., help="Message content to parse."),
    prefix: list[str] | None = typer.Option(
        None,
        "--prefix",
        "-p",
        help="Candidate prefix; repeat in priority order.",
    ),
    longest: bool | None = typer.Option(
        None,
        "--longest/--ordered",
        help="Prefer the longest matching prefix over list order. "
        "Defaults to the configured prefix_match.",
    ),
    keep_quotes: bool = typer.Option(
        False,
        "--keep-quotes",
        help="Keep quote and backtick characters in tokens.",
    ),
    config_path: Path | None = _CONFIG_PATH_OPTION,
) -> None:
    """Show how a message splits into prefix, command and arguments."""
    settings, _ = _load_settings_optional(config_path)
    if prefix:
        candidates = list(prefix)
    elif settings is not None:
        candidates = [settings.default_prefix]
    else:
        candidates = [DEFAULT_PREFIX]
    if longest is None:
        longest = settings is not None and settings.prefix_match == "longest"
    if longest:
        candidates = longest_first(candidates)
    keep = keep_quotes or (settings is not None and settings.keep_quote_chars)
    parsed = parse_message(text, candidates, keep_quote_chars=keep)
    if parsed.prefix is None:
        typer.echo("prefix: (none)")
        return
    typer.echo(f"prefix: {parsed.prefix}")
    typer.echo(f"command: {parsed.command_name or '(none)'}")
    typer.echo(f"args: {_json_list(parsed.args)}")
    result = scan(parsed.args_content or "", keep)
    if not result.complete:
        typer.echo(f"unterminated: {result.unterminated}")


def _describe(descriptor: CommandDescriptor) -> str:
    label = descriptor.id
    if descriptor.aliases:
        label = f"{label} ({', '.join(sorted(descriptor.aliases))})"
    if descriptor.prefixes:
        label = f"{label} [prefixes: {' '.join(descriptor.prefixes)}]"
    if descriptor.about:
        label = f"{label} - {descriptor.about}"
    return label


def commands_cmd(
    config_path: Path | None = _CONFIG_PATH_OPTION,
) -> None:
    """List every registered command and subcommand."""
    setup_logging(debug=False, cache_logger_on_first_use=False)
    settings, resolved_path = _load_settings_optional(config_path)
    catalog = _load_catalog_or_exit(settings, resolved_path)
    if not catalog.registries:
        typer.echo("(no plugins)")
        return
    for registry in catalog.registries:
        typer.echo(f"{registry.plugin_id}:")
        if not len(registry):
            typer.echo("  (none)")
            continue
        pending = sorted(registry, key=lambda item: item.id, reverse=True)
        while pending:
            descriptor = pending.pop()
            indent = "  " * (descriptor.depth + 1)
            typer.echo(f"{indent}{_describe(descriptor)}")
            pending.extend(
                sorted(
                    descriptor.subcommands.values(),
                    key=lambda item: item.id,
                    reverse=True,
                )
            )
