from __future__ import annotations

import typer

from .. import __version__
from .console import console_cmd
from .inspect_cmd import commands_cmd, parse_cmd
from .plugins import plugins_cmd


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


def app_main(
    version: bool = typer.Option(
        False,
        "--version",
        help="Show the version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Command dispatch core for chat bots."""


def create_app() -> typer.Typer:
    app = typer.Typer(
        add_completion=False,
        no_args_is_help=True,
        help="Command dispatch core for chat bots.",
    )
    app.callback()(app_main)
    app.command(name="parse")(parse_cmd)
    app.command(name="commands")(commands_cmd)
    app.command(name="plugins")(plugins_cmd)
    app.command(name="console")(console_cmd)
    return app


def main() -> None:
    app = create_app()
    app()


if __name__ == "__main__":
    main()
