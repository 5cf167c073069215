from __future__ import annotations

from functools import partial
from pathlib import Path

import anyio
import typer

from ..console import ConsoleTransport, run_console
from ..dispatch import Dispatcher
from ..logging import get_logger, setup_logging
from ..prefix_store import PrefixStore
from ..prefixes import PrefixProvider, StaticPrefixProvider
from ..settings import FramedSettings
from .config import (
    _CONFIG_PATH_OPTION,
    _config_path_display,
    _load_catalog_or_exit,
    _load_settings_or_exit,
)

logger = get_logger(__name__)


async def _run(dispatcher: Dispatcher, transport: ConsoleTransport) -> int:
    try:
        return await run_console(dispatcher)
    finally:
        await transport.close()


def console_cmd(
    debug: bool = typer.Option(
        False,
        "--debug/--no-debug",
        help="Log dispatch decisions at debug level.",
    ),
    config_path: Path | None = _CONFIG_PATH_OPTION,
) -> None:
    """Dispatch commands typed on stdin; replies go to stdout."""
    setup_logging(debug=debug)
    settings, resolved_path = _load_settings_or_exit(config_path)
    prefixes: PrefixProvider
    if settings is None or resolved_path is None:
        settings = FramedSettings()
        prefixes = StaticPrefixProvider()
        logger.info("console.no_config")
    else:
        state_path = settings.prefix_state_path(resolved_path)
        prefixes = PrefixStore(state_path)
        logger.info("console.config", path=_config_path_display(resolved_path))
    transport = ConsoleTransport()
    dispatcher = Dispatcher.from_settings(
        settings,
        _load_catalog_or_exit(settings, resolved_path),
        prefixes=prefixes,
        transport=transport,
    )
    anyio.run(partial(_run, dispatcher, transport))
