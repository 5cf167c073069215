"""Local console: read lines, dispatch them, print replies."""

from __future__ import annotations

import sys
from collections.abc import AsyncIterable, AsyncIterator
from itertools import count
from typing import TextIO

import anyio

from .dispatch import Dispatcher
from .logging import get_logger
from .messages import ConsoleMessage
from .transport import ChannelId, MessageRef, RenderedMessage, SendOptions

logger = get_logger(__name__)

EXIT_WORDS = frozenset({"exit", "quit"})


class ConsoleTransport:
    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream if stream is not None else sys.stdout
        self._ids = count(1)
        self._closed = False

    async def send(
        self,
        *,
        channel_id: ChannelId,
        message: RenderedMessage,
        options: SendOptions | None = None,
    ) -> MessageRef | None:
        if self._closed:
            logger.warning("console.send_after_close", channel_id=channel_id)
            return None
        self._stream.write(f"{message.text}\n")
        self._stream.flush()
        return MessageRef(channel_id=channel_id, message_id=next(self._ids))

    async def close(self) -> None:
        self._closed = True


async def _stdin_lines() -> AsyncIterator[str]:
    # not closed on exit; stdin belongs to the process
    stdin = anyio.wrap_file(sys.stdin)
    async for line in stdin:
        yield line


async def run_console(
    dispatcher: Dispatcher,
    *,
    lines: AsyncIterable[str] | None = None,
    channel_id: str = "console",
    author_id: str = "operator",
) -> int:
    """Dispatch every non-blank line until EOF or an exit word.

    Returns how many lines ran a handler successfully.
    """
    handled = 0
    source = lines if lines is not None else _stdin_lines()
    async for line in source:
        content = line.rstrip("\r\n")
        if not content.strip():
            continue
        if content.strip().lower() in EXIT_WORDS:
            break
        message = ConsoleMessage(
            content=content, channel_id=channel_id, author_id=author_id
        )
        if await dispatcher.dispatch(message):
            handled += 1
        else:
            logger.debug("console.not_handled", content=content)
    logger.info("console.finished", handled=handled)
    return handled
