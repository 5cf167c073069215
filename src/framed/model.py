"""Framed domain model types (places, parsed messages)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

type Token = str
type Platform = Literal["discord", "twitch", "console", "none"]


@dataclass(frozen=True, slots=True)
class Place:
    id: str
    platform: Platform


DEFAULT_PLACE = Place(id="default", platform="none")


@dataclass(frozen=True, slots=True)
class ParsedMessage:
    """The result of prefix resolution plus tokenization.

    ``args`` never holds the command token itself; handlers receive a copy
    with any consumed subcommand tokens removed as well.
    """

    raw_content: str
    prefix: str | None = None
    command_name: str | None = None
    args: tuple[Token, ...] = field(default=())
    args_content: str | None = None

    def __post_init__(self) -> None:
        if self.prefix is None and (self.command_name is not None or self.args):
            raise ValueError("a message without a prefix has no command or args")

    @property
    def is_command(self) -> bool:
        return self.prefix is not None and self.command_name is not None

    def with_args(self, args: tuple[Token, ...]) -> ParsedMessage:
        return ParsedMessage(
            raw_content=self.raw_content,
            prefix=self.prefix,
            command_name=self.command_name,
            args=args,
            args_content=self.args_content,
        )
