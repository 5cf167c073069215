"""Platform message adapters.

Each platform contributes one frozen dataclass tagged by ``platform``; code
that needs platform specifics matches on the union instead of probing types
ad hoc. Only ``content`` is ever interpreted by the dispatch core.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from .model import Place


class MissingRequiredFieldError(ValueError):
    def __init__(self, platform: str, field_name: str) -> None:
        super().__init__(
            f"{platform} message is missing required field {field_name!r}"
        )
        self.platform = platform
        self.field_name = field_name


def _require(platform: str, **values: object) -> None:
    for name, value in values.items():
        if value is None or (isinstance(value, str) and not value.strip()):
            raise MissingRequiredFieldError(platform, name)


def _require_content(platform: str, content: object) -> None:
    if not isinstance(content, str):
        raise MissingRequiredFieldError(platform, "content")


@dataclass(frozen=True, slots=True)
class DiscordMessage:
    platform: Literal["discord"] = field(default="discord", init=False)
    content: str
    channel_id: str
    author_id: str
    guild_id: str | None = None
    message_id: str | None = None
    member_roles: frozenset[str] = frozenset()
    member_permissions: frozenset[str] = frozenset()
    raw: Any | None = field(default=None, compare=False, hash=False)

    def __post_init__(self) -> None:
        _require_content(self.platform, self.content)
        _require(self.platform, channel_id=self.channel_id, author_id=self.author_id)

    @property
    def is_direct(self) -> bool:
        return self.guild_id is None

    @property
    def place(self) -> Place:
        return Place(id=self.guild_id or self.channel_id, platform="discord")


@dataclass(frozen=True, slots=True)
class TwitchMessage:
    platform: Literal["twitch"] = field(default="twitch", init=False)
    content: str
    channel: str
    user_id: str
    username: str | None = None
    message_id: str | None = None
    badges: frozenset[str] = frozenset()
    raw: Any | None = field(default=None, compare=False, hash=False)

    def __post_init__(self) -> None:
        _require_content(self.platform, self.content)
        _require(self.platform, channel=self.channel, user_id=self.user_id)

    @property
    def channel_id(self) -> str:
        return self.channel

    @property
    def place(self) -> Place:
        return Place(id=self.channel, platform="twitch")


@dataclass(frozen=True, slots=True)
class ConsoleMessage:
    """A line typed into the local console; its author is the operator."""

    platform: Literal["console"] = field(default="console", init=False)
    content: str
    channel_id: str = "console"
    author_id: str = "operator"

    def __post_init__(self) -> None:
        _require_content(self.platform, self.content)
        _require(self.platform, channel_id=self.channel_id, author_id=self.author_id)

    @property
    def place(self) -> Place:
        return Place(id=self.channel_id, platform="console")


type IncomingMessage = DiscordMessage | TwitchMessage | ConsoleMessage


def author_id(message: IncomingMessage) -> str:
    match message:
        case DiscordMessage(author_id=value) | ConsoleMessage(author_id=value):
            return value
        case TwitchMessage(user_id=value):
            return value
