from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .logging import get_logger
from .messages import ConsoleMessage, DiscordMessage, IncomingMessage, TwitchMessage
from .model import ParsedMessage, Place, Token
from .permissions import UserPermissions
from .registry import CommandDescriptor
from .transport import MessageRef, RenderedMessage, SendOptions

if TYPE_CHECKING:
    from .dispatch import Dispatcher

logger = get_logger(__name__)


def effective_permissions(
    command: CommandDescriptor, chain: Sequence[CommandDescriptor]
) -> UserPermissions | None:
    """The deepest permission spec along ``command`` and its resolved chain."""
    for descriptor in reversed(chain):
        if descriptor.permissions is not None:
            return descriptor.permissions
    return command.permissions


def _reply_ref(source: IncomingMessage) -> MessageRef | None:
    match source:
        case DiscordMessage(message_id=str() as message_id):
            return MessageRef(
                channel_id=source.channel_id, message_id=message_id, raw=source.raw
            )
        case TwitchMessage(message_id=str() as message_id):
            return MessageRef(
                channel_id=source.channel, message_id=message_id, raw=source.raw
            )
        case ConsoleMessage() | DiscordMessage() | TwitchMessage():
            return None


@dataclass(frozen=True, slots=True)
class CommandContext:
    """What a handler sees for one invocation.

    ``message.args`` excludes the command token and every subcommand token
    consumed while resolving ``chain``.
    """

    message: ParsedMessage
    source: IncomingMessage
    command: CommandDescriptor
    chain: tuple[CommandDescriptor, ...]
    dispatcher: Dispatcher

    @property
    def target(self) -> CommandDescriptor:
        return self.chain[-1] if self.chain else self.command

    @property
    def args(self) -> tuple[Token, ...]:
        return self.message.args

    @property
    def place(self) -> Place:
        return self.source.place

    @property
    def permissions(self) -> UserPermissions | None:
        return effective_permissions(self.command, self.chain)

    def has_permission(self, spec: UserPermissions | None = None) -> bool:
        return self.dispatcher.check_permission(
            self.source, self.permissions if spec is None else spec
        )

    async def reply(self, text: str, *, notify: bool = True) -> MessageRef | None:
        transport = self.dispatcher.transport
        if transport is None:
            logger.warning("command.reply_dropped", command=self.target.full_id)
            return None
        return await transport.send(
            channel_id=self.source.channel_id,
            message=RenderedMessage(text=text),
            options=SendOptions(reply_to=_reply_ref(self.source), notify=notify),
        )
