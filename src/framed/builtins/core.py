"""The ``core`` plugin: liveness check and per-place prefix management."""

from __future__ import annotations

from .. import __version__
from ..commands import CommandContext
from ..dispatch import redirect_to
from ..loader import Plugin
from ..logging import get_logger
from ..permissions import DiscordPermissions, UserPermissions
from ..prefixes import MutablePrefixProvider
from ..registry import CommandSpec, RegistryBuilder

logger = get_logger(__name__)

PLUGIN_ID = "core"

# admins only; an empty discord section requires ADMINISTRATOR
MANAGE_PREFIX = UserPermissions(discord=DiscordPermissions())


async def ping(ctx: CommandContext) -> bool:
    await ctx.reply("pong")
    return True


async def show_prefix(ctx: CommandContext) -> bool:
    dispatcher = ctx.dispatcher
    prefix = await dispatcher.place_prefix(ctx.source) or dispatcher.default_prefix
    await ctx.reply(f"prefix here is `{prefix}`")
    return True


def _mutable_provider(ctx: CommandContext) -> MutablePrefixProvider | None:
    provider = ctx.dispatcher.prefixes
    if isinstance(provider, MutablePrefixProvider):
        return provider
    return None


async def set_prefix(ctx: CommandContext) -> bool:
    if len(ctx.args) != 1 or not ctx.args[0].strip():
        await ctx.reply(f"usage: {ctx.target.usage}")
        return False
    value = ctx.args[0].strip()
    if any(char.isspace() for char in value):
        await ctx.reply("a prefix cannot contain whitespace")
        return False
    provider = _mutable_provider(ctx)
    if provider is None:
        await ctx.reply("prefixes are read-only here")
        return False
    await provider.set_prefix(ctx.place.id, value)
    logger.info("core.prefix_set", place_id=ctx.place.id, prefix=value)
    await ctx.reply(f"prefix set to `{value}`")
    return True


async def reset_prefix(ctx: CommandContext) -> bool:
    provider = _mutable_provider(ctx)
    if provider is None:
        await ctx.reply("prefixes are read-only here")
        return False
    await provider.clear_prefix(ctx.place.id)
    logger.info("core.prefix_reset", place_id=ctx.place.id)
    await ctx.reply(f"prefix reset to `{ctx.dispatcher.default_prefix}`")
    return True


COMMANDS = (
    CommandSpec(
        id="ping",
        handler=ping,
        about="Checks that the bot is responding.",
    ),
    CommandSpec(
        id="prefix",
        handler=show_prefix,
        about="Shows or changes the command prefix for this place.",
        usage="[show|set <prefix>|reset]",
        subcommands=(
            CommandSpec(
                id="show",
                handler=show_prefix,
                aliases=("get",),
                about="Shows the prefix for this place.",
            ),
            CommandSpec(
                id="set",
                handler=set_prefix,
                permissions=MANAGE_PREFIX,
                about="Sets the prefix for this place.",
                usage="<prefix>",
            ),
            CommandSpec(
                id="reset",
                handler=reset_prefix,
                aliases=("clear",),
                permissions=MANAGE_PREFIX,
                about="Restores the default prefix for this place.",
            ),
        ),
    ),
    CommandSpec(
        id="setprefix",
        handler=redirect_to("prefix set"),
        aliases=("changeprefix",),
        about="Shortcut for `prefix set`.",
        usage="<prefix>",
    ),
)


def register(builder: RegistryBuilder) -> None:
    for spec in COMMANDS:
        builder.add(spec)


PLUGIN = Plugin(
    id=PLUGIN_ID,
    name="Core",
    register=register,
    version=__version__,
    description="Built-in commands shipped with framed.",
)
