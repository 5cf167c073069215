"""Turn incoming messages into handler invocations.

A dispatch reads one catalog snapshot from start to finish: prefix
candidates, command lookup, subcommand resolution and the permission gate
all see the same registries even if :meth:`Dispatcher.reload` swaps the
catalog while the handler is still running.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Awaitable, Callable, Mapping, Sequence
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Literal

import anyio

from .commands import CommandContext
from .logging import get_logger, message_context
from .messages import IncomingMessage, author_id
from .model import ParsedMessage, Token
from .permissions import (
    PermissionEvaluator,
    PermissionPolicy,
    PlatformIdentities,
    UserPermissions,
    missing_requirements,
)
from .prefixes import (
    PrefixProvider,
    build_prefix_candidates,
    longest_first,
    mention_prefixes,
    parse_message,
)
from .registry import MAX_SUBCOMMAND_DEPTH, CommandCatalog, CommandDescriptor, Handler
from .settings import DEFAULT_PREFIX, FramedSettings
from .tokenizer import join_tokens
from .transport import Transport

logger = get_logger(__name__)

MAX_REDISPATCH_DEPTH = 4

type PrefixMatchMode = Literal["ordered", "longest"]
type DenialHook = Callable[[CommandContext], Awaitable[None]]

_redispatch_depth: ContextVar[int] = ContextVar("framed_redispatch_depth", default=0)


@dataclass(frozen=True, slots=True)
class SubcommandChain:
    chain: tuple[CommandDescriptor, ...] = ()
    too_deep: bool = False

    @property
    def consumed_count(self) -> int:
        return len(self.chain)


def resolve_subcommand_chain(
    root: CommandDescriptor,
    args: Sequence[Token],
    max_depth: int = MAX_SUBCOMMAND_DEPTH,
) -> SubcommandChain:
    """Walk ``args`` down the subcommand tree of ``root``.

    Stops at the first token that is not a subcommand of the current level.
    A match below ``max_depth`` is logged once and ignored; the chain found so
    far is still used.
    """
    chain: list[CommandDescriptor] = []
    current = root
    depth = 0
    while depth <= max_depth and depth < len(args):
        found = current.find_subcommand(args[depth])
        if found is None:
            break
        if depth == max_depth:
            logger.warning(
                "subcommand.too_deep",
                command=root.full_id,
                token=args[depth],
                max_depth=max_depth,
            )
            return SubcommandChain(chain=tuple(chain), too_deep=True)
        chain.append(found)
        current = found
        depth += 1
    return SubcommandChain(chain=tuple(chain))


@dataclass(frozen=True, slots=True)
class _PrefixPlan:
    candidates: tuple[str, ...]
    shared: frozenset[str]

    def accepts(self, command: CommandDescriptor, prefix: str) -> bool:
        return prefix in command.prefixes or prefix in self.shared


class Dispatcher:
    def __init__(
        self,
        catalog: CommandCatalog,
        *,
        default_prefix: str = DEFAULT_PREFIX,
        prefixes: PrefixProvider | None = None,
        permissions: PermissionEvaluator | None = None,
        transport: Transport | None = None,
        bot_user_id: str | None = None,
        prefix_match: PrefixMatchMode = "ordered",
        keep_quote_chars: bool = False,
        platform_prefixes: Mapping[str, str] | None = None,
        on_denied: DenialHook | None = None,
        max_depth: int = MAX_SUBCOMMAND_DEPTH,
    ) -> None:
        if not default_prefix:
            raise ValueError("default_prefix must be a non-empty string")
        self._catalog = catalog
        self._reload_lock = anyio.Lock()
        self.default_prefix = default_prefix
        self._prefixes = prefixes
        self._permissions = permissions or PermissionPolicy()
        self._transport = transport
        self.bot_user_id = bot_user_id
        self.prefix_match = prefix_match
        self.keep_quote_chars = keep_quote_chars
        self._platform_prefixes = dict(platform_prefixes or {})
        self._on_denied = on_denied
        self.max_depth = max_depth

    @classmethod
    def from_settings(
        cls,
        settings: FramedSettings,
        catalog: CommandCatalog,
        *,
        prefixes: PrefixProvider | None = None,
        transport: Transport | None = None,
        on_denied: DenialHook | None = None,
    ) -> Dispatcher:
        identities: dict[str, PlatformIdentities] = {}
        platform_prefixes: dict[str, str] = {}
        for name in ("discord", "twitch"):
            section = settings.platform(name)
            if section is None:
                continue
            identities[name] = PlatformIdentities(
                owners=frozenset(section.owners),
                admins=frozenset(section.admins),
            )
            if section.default_prefix:
                platform_prefixes[name] = section.default_prefix
        policy = PermissionPolicy(**identities)
        return cls(
            catalog,
            default_prefix=settings.default_prefix,
            prefixes=prefixes,
            permissions=policy,
            transport=transport,
            bot_user_id=settings.bot_user_id,
            prefix_match=settings.prefix_match,
            keep_quote_chars=settings.keep_quote_chars,
            platform_prefixes=platform_prefixes,
            on_denied=on_denied,
        )

    @property
    def catalog(self) -> CommandCatalog:
        return self._catalog

    @property
    def transport(self) -> Transport | None:
        return self._transport

    @property
    def prefixes(self) -> PrefixProvider | None:
        return self._prefixes

    async def reload(self, catalog: CommandCatalog) -> None:
        async with self._reload_lock:
            previous = self._catalog
            self._catalog = catalog
        logger.info(
            "dispatcher.reloaded",
            plugins=list(catalog.plugin_ids),
            previous_plugins=list(previous.plugin_ids),
        )

    def check_permission(
        self, message: IncomingMessage, spec: UserPermissions | None
    ) -> bool:
        return self._permissions(message, spec)

    async def place_prefix(self, message: IncomingMessage) -> str | None:
        place = message.place
        if self._prefixes is not None:
            found = await self._prefixes.lookup(place.id)
            if found:
                return found
        return self._platform_prefixes.get(place.platform)

    async def candidates_for(self, message: IncomingMessage) -> list[str]:
        plan = await self._prefix_plan(message, self._catalog)
        return list(plan.candidates)

    async def accepts_prefix(
        self, message: IncomingMessage, command: CommandDescriptor, prefix: str
    ) -> bool:
        """Whether ``prefix`` can invoke ``command`` in ``message``'s place."""
        plan = await self._prefix_plan(message, self._catalog)
        return plan.accepts(command, prefix)

    async def parse(self, message: IncomingMessage) -> ParsedMessage:
        plan = await self._prefix_plan(message, self._catalog)
        return parse_message(
            message.content, plan.candidates, keep_quote_chars=self.keep_quote_chars
        )

    async def dispatch(self, message: IncomingMessage) -> bool:
        """Run the command ``message`` invokes, if any.

        Returns True only when a handler ran and reported success.
        """
        catalog = self._catalog
        plan = await self._prefix_plan(message, catalog)
        parsed = parse_message(
            message.content, plan.candidates, keep_quote_chars=self.keep_quote_chars
        )
        if parsed.prefix is None or parsed.command_name is None:
            return False
        command = catalog.lookup(parsed.command_name)
        if command is None:
            logger.debug(
                "dispatch.unknown_command",
                prefix=parsed.prefix,
                command=parsed.command_name,
            )
            return False
        if not plan.accepts(command, parsed.prefix):
            logger.debug(
                "dispatch.prefix_mismatch",
                prefix=parsed.prefix,
                command=command.full_id,
            )
            return False
        resolved = resolve_subcommand_chain(command, parsed.args, self.max_depth)
        ctx = CommandContext(
            message=parsed.with_args(parsed.args[resolved.consumed_count :]),
            source=message,
            command=command,
            chain=resolved.chain,
            dispatcher=self,
        )
        with message_context(
            platform=message.platform,
            place_id=message.place.id,
            command=ctx.target.full_id,
        ):
            return await self._invoke(ctx)

    async def redispatch(self, source: IncomingMessage, content: str) -> bool:
        """Dispatch ``content`` as if ``source`` had said it."""
        depth = _redispatch_depth.get()
        if depth >= MAX_REDISPATCH_DEPTH:
            logger.error("dispatch.redispatch_loop", content=content, depth=depth)
            return False
        token = _redispatch_depth.set(depth + 1)
        try:
            return await self.dispatch(dataclasses.replace(source, content=content))
        finally:
            _redispatch_depth.reset(token)

    async def _prefix_plan(
        self, message: IncomingMessage, catalog: CommandCatalog
    ) -> _PrefixPlan:
        place_prefix = await self.place_prefix(message)
        mentions = mention_prefixes(self.bot_user_id)
        candidates = build_prefix_candidates(
            command_prefixes=catalog.override_prefixes(),
            place_prefix=place_prefix,
            mentions=mentions,
            default_prefix=self.default_prefix,
        )
        if self.prefix_match == "longest":
            candidates = longest_first(candidates)
        shared = {self.default_prefix, *mentions}
        if place_prefix:
            shared.add(place_prefix)
        return _PrefixPlan(candidates=tuple(candidates), shared=frozenset(shared))

    async def _invoke(self, ctx: CommandContext) -> bool:
        target = ctx.target
        spec = ctx.permissions
        if (
            spec is not None
            and spec.check_automatically
            and not self.check_permission(ctx.source, spec)
        ):
            logger.info(
                "command.denied",
                author=author_id(ctx.source),
                missing=missing_requirements(spec),
            )
            if self._on_denied is not None:
                await self._on_denied(ctx)
            return False
        if target.handler is None:
            logger.warning("command.no_handler")
            return False
        try:
            result = await target.handler(ctx)
        except Exception as exc:
            logger.exception(
                "command.failed",
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            return False
        return result is None or bool(result)


def redirect_to(target: str) -> Handler:
    """A handler that re-runs the invocation as ``<prefix><target> <args>``.

    ``target`` may name a subcommand path, e.g. ``"group edit"``. The matched
    prefix is kept when the destination accepts it; otherwise the
    destination's own first prefix is used, or the place or default prefix.
    """
    words = target.split()
    if not words:
        raise ValueError("redirect target must name a command")
    replacement = " ".join(words)

    async def handler(ctx: CommandContext) -> bool:
        dispatcher = ctx.dispatcher
        prefix = ctx.message.prefix or dispatcher.default_prefix
        destination = dispatcher.catalog.lookup(words[0])
        if destination is not None and not await dispatcher.accepts_prefix(
            ctx.source, destination, prefix
        ):
            if destination.prefixes:
                prefix = destination.prefixes[0]
            else:
                place_prefix = await dispatcher.place_prefix(ctx.source)
                prefix = place_prefix or dispatcher.default_prefix
        content = f"{prefix}{replacement}"
        rest = join_tokens(ctx.args, dispatcher.keep_quote_chars)
        if rest:
            content = f"{content} {rest}"
        logger.debug(
            "dispatch.redirect",
            source=ctx.target.full_id,
            target=replacement,
        )
        return await dispatcher.redispatch(ctx.source, content)

    return handler
