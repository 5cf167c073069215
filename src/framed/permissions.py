"""Permission specs and the default evaluator.

A command without a permission spec is open to everyone. Otherwise the rules
depend on the platform the message came from:

* Discord: configured owners and admins always pass. A spec without a
  ``discord`` section only admits them. Then, in order: the author's id is in
  ``users``; the member holds every permission in ``permissions`` (default
  ``ADMINISTRATOR``, and ``ADMINISTRATOR`` implies everything); the member
  has any role in ``roles``.
* Twitch: not evaluated yet; allowed with a warning.
* Console: the local operator is always allowed.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol

from .logging import get_logger
from .messages import ConsoleMessage, DiscordMessage, IncomingMessage, TwitchMessage

logger = get_logger(__name__)

ADMINISTRATOR = "ADMINISTRATOR"


def _normalize_permission_names(values: Iterable[str]) -> frozenset[str]:
    return frozenset(value.strip().upper() for value in values if value.strip())


@dataclass(frozen=True, slots=True)
class DiscordPermissions:
    users: frozenset[str] = frozenset()
    permissions: frozenset[str] = frozenset()
    roles: frozenset[str] = frozenset()

    @classmethod
    def of(
        cls,
        *,
        users: Iterable[str] = (),
        permissions: Iterable[str] = (),
        roles: Iterable[str] = (),
    ) -> DiscordPermissions:
        return cls(
            users=frozenset(users),
            permissions=_normalize_permission_names(permissions),
            roles=frozenset(roles),
        )


@dataclass(frozen=True, slots=True)
class UserPermissions:
    # False means the handler checks permissions itself via ctx.has_permission()
    check_automatically: bool = True
    discord: DiscordPermissions | None = None


class PermissionEvaluator(Protocol):
    def __call__(
        self, message: IncomingMessage, spec: UserPermissions | None
    ) -> bool: ...


@dataclass(frozen=True, slots=True)
class PlatformIdentities:
    owners: frozenset[str] = field(default_factory=frozenset)
    admins: frozenset[str] = field(default_factory=frozenset)


class PermissionPolicy:
    def __init__(
        self,
        *,
        discord: PlatformIdentities | None = None,
        twitch: PlatformIdentities | None = None,
        check_owner: bool = True,
        check_admin: bool = True,
    ) -> None:
        self.discord = discord or PlatformIdentities()
        self.twitch = twitch or PlatformIdentities()
        self.check_owner = check_owner
        self.check_admin = check_admin

    def __call__(self, message: IncomingMessage, spec: UserPermissions | None) -> bool:
        if spec is None:
            return True
        match message:
            case DiscordMessage():
                return self._discord_allows(message, spec)
            case TwitchMessage():
                logger.warning(
                    "permissions.twitch_unsupported", channel=message.channel
                )
                return True
            case ConsoleMessage():
                return True

    def _discord_allows(self, message: DiscordMessage, spec: UserPermissions) -> bool:
        author = message.author_id
        if self.check_owner and author in self.discord.owners:
            return True
        if self.check_admin and author in self.discord.admins:
            return True
        rules = spec.discord
        if rules is None:
            return False
        if author in rules.users:
            return True
        if message.is_direct:
            # no member object outside a guild
            return False
        granted = _normalize_permission_names(message.member_permissions)
        required = rules.permissions or frozenset({ADMINISTRATOR})
        if ADMINISTRATOR in granted or required <= granted:
            return True
        return not rules.roles.isdisjoint(message.member_roles)


def missing_requirements(spec: UserPermissions | None) -> dict[str, list[str]]:
    """Summarize what a denied user would need, for denial notices."""
    if spec is None or spec.discord is None:
        return {}
    rules = spec.discord
    summary: dict[str, list[str]] = {}
    if rules.permissions:
        summary["permissions"] = sorted(rules.permissions)
    if rules.roles:
        summary["roles"] = sorted(rules.roles)
    if rules.users:
        summary["users"] = sorted(rules.users)
    return summary
