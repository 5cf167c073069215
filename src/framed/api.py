"""Stable public API for framed plugins."""

from __future__ import annotations

from .commands import CommandContext
from .config import ConfigError
from .dispatch import Dispatcher, SubcommandChain, redirect_to, resolve_subcommand_chain
from .loader import Plugin
from .logging import get_logger
from .messages import (
    ConsoleMessage,
    DiscordMessage,
    IncomingMessage,
    MissingRequiredFieldError,
    TwitchMessage,
)
from .model import ParsedMessage, Place
from .permissions import DiscordPermissions, UserPermissions
from .prefixes import MutablePrefixProvider, PrefixProvider, resolve_prefix
from .registry import (
    CommandDescriptor,
    CommandSpec,
    Registration,
    RegistryBuilder,
)
from .tokenizer import strip_quotes, tokenize
from .transport import MessageRef, RenderedMessage, SendOptions, Transport

FRAMED_PLUGIN_API_VERSION = 1

__all__ = [
    "FRAMED_PLUGIN_API_VERSION",
    "CommandContext",
    "CommandDescriptor",
    "CommandSpec",
    "ConfigError",
    "ConsoleMessage",
    "DiscordMessage",
    "DiscordPermissions",
    "Dispatcher",
    "IncomingMessage",
    "MessageRef",
    "MissingRequiredFieldError",
    "MutablePrefixProvider",
    "ParsedMessage",
    "Place",
    "Plugin",
    "PrefixProvider",
    "Registration",
    "RegistryBuilder",
    "RenderedMessage",
    "SendOptions",
    "SubcommandChain",
    "Transport",
    "TwitchMessage",
    "UserPermissions",
    "get_logger",
    "redirect_to",
    "resolve_prefix",
    "resolve_subcommand_chain",
    "strip_quotes",
    "tokenize",
]
