from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from .model import ParsedMessage
from .tokenizer import tokenize


@dataclass(frozen=True, slots=True)
class PrefixMatch:
    prefix: str
    args_content: str


def resolve_prefix(content: str, candidates: Iterable[str]) -> PrefixMatch | None:
    """Return the first candidate that ``content`` starts with.

    List order wins. Callers wanting longest-match semantics pass the
    candidates through :func:`longest_first` beforehand.
    """
    for candidate in candidates:
        if not candidate:
            continue
        if content.startswith(candidate):
            return PrefixMatch(
                prefix=candidate, args_content=content[len(candidate) :].strip()
            )
    return None


def longest_first(candidates: Iterable[str]) -> list[str]:
    return sorted(candidates, key=len, reverse=True)


def mention_prefixes(bot_user_id: str | None) -> tuple[str, ...]:
    if not bot_user_id:
        return ()
    return (f"<@{bot_user_id}>", f"<@!{bot_user_id}>")


def build_prefix_candidates(
    *,
    command_prefixes: Iterable[str] = (),
    place_prefix: str | None = None,
    mentions: Iterable[str] = (),
    default_prefix: str | None = None,
) -> list[str]:
    """Order candidates by specificity, dropping blanks and duplicates."""
    ordered: list[str] = []
    seen: set[str] = set()
    groups: Sequence[Iterable[str]] = (
        command_prefixes,
        (place_prefix,) if place_prefix else (),
        mentions,
        (default_prefix,) if default_prefix else (),
    )
    for group in groups:
        for prefix in group:
            if not prefix or prefix in seen:
                continue
            seen.add(prefix)
            ordered.append(prefix)
    return ordered


def parse_message(
    content: str,
    candidates: Iterable[str],
    *,
    keep_quote_chars: bool = False,
) -> ParsedMessage:
    match = resolve_prefix(content, candidates)
    if match is None:
        return ParsedMessage(raw_content=content)
    tokens = tokenize(match.args_content, keep_quote_chars)
    if not tokens:
        return ParsedMessage(
            raw_content=content,
            prefix=match.prefix,
            args_content=match.args_content,
        )
    return ParsedMessage(
        raw_content=content,
        prefix=match.prefix,
        command_name=tokens[0].lower(),
        args=tuple(tokens[1:]),
        args_content=match.args_content,
    )


class PrefixProvider(Protocol):
    async def lookup(self, place_id: str) -> str | None: ...


@runtime_checkable
class MutablePrefixProvider(PrefixProvider, Protocol):
    async def set_prefix(self, place_id: str, prefix: str | None) -> None: ...

    async def clear_prefix(self, place_id: str) -> None: ...


class StaticPrefixProvider:
    def __init__(self, prefixes: Mapping[str, str] | None = None) -> None:
        self._prefixes = dict(prefixes or {})

    async def lookup(self, place_id: str) -> str | None:
        return self._prefixes.get(place_id)

    async def set_prefix(self, place_id: str, prefix: str | None) -> None:
        cleaned = prefix.strip() if prefix is not None else None
        if not cleaned:
            self._prefixes.pop(place_id, None)
            return
        self._prefixes[place_id] = cleaned

    async def clear_prefix(self, place_id: str) -> None:
        await self.set_prefix(place_id, None)
