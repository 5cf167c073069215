"""Entry-point discovery for framed plugins.

Plugins are advertised by installed distributions under the
``framed.plugins`` entry-point group. Listing never imports anything;
loading imports one entry point, validates it, caches the result and records
failures so the CLI can report them later.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from importlib.metadata import EntryPoint, entry_points
from typing import Any

from .logging import get_logger

logger = get_logger(__name__)

PLUGIN_GROUP = "framed.plugins"

_CANONICAL_RE = re.compile(r"[-_.]+")

type Validator = Callable[[Any, EntryPoint], None]


@dataclass(frozen=True, slots=True)
class PluginLoadError:
    group: str
    name: str
    value: str
    distribution: str | None
    error: str


class PluginLoadFailed(RuntimeError):
    def __init__(self, error: PluginLoadError) -> None:
        super().__init__(f"failed to load plugin {error.name!r}: {error.error}")
        self.error = error


_LOADED: dict[tuple[str, str], Any] = {}
_LOAD_ERRORS: list[PluginLoadError] = []


def canonicalize_distribution_name(value: str) -> str:
    return _CANONICAL_RE.sub("-", value.strip()).lower()


def normalize_allowlist(allowlist: Iterable[str] | None) -> set[str] | None:
    if allowlist is None:
        return None
    normalized = {
        canonicalize_distribution_name(item) for item in allowlist if item.strip()
    }
    return normalized or None


def entrypoint_distribution_name(ep: EntryPoint) -> str | None:
    dist = getattr(ep, "dist", None)
    if dist is None:
        return None
    name = getattr(dist, "name", None)
    if not name:
        return None
    return name


def is_entrypoint_allowed(ep: EntryPoint, allowlist: set[str] | None) -> bool:
    if allowlist is None:
        return True
    dist = entrypoint_distribution_name(ep)
    if dist is None:
        return False
    return canonicalize_distribution_name(dist) in allowlist


def _select(group: str) -> list[EntryPoint]:
    return list(entry_points().select(group=group))


def _record_error(
    group: str, ep: EntryPoint | None, name: str, error: str
) -> PluginLoadError:
    record = PluginLoadError(
        group=group,
        name=name,
        value=ep.value if ep is not None else "",
        distribution=entrypoint_distribution_name(ep) if ep is not None else None,
        error=error,
    )
    _LOAD_ERRORS.append(record)
    logger.error(
        "plugins.load_failed",
        group=group,
        name=name,
        distribution=record.distribution,
        error=error,
    )
    return record


def _duplicate_names(entrypoints: Iterable[EntryPoint]) -> set[str]:
    seen: set[str] = set()
    duplicates: set[str] = set()
    for ep in entrypoints:
        if ep.name in seen:
            duplicates.add(ep.name)
        seen.add(ep.name)
    return duplicates


def list_entrypoints(
    group: str,
    *,
    allowlist: Iterable[str] | None = None,
    reserved_ids: Iterable[str] | None = None,
) -> list[EntryPoint]:
    """Entry points in ``group`` that are unique, unreserved and allowed."""
    allowed = normalize_allowlist(allowlist)
    reserved = {item.lower() for item in reserved_ids or ()}
    found = _select(group)
    duplicates = _duplicate_names(found)
    result: list[EntryPoint] = []
    for ep in found:
        if ep.name in duplicates or ep.name.lower() in reserved:
            continue
        if not is_entrypoint_allowed(ep, allowed):
            continue
        result.append(ep)
    return sorted(result, key=lambda ep: ep.name)


def list_ids(
    group: str,
    *,
    allowlist: Iterable[str] | None = None,
    reserved_ids: Iterable[str] | None = None,
) -> list[str]:
    return [
        ep.name
        for ep in list_entrypoints(
            group, allowlist=allowlist, reserved_ids=reserved_ids
        )
    ]


def load_entrypoint(
    group: str,
    name: str,
    *,
    allowlist: Iterable[str] | None = None,
    validator: Validator | None = None,
) -> Any:
    key = (group, name)
    if key in _LOADED:
        return _LOADED[key]
    matches = [ep for ep in _select(group) if ep.name == name]
    if not matches:
        raise PluginLoadFailed(
            _record_error(group, None, name, "plugin not found")
        )
    if len(matches) > 1:
        dists = ", ".join(
            sorted(entrypoint_distribution_name(ep) or "unknown" for ep in matches)
        )
        raise PluginLoadFailed(
            _record_error(
                group, matches[0], name, f"duplicate plugin id {name!r} ({dists})"
            )
        )
    ep = matches[0]
    if not is_entrypoint_allowed(ep, normalize_allowlist(allowlist)):
        raise PluginLoadFailed(
            _record_error(group, ep, name, "plugin is not enabled")
        )
    try:
        loaded = ep.load()
        if validator is not None:
            validator(loaded, ep)
    except Exception as exc:
        raise PluginLoadFailed(
            _record_error(group, ep, name, f"{exc.__class__.__name__}: {exc}")
        ) from exc
    _LOADED[key] = loaded
    return loaded


def get_load_errors() -> tuple[PluginLoadError, ...]:
    return tuple(_LOAD_ERRORS)


def clear_load_errors(*, group: str | None = None, name: str | None = None) -> None:
    if group is None and name is None:
        _LOAD_ERRORS.clear()
        return
    _LOAD_ERRORS[:] = [
        err
        for err in _LOAD_ERRORS
        if not (
            (group is None or err.group == group)
            and (name is None or err.name == name)
        )
    ]


def reset_plugin_state() -> None:
    _LOADED.clear()
    _LOAD_ERRORS.clear()
