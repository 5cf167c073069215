from __future__ import annotations

from pathlib import Path

import msgspec

from .logging import get_logger
from .state_store import JsonStateStore

logger = get_logger(__name__)

STATE_VERSION = 1


class _PlacePrefs(msgspec.Struct, forbid_unknown_fields=False):
    prefix: str | None = None


class _PrefixState(msgspec.Struct, forbid_unknown_fields=False):
    version: int
    places: dict[str, _PlacePrefs] = msgspec.field(default_factory=dict)


def _normalize_prefix(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _new_state() -> _PrefixState:
    return _PrefixState(version=STATE_VERSION, places={})


class PrefixStore(JsonStateStore[_PrefixState]):
    """Per-place prefixes persisted next to the config file."""

    def __init__(self, path: Path) -> None:
        super().__init__(
            path,
            version=STATE_VERSION,
            state_type=_PrefixState,
            state_factory=_new_state,
            log_prefix="prefix_store",
            logger=logger,
        )

    async def lookup(self, place_id: str) -> str | None:
        async with self._lock:
            self._reload_locked_if_needed()
            place = self._state.places.get(place_id)
            if place is None:
                return None
            return _normalize_prefix(place.prefix)

    async def set_prefix(self, place_id: str, prefix: str | None) -> None:
        normalized = _normalize_prefix(prefix)
        async with self._lock:
            self._reload_locked_if_needed()
            if normalized is None:
                if self._state.places.pop(place_id, None) is None:
                    return
                self._save_locked()
                logger.info("prefix_store.cleared", place_id=place_id)
                return
            place = self._state.places.setdefault(place_id, _PlacePrefs())
            place.prefix = normalized
            self._save_locked()
            logger.info("prefix_store.updated", place_id=place_id, prefix=normalized)

    async def clear_prefix(self, place_id: str) -> None:
        await self.set_prefix(place_id, None)

    async def snapshot(self) -> dict[str, str]:
        async with self._lock:
            self._reload_locked_if_needed()
            return {
                place_id: prefix
                for place_id, place in self._state.places.items()
                if (prefix := _normalize_prefix(place.prefix)) is not None
            }
