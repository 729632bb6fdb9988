"""Browser-scoped key/value cache (the signed session cookie in production)."""

from __future__ import annotations

import time
from datetime import date
from typing import Any, Callable, Dict, MutableMapping, Optional, Tuple

ATTEMPT_KEY_PREFIX = "realingdle:game-state"
HEADER_STATS_KEY = "realingdle:header-stats"
MAX_ATTEMPT_ENTRIES = 4


class LocalCache:
    """TTL entries, per-date attempt progress and cached header stats.

    ``store`` is any mutable mapping; values written are plain JSON types so a
    cookie-backed session can hold them.
    """

    def __init__(self, store: MutableMapping[str, Any], clock: Callable[[], float] = time.time):
        self.store = store
        self.clock = clock

    # -----------------------------
    # Generic TTL entries
    # -----------------------------

    def put(self, key: str, value: Any) -> None:
        self.store[key] = {"value": value, "stored_at": self.clock()}
        _mark_modified(self.store)

    def get_entry(self, key: str) -> Optional[Tuple[Any, float]]:
        raw = self.store.get(key)
        if not isinstance(raw, dict) or "value" not in raw:
            return None
        try:
            stored_at = float(raw.get("stored_at") or 0)
        except (TypeError, ValueError):
            stored_at = 0.0
        return raw["value"], stored_at

    def get_fresh(self, key: str, ttl_seconds: float) -> Optional[Any]:
        entry = self.get_entry(key)
        if entry is None:
            return None
        value, stored_at = entry
        if self.clock() - stored_at > ttl_seconds:
            return None
        return value

    def drop(self, key: str) -> None:
        if key in self.store:
            del self.store[key]
            _mark_modified(self.store)

    # -----------------------------
    # Attempt progress per (date, target)
    # -----------------------------

    @staticmethod
    def attempt_key(day: date, character_id: str) -> str:
        return f"{ATTEMPT_KEY_PREFIX}:{day.isoformat()}:{character_id}"

    def load_attempt(self, day: date, character_id: str) -> Optional[Dict[str, Any]]:
        """Cached progress payload, or None when absent or saved for another target."""
        key = self.attempt_key(day, character_id)
        raw = self.store.get(key)
        if raw is None:
            return None
        if (
            not isinstance(raw, dict)
            or raw.get("dateKey") != day.isoformat()
            or raw.get("characterId") != character_id
        ):
            self.drop(key)
            return None
        return raw

    def save_attempt(self, day: date, character_id: str, payload: Dict[str, Any]) -> None:
        self.store[self.attempt_key(day, character_id)] = {
            **payload,
            "dateKey": day.isoformat(),
            "characterId": character_id,
            "savedAt": self.clock(),
        }
        self._prune_attempts()
        _mark_modified(self.store)

    def _prune_attempts(self) -> None:
        # Cookie-backed stores are small; keep only the most recently touched dates.
        keys = [key for key in list(self.store.keys()) if str(key).startswith(f"{ATTEMPT_KEY_PREFIX}:")]
        if len(keys) <= MAX_ATTEMPT_ENTRIES:
            return
        keys.sort(key=lambda key: _saved_at(self.store.get(key)))
        for key in keys[: len(keys) - MAX_ATTEMPT_ENTRIES]:
            del self.store[key]

    def drop_attempt(self, day: date, character_id: str) -> None:
        self.drop(self.attempt_key(day, character_id))

    # -----------------------------
    # Header stats
    # -----------------------------

    def save_header_stats(self, stats: Dict[str, Any]) -> None:
        self.put(HEADER_STATS_KEY, stats)

    def load_header_stats(self, ttl_seconds: float) -> Optional[Tuple[Dict[str, Any], bool]]:
        """Cached stats and whether they are past their TTL."""
        entry = self.get_entry(HEADER_STATS_KEY)
        if entry is None:
            return None
        value, stored_at = entry
        if not isinstance(value, dict):
            return None
        return value, (self.clock() - stored_at) > ttl_seconds


def _saved_at(raw: Any) -> float:
    if not isinstance(raw, dict):
        return 0.0
    try:
        return float(raw.get("savedAt") or 0)
    except (TypeError, ValueError):
        return 0.0


def _mark_modified(store: MutableMapping[str, Any]) -> None:
    if hasattr(store, "modified"):
        store.modified = True
