"""Rank, wins and display name for the header, with a stale-cache flag."""

from __future__ import annotations

from typing import Any, Dict, Optional

from flask import current_app

from browser_cache import LocalCache
from remote import TransientError
from accounts.ranking import rank_position
from accounts.service import ProfileGateway


def load_header_stats(
    user_id: Optional[str],
    gateway: ProfileGateway,
    cache: LocalCache,
    ttl_seconds: float = 120,
) -> Dict[str, Any]:
    """Fresh stats when the backend answers, otherwise the cached copy marked stale."""
    if not user_id:
        return {"rank": None, "wins": 0, "display_name": None, "stale": False}

    try:
        profile = gateway.fetch_profile(user_id) or {}
        rank = rank_position(gateway.fetch_rank_profiles(), user_id)
    except TransientError as exc:
        current_app.logger.warning("Header stats refresh failed for %s: %s", user_id, exc)
        cached = cache.load_header_stats(ttl_seconds)
        if cached is None:
            return {"rank": None, "wins": 0, "display_name": None, "stale": True}
        stats, _expired = cached
        return {**stats, "stale": True}

    stats = {
        "rank": rank,
        "wins": profile.get("wins") or 0,
        "display_name": profile.get("display_name"),
    }
    cache.save_header_stats(stats)
    return {**stats, "stale": False}


def peek_header_stats(cache: LocalCache, ttl_seconds: float = 120) -> Optional[Dict[str, Any]]:
    """Cached stats to render ahead of a fresh fetch; always flagged stale."""
    cached = cache.load_header_stats(ttl_seconds)
    if cached is None:
        return None
    stats, _expired = cached
    return {**stats, "stale": True}
