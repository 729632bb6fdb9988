"""Leaderboard ordering."""

from __future__ import annotations

from typing import Iterable, List, Optional


def sort_rank_profiles(profiles: Iterable[dict]) -> List[dict]:
    """Most wins first, then fewest games played, then display name."""

    def _key(profile: dict):
        wins = profile.get("wins") or 0
        games = profile.get("games_played") or 0
        name = (profile.get("display_name") or "").strip().casefold()
        return (-wins, games, name)

    return sorted(profiles, key=_key)


def rank_position(profiles: Iterable[dict], user_id: Optional[str]) -> Optional[int]:
    """1-based position of ``user_id`` on the sorted leaderboard."""
    if not user_id:
        return None
    for index, profile in enumerate(sort_rank_profiles(profiles), start=1):
        if str(profile.get("id")) == str(user_id):
            return index
    return None
