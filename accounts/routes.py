"""Leaderboard and header stats endpoints."""

from __future__ import annotations

from typing import Callable, Optional

from flask import Blueprint, current_app, jsonify, request, session

from browser_cache import LocalCache
from remote import RemoteServiceError
from accounts.header import load_header_stats, peek_header_stats
from accounts.ranking import sort_rank_profiles
from accounts.service import ProfileGateway

PlayerProvider = Callable[[], Optional[dict]]


def create_accounts_blueprint(current_player_provider: PlayerProvider) -> Blueprint:
    """Factory so the main app can inject its auth lookup."""

    bp = Blueprint("accounts_api", __name__, url_prefix="/api")

    @bp.get("/rank")
    def rank():
        gateway = ProfileGateway.from_app()
        try:
            profiles = gateway.fetch_rank_profiles()
        except RemoteServiceError as exc:
            current_app.logger.warning("Rank fetch failed: %s", exc)
            return jsonify(exc.payload), exc.status_code

        ordered = sort_rank_profiles(profiles)
        return jsonify(
            [
                {
                    "position": index,
                    "id": profile.get("id"),
                    "display_name": (profile.get("display_name") or "").strip() or None,
                    "wins": profile.get("wins") or 0,
                    "games_played": profile.get("games_played") or 0,
                }
                for index, profile in enumerate(ordered, start=1)
            ]
        )

    @bp.get("/header-stats")
    def header_stats():
        player = current_player_provider()
        cache = LocalCache(session)
        ttl = float(current_app.config.get("HEADER_STATS_MAX_AGE_SECONDS", 120))

        if request.args.get("cached") in {"1", "true"}:
            cached = peek_header_stats(cache, ttl)
            if cached is not None:
                return jsonify(cached)

        stats = load_header_stats(
            (player or {}).get("id"),
            ProfileGateway.from_app(),
            cache,
            ttl_seconds=ttl,
        )
        return jsonify(stats)

    return bp
