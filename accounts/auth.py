"""Resolve the current player from the external auth service."""

from __future__ import annotations

from typing import Any, Dict, Optional

from flask import current_app, g, request, session

SESSION_TOKEN_KEY = "access_token"
SESSION_PLAYER_KEY = "player"


def get_current_player() -> Optional[Dict[str, Any]]:
    """Return the logged-in player (``id``, ``email``, ``app_metadata``) or None."""
    if "current_player" in g:
        return g.current_player

    client = current_app.config.get("SUPABASE_CLIENT") if current_app.config.get("USE_SUPABASE") else None
    player: Optional[Dict[str, Any]] = None
    if client:
        token = _bearer_token()
        if token:
            player = _lookup_supabase_user(client, token)
    else:
        # Local development without Supabase: trust a player dict placed in the signed session.
        stored = session.get(SESSION_PLAYER_KEY)
        if isinstance(stored, dict) and stored.get("id"):
            player = stored

    g.current_player = player
    return player


def get_current_admin() -> Optional[Dict[str, Any]]:
    player = get_current_player()
    if not player:
        return None
    if (player.get("app_metadata") or {}).get("role") != "admin":
        return None
    return player


def _bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization") or ""
    if header.lower().startswith("bearer "):
        token = header[7:].strip()
        if token:
            return token
    token = session.get(SESSION_TOKEN_KEY)
    return str(token).strip() if token else None


def _lookup_supabase_user(client, token: str) -> Optional[Dict[str, Any]]:
    try:
        resp = client.auth.get_user(token)
    except Exception as exc:  # pragma: no cover - external service dependency
        current_app.logger.warning("Supabase auth lookup failed: %s", exc)
        return None
    user = getattr(resp, "user", None)
    if not user:
        return None
    return {
        "id": str(user.id),
        "email": getattr(user, "email", None),
        "app_metadata": dict(getattr(user, "app_metadata", None) or {}),
        "user_metadata": dict(getattr(user, "user_metadata", None) or {}),
    }
