"""Profile counters and leaderboard reads, via Supabase or the local SQL store."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from flask import current_app, has_app_context
from sqlalchemy import update

from extensions import db
from accounts.models import PlayerProfile
from remote import RemoteServiceError, TransientError, remote_read, remote_write

PROFILES_TABLE = "profiles"
STAT_COLUMNS = ("games_played", "wins")


class ProfileGateway:
    """Stat increments and profile reads for the header and rank pages."""

    def __init__(self, client=None):
        self.client = client

    @classmethod
    def from_app(cls) -> "ProfileGateway":
        return cls(_get_supabase_client())

    def increment_games_played(self, user_id: str) -> None:
        self._increment(user_id, "games_played")

    def increment_wins(self, user_id: str) -> None:
        self._increment(user_id, "wins")

    def fetch_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        if self.client:
            resp = remote_read(
                lambda: self.client.table(PROFILES_TABLE)
                .select("id, display_name, avatar_url, wins, games_played")
                .eq("id", user_id)
                .limit(1)
                .execute(),
                label="Profile fetch",
            )
            rows = getattr(resp, "data", None) or []
            return rows[0] if rows else None

        profile = db.session.get(PlayerProfile, user_id)
        return profile.to_dict() if profile else None

    def fetch_rank_profiles(self) -> List[Dict[str, Any]]:
        """Leaderboard rows; prefers the `get_rank_profiles` RPC, falls back to the table."""
        if self.client:
            try:
                resp = remote_read(
                    lambda: self.client.rpc("get_rank_profiles", {}).execute(),
                    label="Rank RPC",
                )
                data = getattr(resp, "data", None)
                if data:
                    return list(data)
            except TransientError as exc:
                _log_supabase_warning("loading rank profiles via RPC", exc)

            resp = remote_read(
                lambda: self.client.table(PROFILES_TABLE)
                .select("id, display_name, wins, games_played")
                .execute(),
                label="Rank profiles fetch",
            )
            return list(getattr(resp, "data", None) or [])

        return [profile.to_dict() for profile in PlayerProfile.query.all()]

    def _increment(self, user_id: str, column: str) -> None:
        if column not in STAT_COLUMNS:
            raise ValueError(f"Unknown profile stat: {column}")
        if not user_id:
            return

        if self.client:
            try:
                remote_write(
                    lambda: self.client.rpc(
                        "increment_profile_stat",
                        {"p_user_id": user_id, "p_column": column},
                    ).execute(),
                    label=f"Increment {column}",
                )
                return
            except RemoteServiceError as exc:
                _log_supabase_warning(f"incrementing {column} via RPC", exc)
            self._increment_read_then_write(user_id, column)
            return

        self._increment_sql(user_id, column)

    def _increment_read_then_write(self, user_id: str, column: str) -> None:
        # Not atomic: two tabs racing can under-count. Only used when the RPC is unavailable.
        resp = remote_read(
            lambda: self.client.table(PROFILES_TABLE).select(column).eq("id", user_id).limit(1).execute(),
            label=f"Read {column}",
        )
        rows = getattr(resp, "data", None) or []
        if not rows:
            return
        current = rows[0].get(column) or 0
        remote_write(
            lambda: self.client.table(PROFILES_TABLE).update({column: current + 1}).eq("id", user_id).execute(),
            label=f"Write {column}",
        )

    def _increment_sql(self, user_id: str, column: str) -> None:
        if db.session.get(PlayerProfile, user_id) is None:
            db.session.add(PlayerProfile(id=user_id, games_played=0, wins=0))
            db.session.flush()
        stat = getattr(PlayerProfile, column)
        db.session.execute(
            update(PlayerProfile).where(PlayerProfile.id == user_id).values({column: stat + 1})
        )
        db.session.commit()


def _get_supabase_client():
    if not has_app_context():
        return None
    if not current_app.config.get("USE_SUPABASE"):
        return None
    client = current_app.config.get("SUPABASE_CLIENT")
    return client if client else None


def _log_supabase_warning(action: str, exc: Exception) -> None:
    if not has_app_context():
        return
    logger = getattr(current_app, "logger", None)
    if logger:
        logger.warning("Profiles Supabase error while %s: %s", action, exc)
