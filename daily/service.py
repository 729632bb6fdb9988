"""Daily target, attempt persistence and guess verdicts via Supabase or the local SQL store."""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, Optional

from flask import current_app, has_app_context
from sqlalchemy.exc import IntegrityError

from extensions import db
from daily.models import DailyCharacter, GameAttempt
from remote import RemoteServiceError, TransientError, remote_read, remote_write

DAILY_TABLE = "daily_characters"
ATTEMPTS_TABLE = "game_attempts"
ATTEMPT_CONFLICT_KEY = "user_id,date"


class DailyGateway:
    """Remote collaborators of a daily puzzle session.

    Reads raise :class:`TransientError` once their retries are exhausted;
    writes raise :class:`RemoteServiceError` without retrying.
    """

    def __init__(self, client=None):
        self.client = client

    @classmethod
    def from_app(cls) -> "DailyGateway":
        return cls(_get_supabase_client())

    # -----------------------------
    # Daily target
    # -----------------------------

    def fetch_daily_character_id(self, day: date) -> Optional[str]:
        if self.client:
            resp = remote_read(
                lambda: self.client.table(DAILY_TABLE)
                .select("character_id")
                .eq("date", day.isoformat())
                .limit(1)
                .execute(),
                label="Daily character fetch",
            )
            rows = getattr(resp, "data", None) or []
            return str(rows[0]["character_id"]) if rows and rows[0].get("character_id") else None

        row = DailyCharacter.query.filter_by(date=day).first()
        return row.character_id if row else None

    def create_daily_character(self, day: date, character_id: str) -> str:
        """Persist the assignment; when another caller got there first, their choice wins."""
        if self.client:
            try:
                remote_write(
                    lambda: self.client.table(DAILY_TABLE)
                    .insert({"date": day.isoformat(), "character_id": character_id}, returning="minimal")
                    .execute(),
                    label="Daily character insert",
                )
            except RemoteServiceError as exc:
                if not _is_supabase_conflict(exc):
                    raise
            winner = self.fetch_daily_character_id(day)
            return winner or character_id

        db.session.add(DailyCharacter(date=day, character_id=character_id))
        try:
            db.session.commit()
            return character_id
        except IntegrityError:
            db.session.rollback()
            existing = DailyCharacter.query.filter_by(date=day).first()
            return existing.character_id if existing else character_id

    # -----------------------------
    # Attempts
    # -----------------------------

    def fetch_attempt(self, user_id: str, day: date) -> Optional[Dict[str, Any]]:
        if self.client:
            resp = remote_read(
                lambda: self.client.table(ATTEMPTS_TABLE)
                .select("guesses, lives_remaining, found, won")
                .eq("user_id", user_id)
                .eq("date", day.isoformat())
                .limit(1)
                .execute(),
                label="Attempt fetch",
            )
            rows = getattr(resp, "data", None) or []
            return rows[0] if rows else None

        row = GameAttempt.query.filter_by(user_id=user_id, date=day).first()
        if not row:
            return None
        return {
            "guesses": list(row.guesses or []),
            "lives_remaining": row.lives_remaining,
            "found": row.found,
            "won": row.won,
        }

    def upsert_attempt(self, user_id: str, day: date, row: Dict[str, Any]) -> None:
        if self.client:
            remote_write(
                lambda: self.client.table(ATTEMPTS_TABLE)
                .upsert(row, on_conflict=ATTEMPT_CONFLICT_KEY, returning="minimal")
                .execute(),
                label="Attempt upsert",
            )
            return

        attempt = GameAttempt.query.filter_by(user_id=user_id, date=day).first()
        if attempt is None:
            attempt = GameAttempt(user_id=user_id, date=day)
            db.session.add(attempt)
        attempt.guesses = list(row.get("guesses") or [])
        attempt.lives_remaining = int(row.get("lives_remaining", 0))
        attempt.found = bool(row.get("found"))
        attempt.won = bool(row.get("won"))
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise RemoteServiceError("Attempt upsert conflicted", payload={"error": "attempt_save_failed"}) from exc

    # -----------------------------
    # Verdicts
    # -----------------------------

    def validate_guess(self, character_id: str, day: date) -> Optional[bool]:
        """Server verdict for a guess; None when the check is inconclusive."""
        if self.client:
            try:
                resp = remote_read(
                    lambda: self.client.rpc(
                        "validate_guess",
                        {"p_character_id": character_id, "p_date": day.isoformat()},
                    ).execute(),
                    label="Guess validation",
                )
            except TransientError as exc:
                _log_supabase_warning("validating guess", exc)
                return None
            return _coerce_verdict(getattr(resp, "data", None))

        row = DailyCharacter.query.filter_by(date=day).first()
        if not row:
            return None
        return row.character_id == character_id

    def reveal_target(self, day: date) -> Optional[str]:
        if self.client:
            try:
                resp = remote_read(
                    lambda: self.client.rpc("reveal_daily_character", {"p_date": day.isoformat()}).execute(),
                    label="Reveal character",
                )
            except TransientError as exc:
                _log_supabase_warning("revealing daily character", exc)
                return None
            return _coerce_character_id(getattr(resp, "data", None))

        return self.fetch_daily_character_id(day)


def _coerce_verdict(data: Any) -> Optional[bool]:
    if isinstance(data, list):
        data = data[0] if data else None
    if isinstance(data, dict):
        data = data.get("is_correct", data.get("correct"))
    if isinstance(data, bool):
        return data
    return None


def _coerce_character_id(data: Any) -> Optional[str]:
    if isinstance(data, list):
        data = data[0] if data else None
    if isinstance(data, dict):
        data = data.get("character_id") or data.get("id")
    if data is None or data == "":
        return None
    return str(data)


def _get_supabase_client():
    if not has_app_context():
        return None
    if not current_app.config.get("USE_SUPABASE"):
        return None
    client = current_app.config.get("SUPABASE_CLIENT")
    return client if client else None


def _is_supabase_conflict(exc: Exception) -> bool:
    message = str(exc).lower()
    return "duplicate key value" in message or "unique constraint" in message


def _log_supabase_warning(action: str, exc: Exception) -> None:
    if not has_app_context():
        return
    logger = getattr(current_app, "logger", None)
    if logger:
        logger.warning("Daily Supabase error while %s: %s", action, exc)
