"""Database models for the daily puzzle; used when Supabase is disabled."""

from datetime import datetime

from extensions import db


class DailyCharacter(db.Model):
    """The character assigned to one calendar date (unique per date, never rewritten)."""

    __tablename__ = "daily_characters"

    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.Date, nullable=False, unique=True, index=True)
    character_id = db.Column(db.String(64), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)


class GameAttempt(db.Model):
    """One player's progress on one date."""

    __tablename__ = "game_attempts"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), index=True, nullable=False)
    date = db.Column(db.Date, nullable=False)
    guesses = db.Column(db.JSON, nullable=False, default=list)
    lives_remaining = db.Column(db.Integer, nullable=False)
    found = db.Column(db.Boolean, default=False, nullable=False)
    won = db.Column(db.Boolean, default=False, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("user_id", "date", name="uq_game_attempt_user_date"),
    )
