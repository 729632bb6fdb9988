"""Local player profile table; mirrors Supabase `profiles` when running without it."""

from extensions import db


class PlayerProfile(db.Model):
    """Win/loss counters and display name for one account."""

    __tablename__ = "profiles"

    id = db.Column(db.String(64), primary_key=True)
    display_name = db.Column(db.String(120), nullable=True)
    avatar_url = db.Column(db.String(500), nullable=True)
    games_played = db.Column(db.Integer, default=0, nullable=False)
    wins = db.Column(db.Integer, default=0, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "avatar_url": self.avatar_url,
            "games_played": self.games_played or 0,
            "wins": self.wins or 0,
        }
