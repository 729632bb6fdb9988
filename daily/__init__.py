"""Daily character puzzle: target selection, attempt state and the play API."""

from .routes import create_daily_blueprint
from .session import DailyPuzzleSession, GuessOutcome

__all__ = ["create_daily_blueprint", "DailyPuzzleSession", "GuessOutcome"]
