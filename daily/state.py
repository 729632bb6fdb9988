"""Attempt state and the guess state machine."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

MAX_LIVES = 10

FRESH = "fresh"
IN_PROGRESS = "in_progress"
WON = "won"
FOUND = "found"
LOST = "lost"

TERMINAL_STATUSES = {WON, FOUND, LOST}


@dataclass(frozen=True)
class AttemptState:
    guesses: List[str] = field(default_factory=list)
    lives: int = MAX_LIVES
    found: bool = False
    won: bool = False
    max_lives: int = MAX_LIVES

    @property
    def game_over(self) -> bool:
        return self.found or self.lives <= 0

    @property
    def status(self) -> str:
        if self.won:
            return WON
        if self.found:
            return FOUND
        if self.lives <= 0:
            return LOST
        if self.guesses:
            return IN_PROGRESS
        return FRESH

    @classmethod
    def fresh(cls, max_lives: int = MAX_LIVES) -> "AttemptState":
        return cls(guesses=[], lives=max_lives, max_lives=max_lives)

    def apply_guess(self, character_id: str, *, correct: bool, is_today: bool) -> "AttemptState":
        """Next state after a guess; terminal states absorb every further guess."""
        if self.game_over:
            return self
        guesses = [*self.guesses, character_id]
        if correct:
            return replace(self, guesses=guesses, found=True, won=is_today)
        return replace(self, guesses=guesses, lives=max(0, self.lives - 1))

    def to_payload(self) -> Dict[str, Any]:
        """Local cache shape."""
        return {
            "guesses": list(self.guesses),
            "lives": self.lives,
            "found": self.found,
            "won": self.won,
            "gameOver": self.game_over,
        }

    def to_remote_row(self, user_id: str, day_iso: str) -> Dict[str, Any]:
        return {
            "user_id": user_id,
            "date": day_iso,
            "guesses": list(self.guesses),
            "lives_remaining": self.lives,
            "found": self.found,
            "won": self.won,
        }

    @classmethod
    def from_payload(cls, raw: Optional[Dict[str, Any]], max_lives: int = MAX_LIVES) -> Optional["AttemptState"]:
        """Accept either the local cache shape or a remote row; None when unusable."""
        if not isinstance(raw, dict):
            return None
        guesses = raw.get("guesses")
        if not isinstance(guesses, list):
            return None
        lives_raw = raw.get("lives", raw.get("lives_remaining"))
        try:
            lives = int(lives_raw)
        except (TypeError, ValueError):
            return None
        lives = max(0, min(lives, max_lives))
        found = bool(raw.get("found", raw.get("won", False)))
        won = bool(raw.get("won", False)) and found
        return cls(
            guesses=[str(item) for item in guesses],
            lives=lives,
            found=found,
            won=won,
            max_lives=max_lives,
        )
