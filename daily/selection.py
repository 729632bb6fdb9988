"""Deterministic character-of-the-day selection."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Sequence
from zoneinfo import ZoneInfo

from catalog.records import CharacterRecord
from remote import NotFoundError

DATE_FORMAT = "%Y-%m-%d"


def day_of_year(day: date) -> int:
    """1 for January 1st of ``day``'s own year."""
    return day.timetuple().tm_yday


def select_daily_character(day: date, catalog: Sequence[CharacterRecord]) -> CharacterRecord:
    if not catalog:
        raise NotFoundError("No characters available", payload={"error": "puzzle_unavailable", "detail": "No characters available"})
    return catalog[day_of_year(day) % len(catalog)]


def today(timezone_name: Optional[str] = None) -> date:
    """The real-world current civil date in the game's timezone."""
    zone = ZoneInfo(timezone_name or "UTC")
    return datetime.now(zone).date()


def parse_day(raw: Optional[str]) -> Optional[date]:
    """Parse a strict ``YYYY-MM-DD`` value; None when missing, ValueError when malformed."""
    if raw is None or raw == "":
        return None
    return datetime.strptime(raw.strip(), DATE_FORMAT).date()
