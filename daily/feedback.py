"""Per-attribute comparison of a guessed character against the target."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from catalog.records import MULTI_VALUED_RELATIONS, CharacterRecord


@dataclass(frozen=True)
class ItemMatch:
    id: str
    name: str
    matched: bool

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "matched": self.matched}


@dataclass(frozen=True)
class Feedback:
    character_id: str
    correct: bool
    state: bool
    age: bool
    classes: Tuple[ItemMatch, ...]
    races: Tuple[ItemMatch, ...]
    occupations: Tuple[ItemMatch, ...]
    associations: Tuple[ItemMatch, ...]
    places: Tuple[ItemMatch, ...]

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "character_id": self.character_id,
            "correct": self.correct,
            "state": self.state,
            "age": self.age,
        }
        for key in MULTI_VALUED_RELATIONS:
            payload[key] = [item.to_dict() for item in getattr(self, key)]
        return payload


def compare(guess: CharacterRecord, target: CharacterRecord) -> Feedback:
    """Pure: depends only on (guess, target)."""
    guess_state = guess.state.id if guess.state else None
    target_state = target.state.id if target.state else None

    relations = {}
    for key in MULTI_VALUED_RELATIONS:
        target_ids = {entry.id for entry in target.relation(key)}
        relations[key] = tuple(
            ItemMatch(id=entry.id, name=entry.name, matched=entry.id in target_ids)
            for entry in guess.relation(key)
        )

    return Feedback(
        character_id=guess.id,
        correct=guess.id == target.id,
        state=guess_state == target_state,
        age=guess.age == target.age,
        **relations,
    )
