"""Fixed character records, normalized from whatever shape the backend returns."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

# Join rows come back as [{"class": {...}}]; map each relation to its nested key.
MULTI_VALUED_RELATIONS = {
    "classes": "class",
    "races": "race",
    "occupations": "occupation",
    "associations": "association",
    "places": "place",
}


@dataclass(frozen=True)
class LookupEntry:
    id: str
    name: str

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "name": self.name}


@dataclass(frozen=True)
class CharacterRecord:
    id: str
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    age: Optional[int] = None
    state: Optional[LookupEntry] = None
    classes: Tuple[LookupEntry, ...] = field(default_factory=tuple)
    races: Tuple[LookupEntry, ...] = field(default_factory=tuple)
    occupations: Tuple[LookupEntry, ...] = field(default_factory=tuple)
    associations: Tuple[LookupEntry, ...] = field(default_factory=tuple)
    places: Tuple[LookupEntry, ...] = field(default_factory=tuple)
    created_at: Optional[str] = None

    def matches_name(self, token: str) -> bool:
        return self.name.strip().lower() == (token or "").strip().lower()

    def relation(self, key: str) -> Tuple[LookupEntry, ...]:
        return getattr(self, key)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "image_url": self.image_url,
            "age": self.age,
            "state": self.state.to_dict() if self.state else None,
        }
        for key in MULTI_VALUED_RELATIONS:
            payload[key] = [entry.to_dict() for entry in self.relation(key)]
        return payload

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "CharacterRecord":
        """Build a record from a Supabase row (joined or flat) or a local model dict."""
        relations = {
            key: tuple(_normalize_relation(row.get(key), nested_key))
            for key, nested_key in MULTI_VALUED_RELATIONS.items()
        }
        created_at = row.get("created_at")
        return cls(
            id=str(row.get("id")),
            name=(row.get("name") or "").strip(),
            description=row.get("description"),
            image_url=row.get("image_url"),
            age=_coerce_int(row.get("age")),
            state=_normalize_state(row.get("state")),
            created_at=str(created_at) if created_at else None,
            **relations,
        )


def index_by_id(catalog: Iterable[CharacterRecord]) -> Dict[str, CharacterRecord]:
    return {character.id: character for character in catalog}


def find_by_name(catalog: Iterable[CharacterRecord], token: str) -> Optional[CharacterRecord]:
    """Case-insensitive exact name match."""
    cleaned = (token or "").strip()
    if not cleaned:
        return None
    for character in catalog:
        if character.matches_name(cleaned):
            return character
    return None


def suggestions(
    catalog: Iterable[CharacterRecord],
    query: str,
    exclude_ids: Iterable[str] = (),
    limit: Optional[int] = None,
) -> List[CharacterRecord]:
    """Characters whose name contains ``query``, minus the ones already guessed."""
    needle = (query or "").strip().lower()
    if not needle:
        return []
    excluded = set(exclude_ids)
    matches = [
        character
        for character in catalog
        if needle in character.name.lower() and character.id not in excluded
    ]
    return matches[:limit] if limit else matches


def _lookup_from(value: Any) -> Optional[LookupEntry]:
    if not isinstance(value, dict):
        return None
    entry_id = value.get("id")
    if entry_id is None or entry_id == "":
        return None
    return LookupEntry(id=str(entry_id), name=(value.get("name") or "").strip())


def _normalize_state(value: Any) -> Optional[LookupEntry]:
    if isinstance(value, list):
        value = value[0] if value else None
    return _lookup_from(value)


def _normalize_relation(value: Any, nested_key: str) -> List[LookupEntry]:
    if not isinstance(value, list):
        return []
    entries: List[LookupEntry] = []
    seen = set()
    for item in value:
        if isinstance(item, dict) and nested_key in item:
            item = item.get(nested_key)
        entry = _lookup_from(item)
        if entry is None or entry.id in seen:
            continue
        seen.add(entry.id)
        entries.append(entry)
    return entries


def _coerce_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
