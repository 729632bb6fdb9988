"""Database models for the character catalog mirror."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func

from extensions import db


def _link_table(name: str, column: str, target: str) -> db.Table:
    return db.Table(
        name,
        db.Column("character_id", db.String(64), db.ForeignKey("characters.id", ondelete="CASCADE"), primary_key=True),
        db.Column(column, db.String(64), db.ForeignKey(f"{target}.id", ondelete="CASCADE"), primary_key=True),
    )


character_classes = _link_table("character_classes", "class_id", "classes")
character_races = _link_table("character_races", "race_id", "races")
character_occupations = _link_table("character_occupations", "occupation_id", "occupations")
character_associations = _link_table("character_associations", "association_id", "associations")
character_places = _link_table("character_places", "place_id", "places")


class LookupMixin:
    """Small named taxonomy entry (state, class, race...)."""

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now(), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), server_default=func.now(), nullable=True)

    def to_public_dict(self) -> dict:
        return {"id": self.id, "name": self.name}

    def __repr__(self) -> str:  # pragma: no cover - helper for shell debugging
        return f"<{type(self).__name__} id={self.id!r} name={self.name!r}>"


class State(LookupMixin, db.Model):
    __tablename__ = "states"


class CharacterClass(LookupMixin, db.Model):
    __tablename__ = "classes"


class Race(LookupMixin, db.Model):
    __tablename__ = "races"


class Occupation(LookupMixin, db.Model):
    __tablename__ = "occupations"


class Association(LookupMixin, db.Model):
    __tablename__ = "associations"


class Place(LookupMixin, db.Model):
    __tablename__ = "places"


LOOKUP_MODELS = {
    "states": State,
    "classes": CharacterClass,
    "races": Race,
    "occupations": Occupation,
    "associations": Association,
    "places": Place,
}


class Character(db.Model):
    """Guessable character with its taxonomy attributes."""

    __tablename__ = "characters"

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    image_url = db.Column(db.String(500), nullable=True)
    age = db.Column(db.Integer, nullable=True)

    state_id = db.Column(db.String(64), db.ForeignKey("states.id", ondelete="SET NULL"), nullable=True)
    state = db.relationship(State, lazy="joined")

    classes = db.relationship(CharacterClass, secondary=character_classes, lazy="selectin", order_by=CharacterClass.name)
    races = db.relationship(Race, secondary=character_races, lazy="selectin", order_by=Race.name)
    occupations = db.relationship(Occupation, secondary=character_occupations, lazy="selectin", order_by=Occupation.name)
    associations = db.relationship(Association, secondary=character_associations, lazy="selectin", order_by=Association.name)
    places = db.relationship(Place, secondary=character_places, lazy="selectin", order_by=Place.name)

    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def to_public_dict(self) -> dict:
        """Serialize in the same shape the `GET characters` contract returns."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "image_url": self.image_url,
            "age": self.age,
            "state": self.state.to_public_dict() if self.state else None,
            "classes": [entry.to_public_dict() for entry in self.classes],
            "races": [entry.to_public_dict() for entry in self.races],
            "occupations": [entry.to_public_dict() for entry in self.occupations],
            "associations": [entry.to_public_dict() for entry in self.associations],
            "places": [entry.to_public_dict() for entry in self.places],
            "created_at": _isoformat_or_none(self.created_at),
        }

    def __repr__(self) -> str:  # pragma: no cover - helper for shell debugging
        return f"<Character id={self.id!r} name={self.name!r}>"


def _isoformat_or_none(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    aware = _ensure_aware(value)
    return aware.astimezone(timezone.utc).isoformat()


def _ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
