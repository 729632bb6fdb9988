"""Helpers for keeping the local character catalog in sync with Supabase."""

from __future__ import annotations

from datetime import datetime, timezone, timedelta
from typing import Any, Dict, Iterable, List

from dateutil import parser as date_parser
from flask import current_app

from extensions import db
from models import LOOKUP_MODELS, Character
from remote import TransientError, remote_read
from .records import MULTI_VALUED_RELATIONS, CharacterRecord

SYNC_STATE_KEY = "CATALOG_LAST_SUPABASE_SYNC"

CHARACTER_SELECT = """
    *,
    state:state_id(id, name),
    classes:character_classes(class:class_id(id, name)),
    races:character_races(race:race_id(id, name)),
    occupations:character_occupations(occupation:occupation_id(id, name)),
    associations:character_associations(association:association_id(id, name)),
    places:character_places(place:place_id(id, name))
"""


def ensure_catalog_cache(force: bool = False) -> int:
    """Refresh the SQLite mirror from Supabase when it is stale."""
    client = _supabase_client()
    if not client:
        return 0

    now = datetime.now(timezone.utc)
    max_age = _cache_ttl(current_app)
    last_sync: datetime | None = current_app.config.get(SYNC_STATE_KEY)

    if not force and last_sync and (now - last_sync) < timedelta(seconds=max_age):
        return 0

    rows = _fetch_supabase_rows(client)
    if rows is None:
        return 0

    lookups = _fetch_supabase_lookups(client)
    if lookups:
        for table, lookup_rows in lookups.items():
            _upsert_lookups(table, lookup_rows)

    store_catalog_rows(rows, prune=True)
    current_app.config[SYNC_STATE_KEY] = now
    return len(rows)


def mark_catalog_cache_stale() -> None:
    """Invalidate the cached sync timestamp so the next request refetches."""
    current_app.config.pop(SYNC_STATE_KEY, None)


def load_catalog(ascending: bool = True) -> List[CharacterRecord]:
    """Return every character, ordered by creation time, lookups inlined."""
    ensure_catalog_cache()
    order = (
        (Character.created_at.asc(), Character.id.asc())
        if ascending
        else (Character.created_at.desc(), Character.id.desc())
    )
    characters = Character.query.order_by(*order).all()
    return [CharacterRecord.from_row(character.to_public_dict()) for character in characters]


def store_catalog_rows(rows: Iterable[Dict[str, Any]], prune: bool = False) -> int:
    """Upsert character rows (any supported wire shape) into the local mirror."""
    stored_ids: set[str] = set()
    for row in rows:
        if row.get("id") in (None, ""):
            continue
        record = CharacterRecord.from_row(row)
        if not record.name:
            continue
        character = db.session.get(Character, record.id) or Character(id=record.id)
        _hydrate_character(character, record, row)
        db.session.add(character)
        # Lookups shared between rows must be visible to the next db.session.get().
        db.session.flush()
        stored_ids.add(record.id)

    if prune:
        query = db.session.query(Character)
        if stored_ids:
            query = query.filter(~Character.id.in_(stored_ids))
        for stale in query.all():
            db.session.delete(stale)

    db.session.commit()
    return len(stored_ids)


def _hydrate_character(character: Character, record: CharacterRecord, row: Dict[str, Any]) -> None:
    character.name = record.name
    character.description = record.description
    character.image_url = record.image_url
    character.age = record.age

    if record.state:
        character.state = _lookup_instance("states", record.state.id, record.state.name)
    else:
        character.state = None

    for key in MULTI_VALUED_RELATIONS:
        entries = [
            _lookup_instance(key, entry.id, entry.name)
            for entry in record.relation(key)
        ]
        setattr(character, key, entries)

    created_at = _parse_datetime(row.get("created_at"))
    if created_at:
        character.created_at = created_at
    elif not character.created_at:
        character.created_at = datetime.now(timezone.utc)
    updated_at = _parse_datetime(row.get("updated_at"))
    if updated_at:
        character.updated_at = updated_at
    elif not character.updated_at:
        character.updated_at = datetime.now(timezone.utc)


def _lookup_instance(table: str, entry_id: str, name: str):
    model = LOOKUP_MODELS[table]
    instance = db.session.get(model, entry_id)
    if instance is None:
        instance = model(id=entry_id, name=name or "")
        db.session.add(instance)
    elif name and instance.name != name:
        instance.name = name
    return instance


def _upsert_lookups(table: str, rows: List[Dict[str, Any]]) -> None:
    for row in rows:
        entry_id = row.get("id")
        if entry_id in (None, ""):
            continue
        instance = _lookup_instance(table, str(entry_id), (row.get("name") or "").strip())
        created_at = _parse_datetime(row.get("created_at"))
        if created_at:
            instance.created_at = created_at
        updated_at = _parse_datetime(row.get("updated_at"))
        if updated_at:
            instance.updated_at = updated_at
    db.session.flush()


def _parse_datetime(value: Any) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = date_parser.isoparse(str(value))
        except (TypeError, ValueError, OverflowError):
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _fetch_supabase_rows(client) -> list[dict[str, Any]] | None:
    try:
        resp = remote_read(
            lambda: client.table("characters")
            .select(CHARACTER_SELECT)
            .order("created_at", desc=False)
            .execute(),
            label="Catalog characters fetch",
        )
        return resp.data or []
    except TransientError as exc:
        current_app.logger.warning("Catalog Supabase sync failed: %s", exc)
        return None


def _fetch_supabase_lookups(client) -> dict[str, list[dict[str, Any]]] | None:
    lookups: dict[str, list[dict[str, Any]]] = {}
    try:
        for table in LOOKUP_MODELS:
            resp = remote_read(
                lambda table=table: client.table(table).select("*").order("name", desc=False).execute(),
                label=f"Catalog {table} fetch",
            )
            lookups[table] = resp.data or []
    except TransientError as exc:
        current_app.logger.warning("Catalog lookup sync failed: %s", exc)
        return None
    return lookups


def _cache_ttl(app) -> int:
    try:
        value = int(app.config.get("CATALOG_CACHE_MAX_AGE_SECONDS", 300))
    except (TypeError, ValueError):
        value = 300
    return max(15, value)


def _supabase_client():
    try:
        return current_app.config.get("SUPABASE_CLIENT")
    except RuntimeError:
        return None
