"""Shared pytest fixtures for the realingdle test suite."""

from __future__ import annotations

from concurrent.futures import Executor, Future
from datetime import date
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional

import pytest

from catalog.records import CharacterRecord


# ---------------------------------------------------------------------------
# Executors
# ---------------------------------------------------------------------------

class InlineExecutor(Executor):
    """Runs every submitted call immediately on the calling thread."""

    def submit(self, fn, /, *args, **kwargs):
        future: Future = Future()
        try:
            result = fn(*args, **kwargs)
        except BaseException as exc:
            future.set_exception(exc)
        else:
            future.set_result(result)
        return future


@pytest.fixture
def inline_executor():
    return InlineExecutor()


# ---------------------------------------------------------------------------
# Catalog factories
# ---------------------------------------------------------------------------

def character_row(
    character_id: str,
    name: str,
    *,
    age: Optional[int] = None,
    state: Optional[tuple] = None,
    classes=(),
    races=(),
    occupations=(),
    associations=(),
    places=(),
    created_at: Optional[str] = None,
) -> Dict[str, Any]:
    """Flat row; lookups given as (id, name) tuples."""

    def _entries(values):
        return [{"id": entry_id, "name": entry_name} for entry_id, entry_name in values]

    return {
        "id": character_id,
        "name": name,
        "description": f"{name} description",
        "image_url": None,
        "age": age,
        "state": {"id": state[0], "name": state[1]} if state else None,
        "classes": _entries(classes),
        "races": _entries(races),
        "occupations": _entries(occupations),
        "associations": _entries(associations),
        "places": _entries(places),
        "created_at": created_at,
    }


def make_character(character_id: str, name: str, **kwargs) -> CharacterRecord:
    return CharacterRecord.from_row(character_row(character_id, name, **kwargs))


@pytest.fixture
def sample_rows():
    return [
        character_row(
            "char-a",
            "Aria",
            age=20,
            state=("st-x", "Xandar"),
            classes=[("cl-mage", "Mage"), ("cl-bard", "Bard")],
            races=[("rc-elf", "Elf")],
            created_at="2024-01-01T00:00:00+00:00",
        ),
        character_row(
            "char-b",
            "Borin",
            age=30,
            state=("st-y", "Yarrow"),
            classes=[("cl-mage", "Mage"), ("cl-war", "Warrior")],
            races=[("rc-dwarf", "Dwarf")],
            created_at="2024-01-02T00:00:00+00:00",
        ),
        character_row(
            "char-c",
            "Cress",
            age=20,
            state=("st-x", "Xandar"),
            classes=[("cl-rogue", "Rogue")],
            races=[("rc-elf", "Elf")],
            created_at="2024-01-03T00:00:00+00:00",
        ),
    ]


@pytest.fixture
def catalog(sample_rows) -> List[CharacterRecord]:
    return [CharacterRecord.from_row(row) for row in sample_rows]


# ---------------------------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------------------------

class FakeDailyGateway:
    """In-memory daily gateway with switches for failure paths."""

    def __init__(self, assigned: Optional[Dict[date, str]] = None):
        self.assigned: Dict[date, str] = dict(assigned or {})
        self.attempts: Dict[tuple, Dict[str, Any]] = {}
        self.verdicts: Dict[str, Optional[bool]] = {}
        self.reveal_id: Optional[str] = None
        self.fail_fetch_attempt = False
        self.fail_upsert = False
        self.fail_validation = False
        self.calls: List[tuple] = []

    def fetch_daily_character_id(self, day):
        self.calls.append(("fetch_daily", day))
        return self.assigned.get(day)

    def create_daily_character(self, day, character_id):
        self.calls.append(("create_daily", day, character_id))
        return self.assigned.setdefault(day, character_id)

    def fetch_attempt(self, user_id, day):
        from remote import TransientError

        self.calls.append(("fetch_attempt", user_id, day))
        if self.fail_fetch_attempt:
            raise TransientError("Attempt fetch timed out")
        row = self.attempts.get((user_id, day))
        return dict(row) if row else None

    def upsert_attempt(self, user_id, day, row):
        from remote import RemoteServiceError

        self.calls.append(("upsert_attempt", user_id, day))
        if self.fail_upsert:
            raise RemoteServiceError("Attempt upsert failed")
        self.attempts[(user_id, day)] = dict(row)

    def validate_guess(self, character_id, day):
        self.calls.append(("validate", character_id, day))
        if self.fail_validation:
            return None
        if character_id in self.verdicts:
            return self.verdicts[character_id]
        assigned = self.assigned.get(day)
        return None if assigned is None else assigned == character_id

    def reveal_target(self, day):
        self.calls.append(("reveal", day))
        return self.reveal_id or self.assigned.get(day)

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)


class FakeProfiles:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.games_played: Dict[str, int] = {}
        self.wins: Dict[str, int] = {}

    def increment_games_played(self, user_id):
        if self.fail:
            raise RuntimeError("profiles offline")
        self.games_played[user_id] = self.games_played.get(user_id, 0) + 1

    def increment_wins(self, user_id):
        if self.fail:
            raise RuntimeError("profiles offline")
        self.wins[user_id] = self.wins.get(user_id, 0) + 1


@pytest.fixture
def gateway():
    return FakeDailyGateway()


@pytest.fixture
def profiles():
    return FakeProfiles()


# ---------------------------------------------------------------------------
# Fake Supabase client (query builder + rpc + auth surface)
# ---------------------------------------------------------------------------

class FakeQuery:
    def __init__(self, client: "FakeSupabase", table: str):
        self.client = client
        self.table = table
        self.mode = "select"
        self.payload: Any = None
        self.filters: List[tuple] = []
        self.order_by: Optional[tuple] = None
        self.row_limit: Optional[int] = None
        self.conflict_keys: List[str] = []

    def select(self, *_columns, **_kwargs):
        self.mode = "select"
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, count):
        self.row_limit = count
        return self

    def insert(self, payload, **_kwargs):
        self.mode = "insert"
        self.payload = payload
        return self

    def upsert(self, payload, on_conflict="", **_kwargs):
        self.mode = "upsert"
        self.payload = payload
        self.conflict_keys = [key for key in on_conflict.split(",") if key]
        return self

    def update(self, payload):
        self.mode = "update"
        self.payload = payload
        return self

    def _matches(self, row) -> bool:
        return all(row.get(column) == value for column, value in self.filters)

    def execute(self):
        self.client.calls.append((self.table, self.mode))
        failure = self.client.failures.get((self.table, self.mode))
        if failure is not None:
            raise failure
        rows = self.client.tables.setdefault(self.table, [])

        if self.mode == "insert":
            unique = self.client.unique.get(self.table, ())
            for existing in rows:
                if unique and all(existing.get(key) == self.payload.get(key) for key in unique):
                    raise Exception("duplicate key value violates unique constraint")
            rows.append(dict(self.payload))
            return SimpleNamespace(data=[dict(self.payload)])

        if self.mode == "upsert":
            for existing in rows:
                if all(existing.get(key) == self.payload.get(key) for key in self.conflict_keys):
                    existing.update(self.payload)
                    return SimpleNamespace(data=[dict(existing)])
            rows.append(dict(self.payload))
            return SimpleNamespace(data=[dict(self.payload)])

        if self.mode == "update":
            updated = []
            for existing in rows:
                if self._matches(existing):
                    existing.update(self.payload)
                    updated.append(dict(existing))
            return SimpleNamespace(data=updated)

        result = [dict(row) for row in rows if self._matches(row)]
        if self.order_by:
            column, desc = self.order_by
            result.sort(key=lambda row: (row.get(column) is None, row.get(column) or ""), reverse=desc)
        if self.row_limit is not None:
            result = result[: self.row_limit]
        return SimpleNamespace(data=result)


class FakeRpc:
    def __init__(self, client: "FakeSupabase", name: str, params: Dict[str, Any]):
        self.client = client
        self.name = name
        self.params = params

    def execute(self):
        self.client.calls.append(("rpc", self.name))
        handler = self.client.rpc_handlers.get(self.name)
        if handler is None:
            raise Exception(f"Could not find the function public.{self.name}")
        return SimpleNamespace(data=handler(self.params))


class FakeAuth:
    def __init__(self):
        self.users: Dict[str, SimpleNamespace] = {}

    def get_user(self, token):
        user = self.users.get(token)
        if user is None:
            raise Exception("invalid JWT")
        return SimpleNamespace(user=user)


class FakeSupabase:
    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.unique: Dict[str, tuple] = {"daily_characters": ("date",)}
        self.failures: Dict[tuple, Exception] = {}
        self.rpc_handlers: Dict[str, Callable[[Dict[str, Any]], Any]] = {}
        self.calls: List[tuple] = []
        self.auth = FakeAuth()

    def table(self, name):
        return FakeQuery(self, name)

    def rpc(self, name, params=None):
        return FakeRpc(self, name, params or {})


@pytest.fixture
def fake_supabase():
    return FakeSupabase()


# ---------------------------------------------------------------------------
# Flask app fixtures
# ---------------------------------------------------------------------------

def _test_config(tmp_path, **overrides):
    config = {
        "TESTING": True,
        "SECRET_KEY": "test-secret",
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'test.db'}",
        "USE_SUPABASE": False,
        "SUPABASE_CLIENT": None,
        "REMOTE_RETRY_BASE_DELAY": 0,
        "REMOTE_TIMEOUT_SECONDS": 2,
        "TASK_EXECUTOR": InlineExecutor(),
        "GAME_TIMEZONE": "UTC",
    }
    config.update(overrides)
    return config


@pytest.fixture
def app(tmp_path):
    """App running on the local SQL store (Supabase disabled)."""
    from app import create_app

    application = create_app(_test_config(tmp_path))
    with application.app_context():
        yield application


@pytest.fixture
def supabase_app(tmp_path, fake_supabase):
    """App wired to the in-memory fake Supabase client."""
    from app import create_app

    application = create_app(
        _test_config(tmp_path, USE_SUPABASE=True, SUPABASE_CLIENT=fake_supabase, REMOTE_READ_ATTEMPTS=2)
    )
    with application.app_context():
        yield application


@pytest.fixture
def web_app(tmp_path, sample_rows):
    """App for HTTP tests: seeded catalog, no app context left pushed so each request gets its own `g`."""
    from app import create_app
    from catalog import store_catalog_rows

    application = create_app(_test_config(tmp_path))
    with application.app_context():
        store_catalog_rows(sample_rows)
    return application


@pytest.fixture
def client(web_app):
    return web_app.test_client()
