"""Tests for the browser-scoped cache."""

from datetime import date, timedelta

from browser_cache import MAX_ATTEMPT_ENTRIES, LocalCache


class Clock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class TestTtlEntries:
    def test_fresh_entry_expires_after_ttl(self):
        clock = Clock()
        cache = LocalCache({}, clock=clock)
        cache.put("k", {"a": 1})

        assert cache.get_fresh("k", ttl_seconds=60) == {"a": 1}
        clock.now += 61
        assert cache.get_fresh("k", ttl_seconds=60) is None
        assert cache.get_entry("k") == ({"a": 1}, 1000.0)

    def test_malformed_entries_are_ignored(self):
        cache = LocalCache({"k": "garbage"})
        assert cache.get_entry("k") is None

    def test_writes_flag_session_as_modified(self):
        class Store(dict):
            modified = False

        store = Store()
        LocalCache(store).put("k", 1)
        assert store.modified


class TestAttempts:
    def test_round_trip_adds_identity_fields(self):
        cache = LocalCache({}, clock=Clock(5.0))
        day = date(2025, 1, 1)
        cache.save_attempt(day, "char-b", {"guesses": ["char-a"], "lives": 9})

        loaded = cache.load_attempt(day, "char-b")
        assert loaded["guesses"] == ["char-a"]
        assert loaded["dateKey"] == "2025-01-01"
        assert loaded["characterId"] == "char-b"
        assert loaded["savedAt"] == 5.0

    def test_entry_for_another_target_is_discarded(self):
        store = {}
        cache = LocalCache(store)
        day = date(2025, 1, 1)
        key = cache.attempt_key(day, "char-b")
        store[key] = {"guesses": [], "lives": 10, "dateKey": "2025-01-01", "characterId": "char-z"}

        assert cache.load_attempt(day, "char-b") is None
        assert key not in store

    def test_keeps_only_recent_dates(self):
        clock = Clock()
        store = {}
        cache = LocalCache(store, clock=clock)
        start = date(2025, 1, 1)
        for offset in range(MAX_ATTEMPT_ENTRIES + 2):
            clock.now += 1
            cache.save_attempt(start + timedelta(days=offset), "c", {"guesses": [], "lives": 10})

        assert len(store) == MAX_ATTEMPT_ENTRIES
        assert cache.load_attempt(start, "c") is None
        assert cache.load_attempt(start + timedelta(days=MAX_ATTEMPT_ENTRIES + 1), "c") is not None

    def test_drop_attempt(self):
        cache = LocalCache({})
        day = date(2025, 1, 1)
        cache.save_attempt(day, "c", {"guesses": [], "lives": 10})
        cache.drop_attempt(day, "c")
        assert cache.load_attempt(day, "c") is None


class TestHeaderStats:
    def test_expired_flag_tracks_ttl(self):
        clock = Clock()
        cache = LocalCache({}, clock=clock)
        cache.save_header_stats({"rank": 2, "wins": 5, "display_name": "Ash"})

        stats, expired = cache.load_header_stats(ttl_seconds=120)
        assert stats["rank"] == 2 and not expired
        clock.now += 500
        assert cache.load_header_stats(ttl_seconds=120)[1] is True

    def test_missing_stats(self):
        assert LocalCache({}).load_header_stats(ttl_seconds=120) is None
