"""One player's play-through of one daily puzzle."""

from __future__ import annotations

import logging
from concurrent.futures import Executor, Future, wait
from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from flask import current_app, has_app_context
from sqlalchemy.exc import SQLAlchemyError

from accounts.context import SessionContext
from browser_cache import LocalCache
from catalog.records import CharacterRecord, find_by_name, index_by_id, suggestions
from catalog.sync import load_catalog
from daily.feedback import compare
from daily.selection import select_daily_character, today
from daily.state import MAX_LIVES, AttemptState
from remote import (
    NotFoundError,
    RemoteServiceError,
    TransientError,
    fire_and_forget,
    in_app_context,
    run_parallel,
    shared_executor,
)

SOURCE_REMOTE = "remote"
SOURCE_CACHE = "cache"
SOURCE_FRESH = "fresh"


@dataclass(frozen=True)
class GuessOutcome:
    accepted: bool
    reason: Optional[str] = None
    character: Optional[CharacterRecord] = None
    correct: Optional[bool] = None
    verdict_source: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accepted": self.accepted,
            "reason": self.reason,
            "character_id": self.character.id if self.character else None,
            "correct": self.correct,
            "verdict_source": self.verdict_source,
        }


class DailyPuzzleSession:
    """Resolves the day's target, reconciles saved progress and applies guesses.

    Collaborators:
      - ``gateway``: daily target, attempt persistence, guess verdicts, reveal
      - ``profiles``: games played / wins counters (best effort)
      - ``cache``: browser-scoped :class:`LocalCache`
      - ``catalog_loader``: returns the ordered catalog

    The session listens to ``context`` and reconciles again when the player changes.
    Call :meth:`close` to stop listening.
    """

    def __init__(
        self,
        context: SessionContext,
        *,
        gateway,
        profiles,
        cache: LocalCache,
        catalog_loader: Callable[[], List[CharacterRecord]] = load_catalog,
        day: Optional[date] = None,
        today_provider: Optional[Callable[[], date]] = None,
        max_lives: int = MAX_LIVES,
        executor: Optional[Executor] = None,
        app=None,
    ):
        self.context = context
        self.gateway = gateway
        self.profiles = profiles
        self.cache = cache
        self.catalog_loader = catalog_loader
        self.requested_day = day
        self.today_provider = today_provider or today
        self.max_lives = max_lives
        self.executor = executor or shared_executor()
        if app is None and has_app_context():
            app = current_app._get_current_object()
        self.app = app
        self.logger = app.logger if app is not None else logging.getLogger(__name__)

        self.day: Optional[date] = None
        self.catalog: List[CharacterRecord] = []
        self.target: Optional[CharacterRecord] = None
        self.state = AttemptState.fresh(max_lives)
        self.source = SOURCE_FRESH
        self.reconciled = False
        self.reconcile_attempted = False
        self.persist_pending = False
        self.unverified = False
        self.revealed: Optional[CharacterRecord] = None
        self.revealed_id: Optional[str] = None
        self.background: List[Future] = []

        self._sequence = 0
        self._unsubscribe = context.subscribe(self._on_context_change)

    def close(self) -> None:
        self._unsubscribe()

    @property
    def is_today(self) -> bool:
        return self.day is not None and self.day == self.today_provider()

    # -----------------------------
    # Target resolution
    # -----------------------------

    def resolve(self, day: Optional[date] = None) -> Optional[CharacterRecord]:
        """Load the catalog and the day's target; None if a newer resolve superseded this one."""
        self._sequence += 1
        sequence = self._sequence
        target_day = day or self.requested_day or self.today_provider()

        results = run_parallel(
            self.executor,
            {
                "catalog": in_app_context(self.app, self.catalog_loader),
                "assigned": in_app_context(self.app, lambda: self.gateway.fetch_daily_character_id(target_day)),
            },
        )
        if sequence != self._sequence:
            self.logger.debug("Discarding superseded resolve for %s", target_day)
            return None

        catalog: List[CharacterRecord] = list(results["catalog"] or [])
        assigned: Optional[str] = results["assigned"]
        if not assigned:
            chosen = select_daily_character(target_day, catalog)
            assigned = self.gateway.create_daily_character(target_day, chosen.id)
            if sequence != self._sequence:
                return None

        target = index_by_id(catalog).get(assigned)
        if target is None:
            raise NotFoundError(
                f"Daily character {assigned} is no longer in the catalog",
                payload={"error": "puzzle_unavailable", "detail": "No puzzle available for this date"},
            )

        self.day = target_day
        self.catalog = catalog
        self.target = target
        self.state = AttemptState.fresh(self.max_lives)
        self.source = SOURCE_FRESH
        self.reconciled = False
        self.reconcile_attempted = False
        self.persist_pending = False
        self.unverified = False
        self.revealed = None
        self.revealed_id = None
        return target

    # -----------------------------
    # Progress
    # -----------------------------

    def load_progress(self, optimistic: bool = False) -> AttemptState:
        """Merge saved progress; ``optimistic`` serves the local cache without waiting on the backend."""
        self._require_target()
        if optimistic:
            cached = self._cached_progress()
            if cached is not None:
                self._adopt_cached(cached)
            else:
                self._reset_state()
            self.reconciled = not self.context.is_authenticated
            return self.state
        self.reconcile()
        return self.state

    def reconcile(self) -> bool:
        """Bring state in line with the authoritative record; False if the backend could not be reached.

        The remote record wins, except over local guesses it never stored
        (a failed save or an unconfirmed local verdict) that extend it.
        Those are kept and pushed again.
        """
        self._require_target()
        self.reconcile_attempted = True
        cached = self._cached_progress()
        remote_state: Optional[AttemptState] = None
        user_id = self.context.user_id

        if user_id:
            try:
                row = self.gateway.fetch_attempt(user_id, self.day)
            except TransientError as exc:
                self.logger.warning("Attempt fetch failed for %s on %s: %s", user_id, self.day, exc)
                if self.source == SOURCE_FRESH and cached is not None:
                    self._adopt_cached(cached)
                self.reconciled = False
                self._mirror()
                return False
            remote_state = AttemptState.from_payload(row, self.max_lives)

        if cached is not None and cached.extends(remote_state):
            self._adopt_cached(cached)
            if self.unverified:
                self._confirm_local_verdict()
            if user_id:
                self._save_remote(user_id)
        elif remote_state is not None:
            self._reset_state(remote_state, SOURCE_REMOTE)
        elif cached is not None:
            self._adopt_cached(cached)
            if self.unverified:
                self._confirm_local_verdict()
        else:
            self._reset_state()

        self.reconciled = True
        if self.state.lives <= 0 and not self.state.found and self.revealed is None:
            self.revealed = self._reveal()
        self._mirror()
        return True

    # -----------------------------
    # Guessing
    # -----------------------------

    def submit_guess(self, token: str) -> GuessOutcome:
        self._require_target()
        if not self.reconciled and not self.reconcile_attempted:
            self.reconcile()

        if self.state.game_over:
            return GuessOutcome(accepted=False, reason="game_over")

        match = find_by_name(self.catalog, token)
        if match is None:
            return GuessOutcome(accepted=False, reason="no_match")

        user_id = self.context.user_id
        if not self.state.guesses and self.is_today and user_id:
            self._in_background(lambda: self.profiles.increment_games_played(user_id), "games_played increment")

        verdict = self._remote_verdict(match.id)
        source = SOURCE_REMOTE
        if verdict is None:
            self.logger.warning("Guess validation inconclusive for %s on %s; using local comparison", match.id, self.day)
            verdict = self.target.matches_name(match.name)
            source = "local"

        self.state = self.state.apply_guess(match.id, correct=verdict, is_today=self.is_today)
        self.unverified = source == "local" and self.state.found

        if self.state.won and source == SOURCE_REMOTE and user_id:
            self._in_background(lambda: self.profiles.increment_wins(user_id), "wins increment")
        if self.state.lives <= 0 and not self.state.found:
            self.revealed = self._reveal()

        self._persist()
        self._mirror()
        return GuessOutcome(accepted=True, character=match, correct=verdict, verdict_source=source)

    def restart(self) -> AttemptState:
        """Admin testing tool: wipe this date's progress locally and remotely."""
        self._require_target()
        self.cache.drop_attempt(self.day, self.target.id)
        self._reset_state()
        self.revealed = None
        self.revealed_id = None
        self.reconciled = True
        user_id = self.context.user_id
        if user_id:
            self._save_remote(user_id)
        self._mirror()
        return self.state

    # -----------------------------
    # Views
    # -----------------------------

    def guess_feedback(self) -> List[Dict[str, Any]]:
        """Feedback per guess, newest first."""
        self._require_target()
        by_id = index_by_id(self.catalog)
        entries: List[Dict[str, Any]] = []
        for character_id in reversed(self.state.guesses):
            guessed = by_id.get(character_id)
            if guessed is None:
                entries.append({"character_id": character_id, "unknown": True})
                continue
            entries.append(
                {
                    "character": guessed.to_dict(),
                    "feedback": compare(guessed, self.target).to_dict(),
                }
            )
        return entries

    def suggestions(self, query: str, limit: Optional[int] = 10) -> List[CharacterRecord]:
        return suggestions(self.catalog, query, exclude_ids=self.state.guesses, limit=limit)

    def answer(self) -> Optional[CharacterRecord]:
        if self.state.found:
            return self.target
        if self.state.lives <= 0:
            return self.revealed or self.target
        return None

    def snapshot(self) -> Dict[str, Any]:
        self._require_target()
        answer = self.answer()
        return {
            "date": self.day.isoformat(),
            "is_today": self.is_today,
            "status": self.state.status,
            "lives": self.state.lives,
            "max_lives": self.max_lives,
            "found": self.state.found,
            "won": self.state.won,
            "game_over": self.state.game_over,
            "guesses": self.guess_feedback(),
            "answer": answer.to_dict() if answer else None,
            "revealed_id": self.revealed_id,
            "source": self.source,
            "reconciled": self.reconciled,
            "persist_pending": self.persist_pending,
            "unverified": self.unverified,
        }

    def wait_for_background(self, timeout: Optional[float] = None) -> None:
        if self.background:
            wait(self.background, timeout=timeout)

    # -----------------------------
    # Internals
    # -----------------------------

    def _require_target(self) -> None:
        if self.target is None or self.day is None:
            raise RuntimeError("resolve() must succeed before using the session")

    def _cached_progress(self) -> Optional["CachedProgress"]:
        raw = self.cache.load_attempt(self.day, self.target.id)
        state = AttemptState.from_payload(raw, self.max_lives)
        if state is None:
            return None
        return CachedProgress(
            state=state,
            pending=bool(raw.get("pending")),
            unverified=bool(raw.get("unverified")) and state.found,
        )

    def _adopt_cached(self, cached: "CachedProgress") -> None:
        self.state = cached.state
        self.source = SOURCE_CACHE
        self.persist_pending = cached.pending
        self.unverified = cached.unverified

    def _reset_state(self, state: Optional[AttemptState] = None, source: str = SOURCE_FRESH) -> None:
        self.state = state or AttemptState.fresh(self.max_lives)
        self.source = source
        self.persist_pending = False
        self.unverified = False

    def _mirror(self) -> None:
        self.cache.save_attempt(
            self.day,
            self.target.id,
            {**self.state.to_payload(), "pending": self.persist_pending, "unverified": self.unverified},
        )

    def _remote_verdict(self, character_id: str) -> Optional[bool]:
        try:
            return self.gateway.validate_guess(character_id, self.day)
        except RemoteServiceError as exc:
            self.logger.warning("Guess validation failed for %s on %s: %s", character_id, self.day, exc)
            return None

    def _confirm_local_verdict(self) -> None:
        """Ask the server about a win judged locally; its answer decides the score."""
        if not self.state.guesses:
            self.unverified = False
            return
        last_guess = self.state.guesses[-1]
        verdict = self._remote_verdict(last_guess)
        if verdict is None:
            return
        self.unverified = False
        if verdict:
            user_id = self.context.user_id
            if self.state.won and self.is_today and user_id:
                self._in_background(lambda: self.profiles.increment_wins(user_id), "wins increment")
            return
        self.logger.warning("Server rejected locally judged guess %s on %s", last_guess, self.day)
        self.state = replace(self.state, found=False, won=False, lives=max(0, self.state.lives - 1))

    def _reveal(self) -> CharacterRecord:
        try:
            revealed_id = self.gateway.reveal_target(self.day)
        except RemoteServiceError as exc:
            self.logger.warning("Reveal failed for %s: %s", self.day, exc)
            revealed_id = None
        self.revealed_id = revealed_id or self.target.id
        revealed = index_by_id(self.catalog).get(revealed_id) if revealed_id else None
        return revealed or self.target

    def _persist(self) -> None:
        user_id = self.context.user_id
        if not user_id or not self.state.guesses:
            return
        self._save_remote(user_id)

    def _save_remote(self, user_id: str) -> None:
        row = self.state.to_remote_row(user_id, self.day.isoformat())
        if self.unverified:
            # Only a server verdict may record a win.
            row.update(found=False, won=False)
        try:
            self.gateway.upsert_attempt(user_id, self.day, row)
            self.persist_pending = False
        except (RemoteServiceError, SQLAlchemyError) as exc:
            self.logger.warning("Attempt save failed for %s on %s: %s", user_id, self.day, exc)
            self.persist_pending = True

    def _in_background(self, func: Callable[[], Any], label: str) -> None:
        self.background.append(fire_and_forget(self.executor, func, label, app=self.app))

    def _on_context_change(self, context: SessionContext) -> None:
        if self.target is None:
            return
        self.reconcile()


@dataclass(frozen=True)
class CachedProgress:
    """Progress read back from the local cache, with what the backend has not confirmed."""

    state: AttemptState
    pending: bool = False
    unverified: bool = False

    def extends(self, remote: Optional[AttemptState]) -> bool:
        """True when this copy holds unsaved guesses on top of ``remote``."""
        if not (self.pending or self.unverified):
            return False
        if remote is None:
            return True
        stored = remote.guesses
        local = self.state.guesses
        return len(local) >= len(stored) and local[: len(stored)] == stored
