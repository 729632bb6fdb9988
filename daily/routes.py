"""Daily puzzle JSON endpoints."""

from __future__ import annotations

from datetime import date
from typing import Callable, Optional, Union

from flask import Blueprint, current_app, jsonify, request, session

from accounts.context import SessionContext
from accounts.service import ProfileGateway
from browser_cache import LocalCache
from daily.selection import parse_day, today
from daily.service import DailyGateway
from daily.session import DailyPuzzleSession
from daily.state import MAX_LIVES
from remote import RemoteServiceError

PlayerProvider = Callable[[], Optional[dict]]


def create_daily_blueprint(current_player_provider: PlayerProvider, current_admin_provider: PlayerProvider) -> Blueprint:
    """Factory so the main app can inject its auth lookups."""

    bp = Blueprint("daily_api", __name__, url_prefix="/api")

    def _game_today() -> date:
        return today(current_app.config.get("GAME_TIMEZONE"))

    def _resolve_day(raw_value: Optional[str]) -> Union[date, tuple]:
        try:
            day = parse_day(raw_value)
        except ValueError:
            return (
                jsonify({"error": "invalid_date", "detail": "Dates must be formatted YYYY-MM-DD."}),
                400,
            )
        return day or _game_today()

    def _open_session(day: date) -> DailyPuzzleSession:
        context = SessionContext()
        puzzle = DailyPuzzleSession(
            context,
            gateway=DailyGateway.from_app(),
            profiles=ProfileGateway.from_app(),
            cache=LocalCache(session),
            day=day,
            today_provider=_game_today,
            max_lives=int(current_app.config.get("GAME_MAX_LIVES", MAX_LIVES)),
            executor=current_app.config.get("TASK_EXECUTOR"),
        )
        context.resolve(current_player_provider())
        puzzle.resolve()
        return puzzle

    def _with_session(raw_day: Optional[str], handler):
        day = _resolve_day(raw_day)
        if not isinstance(day, date):
            return day
        puzzle = None
        try:
            puzzle = _open_session(day)
            return handler(puzzle)
        except RemoteServiceError as exc:
            current_app.logger.warning("Daily puzzle unavailable for %s: %s", day, exc)
            return jsonify(exc.payload), exc.status_code
        finally:
            if puzzle is not None:
                puzzle.close()

    @bp.get("/daily-character")
    def daily_character():
        return _with_session(
            request.args.get("date"),
            lambda puzzle: jsonify(puzzle.target.to_dict()),
        )

    @bp.get("/game")
    @bp.get("/game/<raw_day>")
    def game_state(raw_day: Optional[str] = None):
        def _handler(puzzle: DailyPuzzleSession):
            puzzle.load_progress()
            return jsonify(puzzle.snapshot())

        return _with_session(raw_day, _handler)

    @bp.post("/game/guess")
    @bp.post("/game/<raw_day>/guess")
    def submit_guess(raw_day: Optional[str] = None):
        payload = request.get_json(silent=True) or {}
        token = (payload.get("guess") or request.form.get("guess") or "").strip()

        def _handler(puzzle: DailyPuzzleSession):
            puzzle.load_progress()
            outcome = puzzle.submit_guess(token)
            return jsonify({"outcome": outcome.to_dict(), "game": puzzle.snapshot()})

        return _with_session(raw_day, _handler)

    @bp.get("/game/suggestions")
    @bp.get("/game/<raw_day>/suggestions")
    def game_suggestions(raw_day: Optional[str] = None):
        query = request.args.get("q") or ""

        def _handler(puzzle: DailyPuzzleSession):
            puzzle.load_progress(optimistic=True)
            return jsonify(
                [
                    {"id": character.id, "name": character.name, "image_url": character.image_url}
                    for character in puzzle.suggestions(query)
                ]
            )

        return _with_session(raw_day, _handler)

    @bp.post("/game/restart")
    @bp.post("/game/<raw_day>/restart")
    def restart_game(raw_day: Optional[str] = None):
        if not current_admin_provider():
            return jsonify({"error": "admin_required"}), 403

        def _handler(puzzle: DailyPuzzleSession):
            puzzle.restart()
            return jsonify(puzzle.snapshot())

        return _with_session(raw_day, _handler)

    return bp
