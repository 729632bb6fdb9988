import os
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional

from flask import Flask, jsonify, request
from supabase import Client, create_client

from extensions import db
from accounts import create_accounts_blueprint, get_current_admin, get_current_player
from catalog import catalog_api_blueprint, ensure_catalog_cache
from daily import create_daily_blueprint

# Tables must be registered on the metadata before create_all().
import models  # noqa: F401
import accounts.models  # noqa: F401
import daily.models  # noqa: F401


# ====== Feature toggle ======
def _env_flag(name: str, default: bool) -> bool:
    """Parse truthy feature-toggle values from the environment."""
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return max(minimum, int(raw))
    except ValueError:
        print(f"⚠️ Invalid {name} value: {raw!r}. Using default {default}.")
        return default


def _env_float(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return max(minimum, float(raw))
    except ValueError:
        print(f"⚠️ Invalid {name} value: {raw!r}. Using default {default}.")
        return default


USE_SUPABASE = _env_flag("USE_SUPABASE", True)  # ✅ Supabase for auth, attempts and stats
MAINTENANCE_MODE = _env_flag("MAINTENANCE_MODE", False)  # ⛔️ Change to True to enable maintenance mode

# ====== Game settings ======
GAME_MAX_LIVES = _env_int("GAME_MAX_LIVES", 10, minimum=1)
GAME_TIMEZONE = os.environ.get("GAME_TIMEZONE", "UTC")

# ====== Cache + remote call settings ======
CATALOG_CACHE_MAX_AGE_SECONDS = _env_int("CATALOG_CACHE_MAX_AGE_SECONDS", 300, minimum=15)
HEADER_STATS_MAX_AGE_SECONDS = _env_int("HEADER_STATS_MAX_AGE_SECONDS", 120)
REMOTE_TIMEOUT_SECONDS = _env_float("REMOTE_TIMEOUT_SECONDS", 5.5, minimum=0.1)
REMOTE_READ_ATTEMPTS = _env_int("REMOTE_READ_ATTEMPTS", 3, minimum=1)
REMOTE_RETRY_BASE_DELAY = _env_float("REMOTE_RETRY_BASE_DELAY", 0.35)

# ====== Supabase setup ======
SUPABASE_URL = os.environ.get("SUPABASE_URL")
SUPABASE_KEY = os.environ.get("SUPABASE_KEY")


def _build_supabase_client() -> Optional[Client]:
    if not (SUPABASE_URL and SUPABASE_KEY):
        return None
    try:
        return create_client(SUPABASE_URL, SUPABASE_KEY)
    except Exception as e:
        print("⚠️ Could not init Supabase client:", e)
        return None


def create_app(test_config: Optional[dict[str, Any]] = None) -> Flask:
    app = Flask(__name__)
    app.secret_key = os.environ.get("SECRET_KEY") or os.urandom(24)
    app.permanent_session_lifetime = timedelta(days=365)

    app.config.setdefault("USE_SUPABASE", USE_SUPABASE)
    app.config.setdefault("MAINTENANCE_MODE", MAINTENANCE_MODE)
    app.config.setdefault("GAME_MAX_LIVES", GAME_MAX_LIVES)
    app.config.setdefault("GAME_TIMEZONE", GAME_TIMEZONE)
    app.config.setdefault("CATALOG_CACHE_MAX_AGE_SECONDS", CATALOG_CACHE_MAX_AGE_SECONDS)
    app.config.setdefault("HEADER_STATS_MAX_AGE_SECONDS", HEADER_STATS_MAX_AGE_SECONDS)
    app.config.setdefault("REMOTE_TIMEOUT_SECONDS", REMOTE_TIMEOUT_SECONDS)
    app.config.setdefault("REMOTE_READ_ATTEMPTS", REMOTE_READ_ATTEMPTS)
    app.config.setdefault("REMOTE_RETRY_BASE_DELAY", REMOTE_RETRY_BASE_DELAY)

    data_dir = Path(app.root_path) / "data"
    app.config.setdefault("SQLALCHEMY_DATABASE_URI", f"sqlite:///{data_dir / 'app.db'}")
    app.config.setdefault("SQLALCHEMY_TRACK_MODIFICATIONS", False)

    if test_config:
        app.config.update(test_config)

    if app.config["SQLALCHEMY_DATABASE_URI"].startswith(f"sqlite:///{data_dir}"):
        data_dir.mkdir(parents=True, exist_ok=True)
    db.init_app(app)

    if "SUPABASE_CLIENT" not in app.config:
        app.config["SUPABASE_CLIENT"] = _build_supabase_client() if app.config["USE_SUPABASE"] else None

    @app.errorhandler(404)
    @app.errorhandler(500)
    def show_json_error(err):
        status_code = getattr(err, "code", 500) or 500
        error = "not_found" if status_code == 404 else "server_error"
        return jsonify({"error": error}), status_code

    @app.before_request
    def check_maintenance_mode():
        if request.endpoint in {"static", "health"}:
            return None
        # If maintenance mode is on, every API call answers 503
        if app.config.get("MAINTENANCE_MODE"):
            return jsonify({"error": "maintenance"}), 503
        return None

    @app.get("/health")
    def health():
        return jsonify(
            {
                "status": "ok",
                "supabase": bool(app.config.get("SUPABASE_CLIENT")),
            }
        )

    app.register_blueprint(catalog_api_blueprint)
    app.register_blueprint(create_daily_blueprint(get_current_player, get_current_admin))
    app.register_blueprint(create_accounts_blueprint(get_current_player))

    with app.app_context():
        db.create_all()
        try:
            ensure_catalog_cache(force=True)
        except Exception as exc:
            app.logger.warning("Initial catalog sync skipped: %s", exc)

    return app


# ====== Entrypoint ======
if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=int(os.environ.get("PORT", 8080)), debug=True)
