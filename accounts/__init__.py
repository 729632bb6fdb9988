"""Player accounts: auth session context, profile stats and the leaderboard."""

from .auth import get_current_admin, get_current_player
from .context import SessionContext
from .routes import create_accounts_blueprint
from .service import ProfileGateway

__all__ = [
    "create_accounts_blueprint",
    "get_current_admin",
    "get_current_player",
    "ProfileGateway",
    "SessionContext",
]
