"""Explicit auth session value with a loading -> resolved lifecycle."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

SessionListener = Callable[["SessionContext"], None]

LOADING = "loading"
RESOLVED = "resolved"


class SessionContext:
    """Who is playing, as observed from the external auth service.

    Consumers register listeners with :meth:`subscribe` and call the returned
    function to stop listening.
    """

    def __init__(self) -> None:
        self._status = LOADING
        self._user: Optional[Dict[str, Any]] = None
        self._listeners: List[SessionListener] = []

    @property
    def status(self) -> str:
        return self._status

    @property
    def is_loading(self) -> bool:
        return self._status == LOADING

    @property
    def user(self) -> Optional[Dict[str, Any]]:
        return self._user

    @property
    def user_id(self) -> Optional[str]:
        if not self._user:
            return None
        value = self._user.get("id")
        return str(value) if value else None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def is_admin(self) -> bool:
        metadata = (self._user or {}).get("app_metadata") or {}
        return metadata.get("role") == "admin"

    def resolve(self, user: Optional[Dict[str, Any]]) -> None:
        """Settle on a user (or anonymous) and notify every listener."""
        self._user = dict(user) if user else None
        self._status = RESOLVED
        for listener in list(self._listeners):
            listener(self)

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    @classmethod
    def resolved(cls, user: Optional[Dict[str, Any]]) -> "SessionContext":
        context = cls()
        context.resolve(user)
        return context
