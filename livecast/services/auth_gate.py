"""Auth gate: runs viewer actions only for an authenticated session.

Actions requested while signed out are queued and replayed in order after
login completes.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, TypeVar

from loguru import logger

T = TypeVar("T")

Action = Callable[[], Awaitable[Any]]


class AuthGate(Protocol):
    async def require_auth(self, action: Callable[[], Awaitable[T]]) -> T | None:
        """Run `action` now if authenticated, otherwise defer it and return None."""
        ...


class DeferredAuthGate:
    def __init__(
        self,
        *,
        authenticated: bool = False,
        on_login_required: Callable[[], None] | None = None,
        max_pending: int = 20,
    ):
        self._authenticated = authenticated
        self._on_login_required = on_login_required
        self._pending: deque[Action] = deque(maxlen=max_pending)

    @property
    def is_authenticated(self) -> bool:
        return self._authenticated

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def require_auth(self, action: Callable[[], Awaitable[T]]) -> T | None:
        if self._authenticated:
            return await action()

        self._pending.append(action)
        logger.info("Action deferred until login (pending={})", len(self._pending))
        if self._on_login_required is not None:
            self._on_login_required()
        return None

    async def complete_login(self) -> int:
        """Mark the session authenticated and replay deferred actions. Returns the replay count."""
        self._authenticated = True
        replayed = 0
        while self._pending:
            action = self._pending.popleft()
            try:
                await action()
            except Exception as exc:
                logger.warning("Deferred action failed after login: {}", exc)
            replayed += 1
        return replayed

    def logout(self) -> None:
        self._authenticated = False
        self._pending.clear()
