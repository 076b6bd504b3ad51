"""
Session store: the single process-wide holder of the current identity.

Every other component derives its state from identity-change notifications
and uses ``generation`` as a liveness token, so work started for one identity
can never be committed for another.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from .config import ClientSettings
from .exceptions import IntelluraError, UnauthenticatedError
from .http_client import AsyncHTTPClient
from .models import Identity

logger = logging.getLogger(__name__)

IdentityListener = Callable[[Optional[Identity], Optional[Identity]], None]


def _key(identity: Optional[Identity]) -> Optional[str]:
    return identity.key if identity is not None else None


class SessionStore:
    """Holds the current ``Identity`` or its absence."""

    def __init__(self, http_client: AsyncHTTPClient, settings: ClientSettings) -> None:
        self.http_client = http_client
        self.settings = settings
        self.identity: Optional[Identity] = None
        self.loading = False
        self.generation = 0
        self._listeners: List[IdentityListener] = []
        # Bumped by logout so a refresh that started earlier cannot resurrect the session
        self._refresh_ticket = 0

    @property
    def authenticated(self) -> bool:
        return self.identity is not None

    def login_url(self) -> str:
        return self.settings.login_url()

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        """
        Register ``listener(previous, current)`` for identity transitions.

        Returns:
            A callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def is_current(self, generation: int) -> bool:
        return generation == self.generation

    def require_identity(self) -> Identity:
        if self.identity is None:
            raise UnauthenticatedError("Please sign in first")
        return self.identity

    async def init(self) -> Optional[Identity]:
        return await self.refresh()

    async def refresh(self) -> Optional[Identity]:
        """
        Fetch the current identity with the ambient session credential.

        Any failure, including a transient one, leaves the session logged out.
        """
        self._refresh_ticket += 1
        ticket = self._refresh_ticket
        self.loading = True
        identity: Optional[Identity] = None
        try:
            data = await self.http_client.get("/me")
            identity = Identity.from_dict(data)
        except UnauthenticatedError:
            logger.debug("No active session", extra={"event": "session.anonymous"})
        except (IntelluraError, ValueError) as e:
            logger.warning(
                "Session refresh failed: %s",
                e,
                extra={"event": "session.refresh_failed", "error_type": type(e).__name__},
            )
        finally:
            if ticket == self._refresh_ticket:
                self.loading = False

        if ticket != self._refresh_ticket:
            return self.identity
        self._set_identity(identity)
        return identity

    async def complete_login(self, access_token: Optional[str] = None) -> Optional[Identity]:
        """Finish the login redirect: keep an optional bearer token, then refresh."""
        if access_token:
            self.http_client.set_access_token(access_token)
        return await self.refresh()

    async def logout(self) -> None:
        """Invalidate the remote session (best-effort) and clear the local identity."""
        self._refresh_ticket += 1
        self.loading = False
        try:
            await self.http_client.post("/logout")
        except IntelluraError as e:
            logger.info(
                "Remote logout failed, clearing local session anyway: %s",
                e,
                extra={"event": "session.logout_failed"},
            )
        finally:
            self.http_client.clear_credentials()
            self._set_identity(None)

    def teardown(self) -> None:
        self._refresh_ticket += 1
        self._set_identity(None)
        self._listeners = []

    def _set_identity(self, identity: Optional[Identity]) -> None:
        previous = self.identity
        self.identity = identity
        if _key(previous) == _key(identity):
            return

        self.generation += 1
        logger.info(
            "Identity changed",
            extra={
                "event": "session.identity_changed",
                "authenticated": identity is not None,
                "generation": self.generation,
            },
        )
        for listener in list(self._listeners):
            try:
                listener(previous, identity)
            except Exception:
                logger.exception(
                    "Identity listener failed",
                    extra={"event": "session.listener_failed"},
                )
