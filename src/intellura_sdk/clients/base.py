"""
Shared plumbing for session-bound clients.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..exceptions import IntelluraError, Outcome
from ..http_client import AsyncHTTPClient
from ..models import Identity
from ..session import SessionStore

logger = logging.getLogger(__name__)


class SessionBoundClient:
    """
    Base class for components whose state belongs to one identity.

    Subclasses reset their state in ``reset`` and check ``is_live(token)``
    after every ``await`` before committing anything.
    """

    def __init__(self, http_client: AsyncHTTPClient, session: SessionStore) -> None:
        self.http_client = http_client
        self.session = session
        self._closed = False
        self._unsubscribe = session.subscribe(self._on_identity_change)

    @property
    def closed(self) -> bool:
        return self._closed

    def liveness_token(self) -> int:
        return self.session.generation

    def is_live(self, token: int) -> bool:
        return not self._closed and self.session.is_current(token)

    def reset(self, previous: Optional[Identity], current: Optional[Identity]) -> None:
        """Drop every piece of per-identity state."""

    def close(self) -> None:
        """Stop accepting commits; pending results are discarded when they arrive."""
        if self._closed:
            return
        self._closed = True
        self._unsubscribe()

    def _on_identity_change(self, previous: Optional[Identity], current: Optional[Identity]) -> None:
        self.reset(previous, current)

    def _failure(self, exc: IntelluraError, action: str, value=None) -> Outcome:
        if exc.kind.silent:
            logger.debug(
                "%s aborted: %s",
                action,
                exc.kind.label,
                extra={"event": f"{action}.aborted", "kind": exc.kind.label},
            )
        else:
            logger.info(
                "%s failed: %s",
                action,
                exc,
                extra={"event": f"{action}.failed", "kind": exc.kind.label},
            )
        return Outcome.failure(exc, value=value)
