"""
Daily Cooldown Claim for Intellura SDK

A single global claim gated by the server-issued ``next_available_at``.
The local countdown only drives rendering; whenever the server disagrees,
its timestamp replaces ours.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..config import COUNTDOWN_INTERVAL
from ..exceptions import (
    AlreadyClaimedError,
    ClaimInProgressError,
    ConflictError,
    CooldownActiveError,
    IntelluraError,
    NetworkError,
    Outcome,
    SupersededError,
    UnauthenticatedError,
    UnknownError,
)
from ..models import DailyClaimResult, Identity, parse_timestamp
from .balance import BalanceSynchronizer
from .base import SessionBoundClient

logger = logging.getLogger(__name__)


class DailyState(Enum):
    LOCKED = "locked"
    UNLOCKED = "unlocked"
    CLAIMING = "claiming"


def format_remaining(seconds: float) -> str:
    """Render a countdown as ``"5h 3m"``, ``"3m 7s"`` or ``"7s"``."""
    total = max(0, int(seconds))
    hours = total // 3600
    minutes = (total % 3600) // 60
    secs = total % 60
    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def _conflict_next_available(details: Dict[str, Any]) -> Optional[datetime]:
    value = details.get("next_available_at")
    if value is None and isinstance(details.get("detail"), dict):
        value = details["detail"].get("next_available_at")
    try:
        return parse_timestamp(value)
    except ValueError:
        logger.warning(
            "Unparseable next_available_at in conflict response",
            extra={"event": "daily.conflict_timestamp_invalid"},
        )
        return None


class DailyCooldownClaim(SessionBoundClient):
    """Client for the daily points claim."""

    def __init__(
        self,
        http_client,
        session,
        balance: BalanceSynchronizer,
        countdown_interval: float = COUNTDOWN_INTERVAL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(http_client, session)
        self.balance = balance
        self.countdown_interval = countdown_interval
        self.clock = clock
        self.next_eligible_at: Optional[datetime] = None
        self._claiming = False
        self._last_state = DailyState.UNLOCKED
        self._listeners: List[Callable[[DailyState], None]] = []

    def reset(self, previous: Optional[Identity], current: Optional[Identity]) -> None:
        self.next_eligible_at = None
        self._claiming = False
        self._last_state = DailyState.UNLOCKED

    def subscribe(self, listener: Callable[[DailyState], None]) -> Callable[[], None]:
        """Register ``listener(state)``, called on every state transition seen by ``tick``."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def remaining(self) -> float:
        if self.next_eligible_at is None:
            return 0.0
        return max(0.0, self.next_eligible_at.timestamp() - self.clock())

    @property
    def state(self) -> DailyState:
        if self._claiming:
            return DailyState.CLAIMING
        if self.remaining() > 0:
            return DailyState.LOCKED
        return DailyState.UNLOCKED

    @property
    def can_claim(self) -> bool:
        return self.session.identity is not None and self.state is DailyState.UNLOCKED

    def countdown_label(self) -> Optional[str]:
        remaining = self.remaining()
        if remaining <= 0:
            return None
        return f"Next in {format_remaining(remaining)}"

    def tick(self) -> DailyState:
        """Recompute the state and notify listeners when it changed."""
        state = self.state
        if state is not self._last_state:
            self._last_state = state
            for listener in list(self._listeners):
                listener(state)
        return state

    async def run_countdown(self, on_tick: Optional[Callable[[float], None]] = None) -> None:
        """
        Tick at ``countdown_interval`` until the claim unlocks or the component closes.

        The final sleep is shortened so the unlock lands the moment the
        remaining time reaches zero.
        """
        while not self.closed and self.tick() is DailyState.LOCKED:
            remaining = self.remaining()
            if on_tick is not None:
                on_tick(remaining)
            await asyncio.sleep(min(self.countdown_interval, remaining) if remaining > 0 else 0)
        if not self.closed:
            self.tick()

    def _apply_next_available(self, value: Optional[datetime]) -> None:
        self.next_eligible_at = value
        self.tick()

    async def claim_daily(self, force: bool = False) -> Outcome:
        """
        Claim the daily reward.

        Only invokable while unlocked; ``force=True`` sends the request anyway
        and lets the server's answer correct the local belief.

        Returns:
            Outcome whose value is a ``DailyClaimResult`` on success, or the
            adopted ``next_eligible_at`` on an already-claimed rejection
        """
        if self.session.identity is None:
            return self._failure(UnauthenticatedError("Please sign in to claim."), "daily.claim")
        if self._claiming:
            return self._failure(ClaimInProgressError("Claim already in progress."), "daily.claim")
        if not force and self.state is DailyState.LOCKED:
            return self._failure(
                CooldownActiveError(f"Not ready. {self.countdown_label()}."),
                "daily.claim",
                value=self.next_eligible_at,
            )

        token = self.liveness_token()
        self._claiming = True
        self.tick()
        try:
            response = await self.http_client.post("/points/daily")
        except IntelluraError as e:
            if not self.is_live(token):
                return self._failure(SupersededError("Identity changed during daily claim"), "daily.claim")
            self._claiming = False
            if isinstance(e, ConflictError):
                server_next = _conflict_next_available(e.details)
                if server_next is not None:
                    self._apply_next_available(server_next)
                else:
                    self.tick()
                await self.balance.sync()
                return self._failure(
                    AlreadyClaimedError("Already claimed. Come back later.", status_code=409),
                    "daily.claim",
                    value=self.next_eligible_at,
                )
            self.tick()
            if isinstance(e, (UnauthenticatedError, NetworkError)):
                return self._failure(e, "daily.claim")
            return self._failure(
                UnknownError("Could not claim daily right now.", status_code=e.status_code),
                "daily.claim",
            )

        if not self.is_live(token):
            return self._failure(SupersededError("Identity changed during daily claim"), "daily.claim")

        self._claiming = False
        try:
            result = DailyClaimResult.from_dict(response if isinstance(response, dict) else {})
        except ValueError:
            result = DailyClaimResult(amount=0, next_available_at=None)
            logger.warning(
                "Daily claim response carried an invalid next_available_at",
                extra={"event": "daily.response_invalid"},
            )
        self._apply_next_available(result.next_available_at)
        logger.info(
            "Daily points claimed",
            extra={"event": "daily.claimed", "amount": result.amount},
        )

        synced = await self.balance.sync()
        if synced.ok:
            result = replace(result, balance=synced.value.balance)
        return Outcome.success(result, message=f"+{result.amount} points claimed!")
