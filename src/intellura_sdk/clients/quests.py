"""
Quest Claim Engine for Intellura SDK

Lists quests, enforces the engagement window before a claim is attempted,
submits claims and reconciles completion state.

Per-quest state machine:
    AVAILABLE -> TIMER_RUNNING -> CLAIMABLE -> CLAIMED
with NOT_FOUND as a second terminal state. The engagement timer is advisory;
the backend remains the final authority on whether a claim is legitimate.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable, Dict, List, Optional, Set
from urllib.parse import quote

from ..config import ENGAGEMENT_WINDOW
from ..exceptions import (
    AlreadyClaimedError,
    BadRequestError,
    ClaimInProgressError,
    ConflictError,
    EngagementPendingError,
    IntelluraError,
    NetworkError,
    NotFoundError,
    Outcome,
    SupersededError,
    UnauthenticatedError,
    UnknownError,
    WalletRequiredError,
)
from ..models import Identity, Quest, QuestClaimResult, coerce_points
from ..timer_store import MemoryTimerStore, TimerStore
from .balance import BalanceSynchronizer
from .base import SessionBoundClient

logger = logging.getLogger(__name__)


class QuestState(Enum):
    AVAILABLE = "available"
    TIMER_RUNNING = "timer_running"
    CLAIMABLE = "claimable"
    CLAIMED = "claimed"
    NOT_FOUND = "not_found"


def classify_claim_error(exc: IntelluraError) -> IntelluraError:
    """Map a ``POST /quests/:id/claim`` failure onto the quest taxonomy."""
    if isinstance(exc, ConflictError):
        return AlreadyClaimedError("Already claimed.", status_code=409)
    if isinstance(exc, BadRequestError):
        return WalletRequiredError("Please connect your wallet first.", status_code=400)
    if isinstance(exc, NotFoundError):
        return NotFoundError("Quest not found.", status_code=404)
    if isinstance(exc, (UnauthenticatedError, NetworkError)):
        return exc
    return UnknownError("Something went wrong.", status_code=exc.status_code)


class QuestClaimEngine(SessionBoundClient):
    """Client for quests and quest claims."""

    def __init__(
        self,
        http_client,
        session,
        balance: BalanceSynchronizer,
        timer_store: Optional[TimerStore] = None,
        engagement_window: float = ENGAGEMENT_WINDOW,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(http_client, session)
        self.balance = balance
        self.timer_store = timer_store if timer_store is not None else MemoryTimerStore()
        self.engagement_window = engagement_window
        self.clock = clock
        self.loading = False
        self._quests: Dict[str, Quest] = {}
        self._completed: Set[str] = set()
        self._missing: Set[str] = set()
        self._claiming: Set[str] = set()

    @property
    def quests(self) -> List[Quest]:
        return list(self._quests.values())

    def reset(self, previous: Optional[Identity], current: Optional[Identity]) -> None:
        self._quests = {}
        self._completed = set()
        self._missing = set()
        self._claiming = set()
        self.loading = False
        if previous is not None:
            self._clear_timers(previous.key)

    # ==================== Engagement timers ====================

    def _timer_key(self, quest_id: str, scope: Optional[str] = None) -> str:
        if scope is None:
            scope = self.session.require_identity().key
        return f"{scope}:{quest_id}"

    def _clear_timers(self, scope: str) -> None:
        timers = self.timer_store.load()
        prefix = f"{scope}:"
        kept = {key: value for key, value in timers.items() if not key.startswith(prefix)}
        if len(kept) != len(timers):
            self.timer_store.save(kept)

    def started_at(self, quest_id: str) -> Optional[float]:
        if self.session.identity is None:
            return None
        return self.timer_store.load().get(self._timer_key(quest_id))

    def start_quest_timer(self, quest_id: str) -> Optional[float]:
        """
        Record first exposure to a quest.

        Idempotent: a running timer is never restarted.

        Returns:
            The timer's start time, or ``None`` for a quest that can no longer be claimed
        """
        key = self._timer_key(quest_id)
        if quest_id in self._completed or quest_id in self._missing:
            return None
        timers = self.timer_store.load()
        if key in timers:
            return timers[key]

        started = self.clock()
        updated = dict(timers)
        updated[key] = started
        self.timer_store.save(updated)
        logger.debug(
            "Quest timer started",
            extra={"event": "quests.timer_started", "quest_id": quest_id},
        )
        return started

    def abandon_timer(self, quest_id: str) -> None:
        if self.session.identity is None:
            return
        key = self._timer_key(quest_id)
        timers = self.timer_store.load()
        if key not in timers:
            return
        updated = dict(timers)
        del updated[key]
        self.timer_store.save(updated)

    def remaining(self, quest_id: str) -> Optional[float]:
        """Seconds left in the engagement window, ``None`` when no timer is running."""
        started = self.started_at(quest_id)
        if started is None:
            return None
        return max(0.0, started + self.engagement_window - self.clock())

    def state(self, quest_id: str) -> QuestState:
        if quest_id in self._missing:
            return QuestState.NOT_FOUND
        if quest_id in self._completed:
            return QuestState.CLAIMED
        remaining = self.remaining(quest_id)
        if remaining is None:
            return QuestState.AVAILABLE
        if remaining > 0:
            return QuestState.TIMER_RUNNING
        return QuestState.CLAIMABLE

    def can_claim(self, quest_id: str) -> bool:
        return self.state(quest_id) is QuestState.CLAIMABLE and quest_id not in self._claiming

    # ==================== Network operations ====================

    async def load_quests(self) -> List[Quest]:
        """
        Fetch the quest list. A failed fetch leaves the list as it was.
        """
        if self.session.identity is None:
            return []
        token = self.liveness_token()
        self.loading = True
        try:
            response = await self.http_client.get("/quests")
        except IntelluraError as e:
            logger.warning(
                "Could not load quests: %s",
                e,
                extra={"event": "quests.load_failed", "error_type": type(e).__name__},
            )
            if self.is_live(token):
                self.loading = False
            return self.quests

        if not self.is_live(token):
            return []

        items = response.get("quests", []) if isinstance(response, dict) else response
        quests: Dict[str, Quest] = {}
        for item in items or []:
            try:
                quest = Quest.from_dict(item)
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning(
                    "Skipping malformed quest: %s",
                    e,
                    extra={"event": "quests.malformed"},
                )
                continue
            if quest.id in self._completed:
                quest = quest.with_completed()
            quests[quest.id] = quest

        self._quests = quests
        for quest in quests.values():
            if quest.completed:
                self._completed.add(quest.id)
                self.abandon_timer(quest.id)
        self.loading = False
        return self.quests

    def _mark_completed(self, quest_id: str) -> None:
        self._completed.add(quest_id)
        quest = self._quests.get(quest_id)
        if quest is not None and not quest.completed:
            self._quests[quest_id] = quest.with_completed()
        self.abandon_timer(quest_id)

    def _check_claimable(self, quest_id: str) -> None:
        if quest_id in self._missing:
            raise NotFoundError("Quest not found.")
        if quest_id in self._completed:
            raise AlreadyClaimedError("Already claimed.")
        if quest_id in self._claiming:
            raise ClaimInProgressError("Claim already in progress.")
        remaining = self.remaining(quest_id)
        if remaining is None:
            raise EngagementPendingError("Open the quest before claiming.", remaining=self.engagement_window)
        if remaining > 0:
            raise EngagementPendingError(
                f"Come back in {int(remaining) + 1}s to claim.",
                remaining=remaining,
            )

    async def claim(self, quest_id: str) -> Outcome:
        """
        Claim a quest reward.

        Local rejections (engagement window still running, already completed,
        claim in flight) never touch the network. A successful claim is only
        returned after the balance has been re-synced.

        Returns:
            Outcome whose value is a ``QuestClaimResult``
        """
        if self.session.identity is None:
            return self._failure(UnauthenticatedError("Please sign in to claim."), "quests.claim")
        try:
            self._check_claimable(quest_id)
        except IntelluraError as e:
            return self._failure(e, "quests.claim")

        token = self.liveness_token()
        self._claiming.add(quest_id)
        try:
            response = await self.http_client.post(f"/quests/{quote(quest_id, safe='')}/claim")
        except IntelluraError as e:
            if not self.is_live(token):
                return self._failure(SupersededError("Identity changed during claim"), "quests.claim")
            self._claiming.discard(quest_id)
            error = classify_claim_error(e)
            if isinstance(error, AlreadyClaimedError):
                self._mark_completed(quest_id)
                await self.balance.sync()
            elif isinstance(error, NotFoundError):
                self._missing.add(quest_id)
                self._quests.pop(quest_id, None)
                self.abandon_timer(quest_id)
            return self._failure(error, "quests.claim")

        if not self.is_live(token):
            return self._failure(SupersededError("Identity changed during claim"), "quests.claim")

        self._claiming.discard(quest_id)
        points = coerce_points(response.get("points_awarded", 0) if isinstance(response, dict) else 0)
        self._mark_completed(quest_id)
        logger.info(
            "Quest claimed",
            extra={"event": "quests.claimed", "quest_id": quest_id, "points": points},
        )

        synced = await self.balance.sync()
        balance = synced.value.balance if synced.ok else None
        quest = self._quests.get(quest_id)
        name = quest.name if quest else quest_id
        return Outcome.success(
            QuestClaimResult(quest_id=quest_id, points_awarded=points, balance=balance),
            message=f'+{points} points from "{name}"',
        )
