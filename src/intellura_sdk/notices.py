"""
Dismissible banners for workflow outcomes.

Failed outcomes that are not silent, and successes that carry a message,
become a banner that clears itself after ``ttl`` seconds. Silent aborts
(user rejection, superseded attempts) never produce one.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .config import BANNER_TTL
from .exceptions import ErrorKind, Outcome

logger = logging.getLogger(__name__)

DEFAULT_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.PROVIDER_UNAVAILABLE: "No wallet detected. Install MetaMask or a compatible wallet.",
    ErrorKind.WALLET_REQUIRED: "Please connect your wallet first.",
    ErrorKind.PROVIDER_ERROR: "Wallet request failed. Please try again.",
    ErrorKind.NETWORK: "Network error. Please try again.",
    ErrorKind.VERIFICATION_FAILED: "Wallet signature could not be verified. Please try again.",
    ErrorKind.UNKNOWN: "Something went wrong.",
    ErrorKind.UNAUTHENTICATED: "Please sign in to continue.",
    ErrorKind.ALREADY_LINKED: "This wallet is linked to another account.",
    ErrorKind.ALREADY_CLAIMED: "Already claimed.",
    ErrorKind.ALREADY_REFERRED: "You already have a referrer.",
    ErrorKind.INVALID_FORMAT: "That referral code is not valid.",
    ErrorKind.SELF_REFERRAL: "You cannot use your own referral code.",
    ErrorKind.ENGAGEMENT_PENDING: "Open the quest and come back in a few seconds.",
    ErrorKind.COOLDOWN_ACTIVE: "Not ready yet.",
    ErrorKind.CLAIM_IN_PROGRESS: "Claim already in progress.",
    ErrorKind.NOT_FOUND: "Not found.",
    ErrorKind.CODE_NOT_FOUND: "Referral code not found.",
}


@dataclass(frozen=True)
class Banner:
    id: int
    level: str
    text: str


class BannerCenter:
    """Holds the banners currently on display."""

    def __init__(self, ttl: float = BANNER_TTL) -> None:
        self.ttl = ttl
        self.banners: List[Banner] = []
        self._ids = itertools.count(1)
        self._timers: Dict[int, asyncio.TimerHandle] = {}
        self._listeners: List[Callable[[List[Banner]], None]] = []

    @property
    def current(self) -> Optional[Banner]:
        return self.banners[-1] if self.banners else None

    def subscribe(self, listener: Callable[[List[Banner]], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def show(self, outcome: Outcome) -> Optional[Banner]:
        """Turn an outcome into a banner, or nothing for silent outcomes."""
        if outcome.ok:
            if not outcome.message:
                return None
            return self.push("success", outcome.message)
        if outcome.silent:
            return None
        text = outcome.message or DEFAULT_MESSAGES.get(outcome.error, "Something went wrong.")
        return self.push("error", text)

    def push(self, level: str, text: str) -> Banner:
        banner = Banner(id=next(self._ids), level=level, text=text)
        self.banners.append(banner)
        self._schedule_clear(banner.id)
        self._notify()
        return banner

    def dismiss(self, banner_id: int) -> None:
        handle = self._timers.pop(banner_id, None)
        if handle is not None:
            handle.cancel()
        remaining = [b for b in self.banners if b.id != banner_id]
        if len(remaining) != len(self.banners):
            self.banners = remaining
            self._notify()

    def clear(self) -> None:
        for handle in self._timers.values():
            handle.cancel()
        self._timers = {}
        if self.banners:
            self.banners = []
            self._notify()

    def _schedule_clear(self, banner_id: int) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: banners persist until dismissed explicitly
            return
        self._timers[banner_id] = loop.call_later(self.ttl, self.dismiss, banner_id)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(list(self.banners))
