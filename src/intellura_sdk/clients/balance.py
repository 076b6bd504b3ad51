"""
Balance Synchronizer for Intellura SDK

Re-fetches the authoritative point balance and the identity's own referral
code after every mutating action. The client never computes a balance itself.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional

from ..exceptions import IntelluraError, NotFoundError, Outcome, SupersededError, UnauthenticatedError
from ..models import BalanceSnapshot, Identity, ReferralInfo, coerce_points
from .base import SessionBoundClient

logger = logging.getLogger(__name__)

BalanceListener = Callable[[BalanceSnapshot], None]


class BalanceSynchronizer(SessionBoundClient):
    """Client for the point balance and the caller's referral link."""

    def __init__(self, http_client, session) -> None:
        super().__init__(http_client, session)
        self.balance: Optional[float] = None
        self.referral: Optional[ReferralInfo] = None
        self._listeners: List[BalanceListener] = []

    @property
    def display_balance(self) -> float:
        return self.balance if self.balance is not None else 0

    def subscribe(self, listener: BalanceListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def reset(self, previous: Optional[Identity], current: Optional[Identity]) -> None:
        self.balance = None
        self.referral = None

    async def _fetch_balance(self) -> float:
        response = await self.http_client.get("/balance")
        if not isinstance(response, dict) or "balance" not in response:
            raise IntelluraError("Malformed balance response")
        return coerce_points(response["balance"])

    async def _fetch_referral(self) -> Optional[ReferralInfo]:
        try:
            response = await self.http_client.get("/referral/mine")
        except NotFoundError:
            return None
        return ReferralInfo.from_dict(response)

    async def sync(self) -> Outcome:
        """
        Fetch balance and referral info concurrently.

        Results are applied in arrival order; a result that arrives after an
        identity change or ``close()`` is discarded.

        Returns:
            Outcome whose value is a ``BalanceSnapshot``
        """
        if self.session.identity is None:
            return self._failure(UnauthenticatedError("Please sign in first"), "balance.sync")

        token = self.liveness_token()
        balance_result, referral_result = await asyncio.gather(
            self._fetch_balance(),
            self._fetch_referral(),
            return_exceptions=True,
        )

        if not self.is_live(token):
            return self._failure(SupersededError("Identity changed during balance sync"), "balance.sync")

        if isinstance(referral_result, IntelluraError):
            logger.info(
                "Referral info unavailable: %s",
                referral_result,
                extra={"event": "balance.referral_unavailable"},
            )
        elif isinstance(referral_result, BaseException):
            raise referral_result
        elif referral_result is not None:
            self.referral = referral_result

        if isinstance(balance_result, IntelluraError):
            return self._failure(balance_result, "balance.sync")
        if isinstance(balance_result, BaseException):
            raise balance_result

        self.balance = balance_result
        snapshot = BalanceSnapshot(balance=balance_result, referral=self.referral)
        logger.debug(
            "Balance synced",
            extra={"event": "balance.synced", "balance": balance_result},
        )
        for listener in list(self._listeners):
            listener(snapshot)
        return Outcome.success(snapshot)
