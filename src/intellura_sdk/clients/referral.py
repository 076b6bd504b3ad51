"""
Referral Workflow for Intellura SDK

Applies an invitation code to the current identity at most once.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from ..exceptions import (
    AlreadyReferredError,
    BadRequestError,
    CodeNotFoundError,
    ConflictError,
    IntelluraError,
    InvalidFormatError,
    NotFoundError,
    Outcome,
    SelfReferralError,
    SupersededError,
    UnauthenticatedError,
)
from ..models import Identity, ReferrerStatus
from .balance import BalanceSynchronizer
from .base import SessionBoundClient

logger = logging.getLogger(__name__)

REFERRAL_CODE_PATTERN = re.compile(r"^[A-Z0-9]{4,12}$")

_SELF_REFERRAL_MARKERS = ("self", "own code", "yourself")


def normalize_code(code: str) -> str:
    """
    Strip and upper-case a user-entered code, then check its format.

    Raises:
        InvalidFormatError: Not 4-12 uppercase alphanumerics
    """
    candidate = (code or "").strip().upper()
    if not REFERRAL_CODE_PATTERN.match(candidate):
        raise InvalidFormatError("Referral codes are 4-12 letters or digits")
    return candidate


def classify_apply_error(exc: IntelluraError) -> IntelluraError:
    """Map a ``POST /referral/apply`` failure onto the referral taxonomy."""
    if isinstance(exc, BadRequestError):
        marker = f"{exc.code or ''} {exc.message or ''}".lower()
        if any(token in marker for token in _SELF_REFERRAL_MARKERS):
            return SelfReferralError("You cannot use your own referral code", status_code=400)
        return InvalidFormatError(exc.message or "Invalid referral code", status_code=400)
    if isinstance(exc, NotFoundError):
        return CodeNotFoundError("Referral code not found", status_code=404)
    if isinstance(exc, ConflictError):
        return AlreadyReferredError("You already have a referrer", status_code=409)
    return exc


class ReferralWorkflow(SessionBoundClient):
    """Client for referrer status and applying a referral code."""

    def __init__(self, http_client, session, balance: BalanceSynchronizer) -> None:
        super().__init__(http_client, session)
        self.balance = balance
        self.status: Optional[ReferrerStatus] = None
        self._applying = False

    @property
    def can_apply(self) -> bool:
        """Whether the referral input should be offered."""
        return self.status is not None and not self.status.has_referrer and not self._applying

    def referral_link(self, code: str) -> str:
        return self.session.settings.referral_link(code)

    def reset(self, previous: Optional[Identity], current: Optional[Identity]) -> None:
        self.status = None
        self._applying = False

    async def get_referrer_status(self) -> ReferrerStatus:
        """
        Fetch whether the current identity already has a referrer.

        Raises:
            UnauthenticatedError: No session
            SupersededError: Identity changed while the request was in flight
        """
        self.session.require_identity()
        token = self.liveness_token()
        response = await self.http_client.get("/referral/referrer")
        try:
            status = ReferrerStatus.from_dict(response if isinstance(response, dict) else {})
        except ValueError as e:
            raise IntelluraError(str(e))
        if not self.is_live(token):
            raise SupersededError("Identity changed during referrer lookup")
        self.status = status
        return status

    async def refresh_status(self) -> Outcome:
        try:
            return Outcome.success(await self.get_referrer_status())
        except IntelluraError as e:
            return self._failure(e, "referral.status")

    async def apply_code(self, code: str) -> Outcome:
        """
        Apply ``code`` to the current identity.

        Rejected locally, without a network call, when the format is wrong or
        the identity is already known to have a referrer.

        Returns:
            Outcome whose value is the refreshed ``ReferrerStatus``
        """
        if self.session.identity is None:
            return self._failure(UnauthenticatedError("Please sign in first"), "referral.apply")
        if self.status is not None and self.status.has_referrer:
            return self._failure(AlreadyReferredError("You already have a referrer"), "referral.apply")
        if self._applying:
            return self._failure(AlreadyReferredError("A referral code is already being applied"), "referral.apply")
        try:
            normalized = normalize_code(code)
        except InvalidFormatError as e:
            return self._failure(e, "referral.apply")

        token = self.liveness_token()
        self._applying = True
        try:
            await self.http_client.post("/referral/apply", data={"code": normalized})
        except IntelluraError as e:
            error = classify_apply_error(e)
            if error.kind.is_conflict and self.is_live(token):
                # The server says a referrer exists; trust it over the local flag
                await self.refresh_status()
            return self._failure(error, "referral.apply", value=self.status)
        finally:
            if self.is_live(token):
                self._applying = False

        if not self.is_live(token):
            return self._failure(SupersededError("Identity changed while applying a referral code"), "referral.apply")

        logger.info("Referral code applied", extra={"event": "referral.applied"})
        status_outcome = await self.refresh_status()
        if not status_outcome.ok and self.is_live(token):
            # Applied server-side even though the re-fetch failed; the input must stay hidden
            self.status = ReferrerStatus(has_referrer=True)
        await self.balance.sync()
        return Outcome.success(self.status, message="Referral code applied")
