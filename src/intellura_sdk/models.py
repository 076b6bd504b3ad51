"""
Data models for the Intellura SDK.

Every model is built from backend JSON through a ``from_dict`` constructor
that tolerates the field-name variants the backend has shipped over time.
Models are immutable; state changes produce new instances.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .address import normalize_address


def _first(data: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 string or epoch number into an aware UTC datetime.

    Naive timestamps are taken to be UTC.
    """
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        return datetime.fromtimestamp(float(value), tz=timezone.utc)
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_flag(value: Any) -> bool:
    """Booleans pass through; strings such as ``"false"`` or ``"0"`` are read, not truth-tested."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    if isinstance(value, (int, float)):
        return value != 0
    return False


def _wallet(value: Any) -> Optional[str]:
    if not value:
        return None
    try:
        return normalize_address(str(value))
    except ValueError:
        # Malformed values are kept as sent
        return str(value)


def coerce_points(value: Any) -> float:
    """Points are non-negative; anything unparseable counts as zero."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number) or number < 0:
        return 0
    return int(number) if number.is_integer() else number


@dataclass(frozen=True)
class Referrer:
    handle: str
    avatar_url: Optional[str] = None
    code: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Referrer":
        return cls(
            handle=_first(data, "handle", "x_username", "username") or "",
            avatar_url=_first(data, "avatarUrl", "avatar_url", "profile_image_url"),
            code=_first(data, "code"),
        )


@dataclass(frozen=True)
class Identity:
    """Authenticated user record returned by ``GET /me``."""

    handle: str
    avatar_url: Optional[str] = None
    wallet_address: Optional[str] = None
    referral_code: Optional[str] = None
    referrer: Optional[Any] = None
    user_id: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Identity":
        if not isinstance(data, dict):
            raise ValueError("Identity payload must be an object")
        user_id = _first(data, "id", "user_id", "x_user_id")
        handle = _first(data, "handle", "x_username", "username")
        if handle is None and user_id is None:
            raise ValueError("Identity payload carries neither a handle nor an id")
        return cls(
            handle=str(handle or "User"),
            avatar_url=_first(data, "avatarUrl", "avatar_url", "profile_image_url"),
            wallet_address=_wallet(_first(data, "wallet_address", "walletAddress")),
            referral_code=_first(data, "referral_code", "referralCode"),
            referrer=_first(data, "referrer", "referred_by"),
            user_id=str(user_id) if user_id is not None else None,
            raw=dict(data),
        )

    @property
    def key(self) -> str:
        """Stable identity key used to scope per-identity client state."""
        return self.user_id or f"handle:{self.handle}"


@dataclass(frozen=True)
class ReferralInfo:
    code: str
    share_url: str

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["ReferralInfo"]:
        """The code is generated lazily server-side; absence yields ``None``."""
        if not isinstance(data, dict):
            return None
        code = _first(data, "code")
        if not code:
            return None
        return cls(code=str(code), share_url=str(_first(data, "shareUrl", "share_url") or ""))


@dataclass(frozen=True)
class ReferrerStatus:
    has_referrer: bool
    referrer: Optional[Referrer] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReferrerStatus":
        has_referrer = _first(data, "hasReferrer", "has_referrer")
        if not isinstance(has_referrer, bool):
            raise ValueError("Referrer status payload lacks a boolean has_referrer")
        referrer_data = data.get("referrer")
        referrer = Referrer.from_dict(referrer_data) if has_referrer and isinstance(referrer_data, dict) else None
        return cls(has_referrer=has_referrer, referrer=referrer)


@dataclass(frozen=True)
class Quest:
    id: str
    name: str
    points: float = 0
    link: Optional[str] = None
    button_text: Optional[str] = None
    completed: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Quest":
        quest_id = data.get("id")
        if quest_id in (None, ""):
            raise ValueError("Quest payload lacks an id")
        return cls(
            id=str(quest_id),
            name=str(data.get("name") or quest_id),
            points=coerce_points(data.get("points", 0)),
            link=_first(data, "link", "url"),
            button_text=_first(data, "button_text", "buttonText"),
            completed=parse_flag(data.get("completed", False)),
        )

    def with_completed(self) -> "Quest":
        return replace(self, completed=True)


@dataclass(frozen=True)
class QuestClaimResult:
    quest_id: str
    points_awarded: float
    balance: Optional[float] = None


@dataclass(frozen=True)
class DailyClaimResult:
    amount: float
    next_available_at: Optional[datetime]
    balance: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DailyClaimResult":
        return cls(
            amount=coerce_points(data.get("amount", 0)),
            next_available_at=parse_timestamp(data.get("next_available_at")),
        )


@dataclass(frozen=True)
class BalanceSnapshot:
    balance: float
    referral: Optional[ReferralInfo] = None
