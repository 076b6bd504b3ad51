"""
Intellura Python SDK

Client-side engine for the Intellura engagement API: session, wallet linking,
referrals, quests and the daily claim.

Example:
    >>> from intellura_sdk import IntelluraClient
    >>> async with IntelluraClient() as client:
    ...     await client.daily.claim_daily()
"""

from .client import IntelluraClient
from .config import ClientSettings, ConfigurationError
from .exceptions import (
    ErrorCategory,
    ErrorKind,
    IntelluraError,
    NetworkError,
    Outcome,
    UnauthenticatedError,
)
from .models import (
    DailyClaimResult,
    Identity,
    Quest,
    QuestClaimResult,
    ReferralInfo,
    ReferrerStatus,
)
from .providers import ProviderRpcError, WalletProvider

__version__ = "1.0.0"
__author__ = "Intellura Team"

__all__ = [
    "IntelluraClient",
    "ClientSettings",
    "ConfigurationError",
    "ErrorCategory",
    "ErrorKind",
    "IntelluraError",
    "NetworkError",
    "Outcome",
    "UnauthenticatedError",
    "DailyClaimResult",
    "Identity",
    "Quest",
    "QuestClaimResult",
    "ReferralInfo",
    "ReferrerStatus",
    "ProviderRpcError",
    "WalletProvider",
]
