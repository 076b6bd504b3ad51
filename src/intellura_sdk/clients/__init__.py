"""
Intellura SDK Client modules

Provides one workflow class per engagement concern.
"""

from .balance import BalanceSynchronizer
from .daily import DailyCooldownClaim, DailyState, format_remaining
from .quests import QuestClaimEngine, QuestState
from .referral import ReferralWorkflow
from .wallet_link import LinkState, WalletLinkWorkflow

__all__ = [
    "BalanceSynchronizer",
    "DailyCooldownClaim",
    "DailyState",
    "LinkState",
    "QuestClaimEngine",
    "QuestState",
    "ReferralWorkflow",
    "WalletLinkWorkflow",
    "format_remaining",
]
