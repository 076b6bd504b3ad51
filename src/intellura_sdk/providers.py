"""
Wallet provider integration.

Provides:
- Protocol interface that browser-extension bridges or hardware adapters implement
- ProviderRpcError carrying EIP-1193 error codes
- classify_provider_error, which maps any provider failure onto the SDK taxonomy

Events emitted by providers:
- ``accountsChanged`` with the new list of accounts
- ``chainChanged`` with the new chain id
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Protocol, TypeVar, runtime_checkable

from .exceptions import IntelluraError, ProviderError, UserRejectedError

logger = logging.getLogger(__name__)

ACCOUNTS_CHANGED = "accountsChanged"
CHAIN_CHANGED = "chainChanged"

# EIP-1193 provider error codes
USER_REJECTED_CODE = 4001
UNAUTHORIZED_CODE = 4100

T = TypeVar("T")


class ProviderRpcError(Exception):
    """Error raised by a wallet provider, mirroring EIP-1193 ``ProviderRpcError``."""

    def __init__(self, code: int, message: str = "", data: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data


@runtime_checkable
class WalletProvider(Protocol):
    """
    Protocol interface for wallet providers.

    Implementations wrap whatever actually holds the keys. Private keys never
    pass through the SDK; only addresses and signatures do.
    """

    async def request_accounts(self) -> List[str]:
        """Prompt for account access (``eth_requestAccounts``)."""
        ...

    async def accounts(self) -> List[str]:
        """Already-authorised accounts without prompting (``eth_accounts``)."""
        ...

    async def chain_id(self) -> int:
        ...

    async def sign_message(self, address: str, message: str) -> str:
        """Sign a UTF-8 message (``personal_sign``) and return the hex signature."""
        ...

    def on(self, event: str, handler: Callable[..., None]) -> None:
        ...

    def remove_listener(self, event: str, handler: Callable[..., None]) -> None:
        ...


def is_user_rejection(error: BaseException) -> bool:
    if getattr(error, "code", None) == USER_REJECTED_CODE:
        return True
    return "user rejected" in str(getattr(error, "message", None) or error).lower()


def classify_provider_error(error: BaseException, action: str) -> IntelluraError:
    if isinstance(error, IntelluraError):
        return error
    if is_user_rejection(error):
        return UserRejectedError(f"User rejected {action}")
    message = getattr(error, "message", None) or str(error) or f"Wallet {action} failed"
    return ProviderError(message, code=getattr(error, "code", None))


async def call_provider(awaitable: Awaitable[T], action: str, timeout: Optional[float]) -> T:
    """
    Await a provider call, bounded by ``timeout``.

    Raises:
        UserRejectedError: The user declined the prompt
        ProviderError: Any other failure, including the prompt never being answered
    """
    try:
        if timeout:
            return await asyncio.wait_for(awaitable, timeout)
        return await awaitable
    except asyncio.TimeoutError:
        logger.info(
            "Wallet %s timed out after %ss",
            action,
            timeout,
            extra={"event": "wallet.provider.timeout", "action": action},
        )
        raise ProviderError(f"Wallet {action} timed out")
    except asyncio.CancelledError:
        raise
    except Exception as e:
        raise classify_provider_error(e, action) from e
