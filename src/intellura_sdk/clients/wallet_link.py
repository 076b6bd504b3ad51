"""
Wallet Link Workflow for Intellura SDK

Binds a wallet address to the current identity with a challenge-response:
discover address -> fetch nonce -> sign nonce -> submit signature.

Each step is a public method so callers can drive the flow one prompt at a
time; ``link()`` runs the whole protocol and converts failures into an
``Outcome``. Account or network changes reported by the provider bump the
attempt counter, and any step that resumes after such a change raises
``SupersededError`` instead of completing against a stale address.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, List, Optional

from ..address import normalize_address, same_address, short_address, to_checksum_address
from ..config import PROVIDER_TIMEOUT, SIGN_MESSAGE_TEMPLATE
from ..exceptions import (
    AlreadyLinkedError,
    BadRequestError,
    ConflictError,
    IntelluraError,
    NetworkError,
    Outcome,
    ProviderError,
    ProviderUnavailableError,
    SupersededError,
    UnauthenticatedError,
    VerificationFailedError,
)
from ..models import Identity
from ..providers import ACCOUNTS_CHANGED, CHAIN_CHANGED, WalletProvider, call_provider
from .balance import BalanceSynchronizer
from .base import SessionBoundClient

logger = logging.getLogger(__name__)


class LinkState(Enum):
    DISCONNECTED = "disconnected"
    ADDRESS_DISCOVERED = "address_discovered"
    NONCE_REQUESTED = "nonce_requested"
    AWAITING_SIGNATURE = "awaiting_signature"
    SUBMITTING = "submitting"
    LINKED = "linked"


def parse_chain_id(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip()
    try:
        return int(text, 16) if text.lower().startswith("0x") else int(text)
    except ValueError:
        return None


class WalletLinkWorkflow(SessionBoundClient):
    """Client for linking a wallet address to the signed-in identity."""

    def __init__(
        self,
        http_client,
        session,
        balance: BalanceSynchronizer,
        provider: Optional[WalletProvider] = None,
        provider_timeout: float = PROVIDER_TIMEOUT,
    ) -> None:
        super().__init__(http_client, session)
        self.balance = balance
        self.provider = provider
        self.provider_timeout = provider_timeout
        self.state = LinkState.DISCONNECTED
        self.address: Optional[str] = None
        self.chain_id: Optional[int] = None
        self._attempt = 0
        self._attached = False

    @property
    def linked_address(self) -> Optional[str]:
        identity = self.session.identity
        return identity.wallet_address if identity else None

    @property
    def display_address(self) -> Optional[str]:
        """Shortened checksummed address for the wallet badge, linked address first."""
        address = self.linked_address or self.address
        if not address:
            return None
        try:
            return short_address(to_checksum_address(address))
        except ValueError:
            return short_address(address)

    @property
    def busy(self) -> bool:
        return self.state in (
            LinkState.NONCE_REQUESTED,
            LinkState.AWAITING_SIGNATURE,
            LinkState.SUBMITTING,
        )

    # ==================== Provider subscription ====================

    def attach(self) -> None:
        """Subscribe to provider account and network notifications."""
        if self.provider is None or self._attached or self.closed:
            return
        self.provider.on(ACCOUNTS_CHANGED, self._on_accounts_changed)
        self.provider.on(CHAIN_CHANGED, self._on_chain_changed)
        self._attached = True

    def detach(self) -> None:
        if self.provider is None or not self._attached:
            return
        self.provider.remove_listener(ACCOUNTS_CHANGED, self._on_accounts_changed)
        self.provider.remove_listener(CHAIN_CHANGED, self._on_chain_changed)
        self._attached = False

    def close(self) -> None:
        self.detach()
        self._attempt += 1
        super().close()

    def _recovery_state(self) -> LinkState:
        return LinkState.ADDRESS_DISCOVERED if self.address else LinkState.DISCONNECTED

    def _on_accounts_changed(self, accounts: List[str]) -> None:
        if self.closed:
            return
        self._attempt += 1
        address = None
        if accounts:
            try:
                address = normalize_address(accounts[0])
            except ValueError:
                logger.warning(
                    "Provider reported a malformed account",
                    extra={"event": "wallet.accounts_changed.malformed"},
                )
        self.address = address
        self.state = self._recovery_state()
        logger.info(
            "Wallet account changed",
            extra={"event": "wallet.accounts_changed", "connected": address is not None},
        )

    def _on_chain_changed(self, chain_id: Any) -> None:
        if self.closed:
            return
        self._attempt += 1
        self.chain_id = parse_chain_id(chain_id)
        self.state = self._recovery_state()
        logger.info(
            "Wallet network changed",
            extra={"event": "wallet.chain_changed", "chain_id": self.chain_id},
        )

    def reset(self, previous: Optional[Identity], current: Optional[Identity]) -> None:
        self._attempt += 1
        self.state = self._recovery_state()

    def _ensure_current(self, token: int, attempt: int) -> None:
        if not self.is_live(token) or attempt != self._attempt:
            raise SupersededError("Wallet link attempt was superseded")

    def _require_provider(self) -> WalletProvider:
        if self.provider is None:
            raise ProviderUnavailableError("No wallet detected. Install MetaMask or a compatible wallet.")
        return self.provider

    # ==================== Protocol steps ====================

    async def peek(self) -> Outcome:
        """Read already-authorised accounts and the chain id without prompting."""
        if self.provider is None:
            return self._failure(ProviderUnavailableError("No wallet detected"), "wallet.peek")
        provider = self.provider
        token, attempt = self.liveness_token(), self._attempt
        try:
            accounts = await call_provider(provider.accounts(), "account read", self.provider_timeout)
            chain_id = await call_provider(provider.chain_id(), "network read", self.provider_timeout)
            self._ensure_current(token, attempt)
        except IntelluraError as e:
            return self._failure(e, "wallet.peek")

        self.chain_id = parse_chain_id(chain_id)
        if accounts:
            try:
                self.address = normalize_address(accounts[0])
            except ValueError as e:
                return self._failure(ProviderError(str(e)), "wallet.peek")
            if self.state is LinkState.DISCONNECTED:
                self.state = LinkState.ADDRESS_DISCOVERED
        return Outcome.success(self.address)

    async def discover_address(self) -> str:
        """
        Ask the provider for account access and return the active address.

        Raises:
            ProviderUnavailableError: No wallet present
            UserRejectedError: The user declined (silent)
            ProviderError: Any other provider failure
        """
        provider = self._require_provider()
        token, attempt = self.liveness_token(), self._attempt
        accounts = await call_provider(provider.request_accounts(), "account access", self.provider_timeout)
        self._ensure_current(token, attempt)
        if not accounts:
            raise ProviderError("Wallet returned no accounts")
        try:
            address = normalize_address(accounts[0])
        except ValueError as e:
            raise ProviderError(str(e))

        try:
            chain_id = await call_provider(provider.chain_id(), "network read", self.provider_timeout)
        except ProviderError as e:
            logger.debug("Chain id unavailable: %s", e, extra={"event": "wallet.chain_id_unavailable"})
            chain_id = None
        self._ensure_current(token, attempt)

        self.address = address
        self.chain_id = parse_chain_id(chain_id)
        self.state = LinkState.ADDRESS_DISCOVERED
        return address

    async def request_challenge(self, address: str) -> str:
        """
        Obtain a fresh single-use nonce for ``address``.

        Raises:
            UnauthenticatedError: No session
            NetworkError: Backend unreachable or failed
        """
        self.session.require_identity()
        token, attempt = self.liveness_token(), self._attempt
        self.state = LinkState.NONCE_REQUESTED
        try:
            response = await self.http_client.get("/wallet/nonce", params={"address": address.lower()})
        except (UnauthenticatedError, NetworkError):
            raise
        except IntelluraError as e:
            raise NetworkError(f"Could not obtain a wallet challenge: {e.message}", status_code=e.status_code)
        self._ensure_current(token, attempt)

        nonce = response.get("nonce") if isinstance(response, dict) else None
        if not isinstance(nonce, str) or not nonce:
            raise NetworkError("Malformed wallet challenge response")
        return nonce

    async def sign(self, address: str, nonce: str) -> str:
        """
        Have the provider sign the challenge message.

        Raises:
            UserRejectedError: The user declined (silent)
            ProviderError: Any other provider failure
        """
        provider = self._require_provider()
        token, attempt = self.liveness_token(), self._attempt
        self.state = LinkState.AWAITING_SIGNATURE
        message = SIGN_MESSAGE_TEMPLATE.format(nonce=nonce)
        signature = await call_provider(provider.sign_message(address, message), "signature", self.provider_timeout)
        self._ensure_current(token, attempt)
        if not isinstance(signature, str) or not signature:
            raise ProviderError("Wallet returned an empty signature")
        return signature

    async def submit_link(self, address: str, signature: str) -> Optional[Identity]:
        """
        Send the signed proof and re-fetch the identity.

        Raises:
            VerificationFailedError: Signature mismatch or expired nonce
            AlreadyLinkedError: Address bound to a different identity
        """
        token, attempt = self.liveness_token(), self._attempt
        self.state = LinkState.SUBMITTING
        try:
            await self.http_client.post(
                "/wallet/connect",
                data={"address": address.lower(), "signature": signature},
            )
        except BadRequestError as e:
            raise VerificationFailedError(e.message or "Signature verification failed", status_code=400)
        except ConflictError as e:
            # Conflict: re-fetch so the cached identity reflects the server's binding
            await self.session.refresh()
            raise AlreadyLinkedError(
                e.message or "This wallet is linked to another account",
                status_code=409,
            )
        self._ensure_current(token, attempt)

        self.state = LinkState.LINKED
        identity = await self.session.refresh()
        if identity is not None and not same_address(identity.wallet_address, address):
            logger.warning(
                "Identity refresh did not reflect the linked wallet yet",
                extra={"event": "wallet.link.identity_stale"},
            )
        logger.info("Wallet linked", extra={"event": "wallet.linked"})
        return identity

    async def link(self) -> Outcome:
        """
        Run the whole challenge-response protocol.

        Re-invoking while an attempt is in flight supersedes the older attempt.

        Returns:
            Outcome whose value is the linked address
        """
        if self.session.identity is None:
            return self._failure(UnauthenticatedError("Please sign in first"), "wallet.link")

        self._attempt += 1
        attempt = self._attempt
        try:
            address = await self.discover_address()
            nonce = await self.request_challenge(address)
            signature = await self.sign(address, nonce)
            await self.submit_link(address, signature)
        except IntelluraError as e:
            if attempt == self._attempt and not self.closed:
                self.state = self._recovery_state()
            return self._failure(e, "wallet.link")

        if self.is_live(self.liveness_token()):
            await self.balance.sync()
        return Outcome.success(address, message="Wallet connected!")
