"""
Intellura SDK client facade.

Wires the HTTP transport, the session store and every workflow together
so they share one cookie jar, one identity and one balance.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

import httpx

from .clients import (
    BalanceSynchronizer,
    DailyCooldownClaim,
    QuestClaimEngine,
    ReferralWorkflow,
    WalletLinkWorkflow,
)
from .config import ClientSettings
from .http_client import AsyncHTTPClient
from .models import Identity
from .notices import BannerCenter
from .providers import WalletProvider
from .session import SessionStore
from .timer_store import TimerStore, create_timer_store

logger = logging.getLogger(__name__)


class IntelluraClient:
    """
    Entry point for the Intellura engagement API.

    Example:
        >>> async with IntelluraClient(provider=my_wallet) as client:
        ...     if client.session.identity is None:
        ...         print("Sign in at", client.login_url())
        ...     outcome = await client.wallet.link()
        ...     client.banners.show(outcome)
    """

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        provider: Optional[WalletProvider] = None,
        timer_store: Optional[TimerStore] = None,
        access_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings or ClientSettings.from_env()
        self.http_client = AsyncHTTPClient(
            base_url=self.settings.api_base,
            timeout=self.settings.http_timeout,
            max_retries=self.settings.http_retries,
            access_token=access_token,
            transport=transport,
        )
        self.session = SessionStore(self.http_client, self.settings)
        self.balance = BalanceSynchronizer(self.http_client, self.session)
        self.wallet = WalletLinkWorkflow(
            self.http_client,
            self.session,
            self.balance,
            provider=provider,
            provider_timeout=self.settings.provider_timeout,
        )
        self.referral = ReferralWorkflow(self.http_client, self.session, self.balance)
        self.quests = QuestClaimEngine(
            self.http_client,
            self.session,
            self.balance,
            timer_store=timer_store or create_timer_store(self.settings.timer_store_path),
            engagement_window=self.settings.engagement_window,
            clock=clock,
        )
        self.daily = DailyCooldownClaim(
            self.http_client,
            self.session,
            self.balance,
            countdown_interval=self.settings.countdown_interval,
            clock=clock,
        )
        self.banners = BannerCenter(ttl=self.settings.banner_ttl)
        self._reload_task: Optional[asyncio.Task] = None
        self._unsubscribe_reload: Optional[Callable[[], None]] = None

    def login_url(self) -> str:
        return self.settings.login_url()

    async def start(self) -> None:
        """
        Bootstrap the session, then load per-identity state when signed in.

        After start, every later sign-in or identity switch reloads the
        dashboard in the background; see ``wait_for_reload``.
        """
        self.wallet.attach()
        identity = await self.session.init()
        if self._unsubscribe_reload is None:
            self._unsubscribe_reload = self.session.subscribe(self._on_identity_change)
        if identity is None:
            return
        await self.load_dashboard()

    def _on_identity_change(self, previous: Optional[Identity], current: Optional[Identity]) -> None:
        if current is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop, dashboard reload skipped", extra={"event": "client.reload_skipped"})
            return
        self._reload_task = loop.create_task(self._reload(self.session.generation))

    async def _reload(self, generation: int) -> None:
        if not self.session.is_current(generation):
            return
        logger.info("Reloading dashboard for new identity", extra={"event": "client.reload"})
        await self.load_dashboard()

    async def wait_for_reload(self) -> None:
        """Wait for the background reload scheduled by the latest identity change."""
        task = self._reload_task
        if task is not None:
            await task

    async def load_dashboard(self) -> None:
        """Balance, referral status and quests for the signed-in identity."""
        generation = self.session.generation
        await self.balance.sync()
        if not self.session.is_current(generation):
            return
        await self.referral.refresh_status()
        if not self.session.is_current(generation):
            return
        await self.quests.load_quests()

    async def logout(self) -> None:
        await self.session.logout()
        self.banners.clear()

    async def aclose(self) -> None:
        if self._unsubscribe_reload is not None:
            self._unsubscribe_reload()
            self._unsubscribe_reload = None
        if self._reload_task is not None and not self._reload_task.done():
            self._reload_task.cancel()
        for component in (self.wallet, self.referral, self.quests, self.daily, self.balance):
            component.close()
        self.banners.clear()
        self.session.teardown()
        await self.http_client.close()

    async def __aenter__(self) -> "IntelluraClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
