import sys
from pathlib import Path

import pytest

# Fakes live beside the tests rather than in the package
sys.path.insert(0, str(Path(__file__).parent))

from intellura_fakes import FakeBackend, FakeClock, FakeWalletProvider  # noqa: E402

from intellura_sdk.client import IntelluraClient  # noqa: E402
from intellura_sdk.config import ClientSettings  # noqa: E402
from intellura_sdk.timer_store import MemoryTimerStore  # noqa: E402


@pytest.fixture
def clock():
    """Manually advanced clock shared by the SDK and the fake backend"""
    return FakeClock()


@pytest.fixture
def backend(clock):
    """Fake backend with an anonymous visitor"""
    return FakeBackend(clock)


@pytest.fixture
def provider():
    """Wallet provider holding one account"""
    return FakeWalletProvider()


@pytest.fixture
def timer_store():
    return MemoryTimerStore()


@pytest.fixture
def settings():
    return ClientSettings(
        api_base="https://api.intellura.test",
        http_timeout=5,
        http_retries=0,
        provider_timeout=1,
        engagement_window=10,
        countdown_interval=0.01,
        banner_ttl=0.05,
        timer_store_path=None,
    )


@pytest.fixture
def make_client(settings, backend, provider, timer_store, clock):
    """Factory so a test can build a second client to simulate a restart"""

    def _make(**overrides):
        kwargs = dict(
            settings=settings,
            provider=provider,
            timer_store=timer_store,
            transport=backend.transport,
            clock=clock,
        )
        kwargs.update(overrides)
        return IntelluraClient(**kwargs)

    return _make


@pytest.fixture
def client(make_client):
    return make_client()
