"""
Tests for outcome banners.
"""

import asyncio

import pytest

from intellura_sdk.exceptions import (
    ErrorKind,
    NetworkError,
    Outcome,
    SupersededError,
    UserRejectedError,
    WalletRequiredError,
)
from intellura_sdk.notices import DEFAULT_MESSAGES, BannerCenter


class TestShow:
    """Tests for turning outcomes into banners."""

    def test_success_with_message(self):
        center = BannerCenter()

        banner = center.show(Outcome.success(20, message="+20 points"))

        assert banner.level == "success"
        assert banner.text == "+20 points"
        assert center.current is banner

    def test_success_without_message_is_quiet(self):
        assert BannerCenter().show(Outcome.success()) is None

    @pytest.mark.parametrize("exc", [UserRejectedError("no"), SupersededError("stale")])
    def test_silent_failures_never_show(self, exc):
        center = BannerCenter()

        assert center.show(Outcome.failure(exc)) is None
        assert center.banners == []

    def test_failure_uses_outcome_message(self):
        banner = BannerCenter().show(Outcome.failure(WalletRequiredError("Connect a wallet")))

        assert banner.level == "error"
        assert banner.text == "Connect a wallet"

    def test_failure_without_message_uses_default(self):
        banner = BannerCenter().show(Outcome.failure(NetworkError()))

        assert banner.text == DEFAULT_MESSAGES[ErrorKind.NETWORK]

    def test_every_visible_kind_has_default(self):
        visible = {kind for kind in ErrorKind if not kind.silent}
        assert visible <= set(DEFAULT_MESSAGES)


class TestLifetime:
    """Tests for dismissal and expiry."""

    def test_banners_persist_without_loop(self):
        center = BannerCenter(ttl=0.01)
        center.push("error", "x")

        assert len(center.banners) == 1

    def test_dismiss_and_notify(self):
        center = BannerCenter()
        seen = []
        center.subscribe(lambda banners: seen.append(len(banners)))
        first = center.push("error", "a")
        center.push("error", "b")

        center.dismiss(first.id)

        assert [b.text for b in center.banners] == ["b"]
        assert seen == [1, 2, 1]

    def test_clear(self):
        center = BannerCenter()
        center.push("success", "a")
        center.push("error", "b")

        center.clear()

        assert center.current is None

    @pytest.mark.asyncio
    async def test_banner_expires_after_ttl(self):
        center = BannerCenter(ttl=0.01)
        center.push("success", "saved")

        await asyncio.sleep(0.05)

        assert center.banners == []
