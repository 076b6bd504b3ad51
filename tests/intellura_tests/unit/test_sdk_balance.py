"""
Tests for the balance synchronizer.
"""

import asyncio

import pytest

from intellura_sdk.exceptions import ErrorKind


@pytest.fixture
def signed_in(client, backend):
    backend.login()
    return client


class TestSync:
    """Tests for sync()."""

    @pytest.mark.asyncio
    async def test_sync_fetches_balance_and_referral(self, signed_in, backend):
        await signed_in.session.refresh()
        backend.balance = 125
        backend.my_referral = {"code": "ALICE1", "shareUrl": "https://intellura.test/r/ALICE1"}

        outcome = await signed_in.balance.sync()

        assert outcome.ok
        assert outcome.value.balance == 125
        assert signed_in.balance.balance == 125
        assert signed_in.balance.referral.code == "ALICE1"
        assert signed_in.balance.referral.share_url == "https://intellura.test/r/ALICE1"

    @pytest.mark.asyncio
    async def test_missing_referral_code_is_tolerated(self, signed_in, backend):
        await signed_in.session.refresh()
        backend.balance = 3

        outcome = await signed_in.balance.sync()

        assert outcome.ok
        assert signed_in.balance.referral is None

    @pytest.mark.asyncio
    async def test_referral_failure_does_not_fail_sync(self, signed_in, backend):
        await signed_in.session.refresh()
        backend.fail_routes[("GET", "/referral/mine")] = 500
        backend.balance = 9

        outcome = await signed_in.balance.sync()

        assert outcome.ok
        assert signed_in.balance.balance == 9

    @pytest.mark.asyncio
    async def test_balance_failure_keeps_last_value(self, signed_in, backend):
        await signed_in.session.refresh()
        backend.balance = 50
        await signed_in.balance.sync()
        backend.fail_routes[("GET", "/balance")] = 502

        outcome = await signed_in.balance.sync()

        assert not outcome.ok
        assert outcome.error is ErrorKind.UNKNOWN
        assert signed_in.balance.balance == 50

    @pytest.mark.asyncio
    async def test_sync_requires_identity(self, client, backend):
        outcome = await client.balance.sync()

        assert outcome.error is ErrorKind.UNAUTHENTICATED
        assert backend.calls_to("GET", "/balance") == 0

    @pytest.mark.asyncio
    async def test_negative_balance_is_clamped(self, signed_in, backend):
        await signed_in.session.refresh()
        backend.balance = -4

        await signed_in.balance.sync()

        assert signed_in.balance.balance == 0

    @pytest.mark.asyncio
    async def test_listeners_receive_snapshot(self, signed_in, backend):
        await signed_in.session.refresh()
        seen = []
        signed_in.balance.subscribe(lambda snapshot: seen.append(snapshot.balance))
        backend.balance = 7

        await signed_in.balance.sync()

        assert seen == [7]


class TestLiveness:
    """Tests for discarding stale sync results."""

    @pytest.mark.asyncio
    async def test_result_discarded_after_logout(self, signed_in, backend):
        await signed_in.session.refresh()
        backend.balance = 999

        async def logout_mid_flight():
            await signed_in.session.logout()

        backend.hooks[("GET", "/balance")] = logout_mid_flight

        outcome = await signed_in.balance.sync()

        assert outcome.error is ErrorKind.SUPERSEDED
        assert signed_in.balance.balance is None
        assert signed_in.balance.display_balance == 0

    @pytest.mark.asyncio
    async def test_prior_identity_result_never_reaches_new_identity(self, signed_in, backend):
        await signed_in.session.refresh()
        backend.balance = 500
        entered, release = asyncio.Event(), asyncio.Event()

        async def hold_first():
            if not entered.is_set():
                entered.set()
                await release.wait()

        backend.hooks[("GET", "/balance")] = hold_first
        pending = asyncio.ensure_future(signed_in.balance.sync())
        await entered.wait()

        # Switch to a different user while the old request is parked
        backend.user = dict(backend.user, id="u-2", x_username="bob")
        await signed_in.session.refresh()
        backend.balance = 1
        fresh = await signed_in.balance.sync()
        release.set()
        stale = await pending

        assert fresh.ok
        assert stale.error is ErrorKind.SUPERSEDED
        assert signed_in.balance.balance == 1

    @pytest.mark.asyncio
    async def test_closed_component_discards_result(self, signed_in, backend):
        await signed_in.session.refresh()
        backend.hooks[("GET", "/balance")] = signed_in.balance.close

        outcome = await signed_in.balance.sync()

        assert outcome.error is ErrorKind.SUPERSEDED
        assert signed_in.balance.balance is None

    @pytest.mark.asyncio
    async def test_last_response_observed_wins(self, signed_in, backend):
        await signed_in.session.refresh()
        entered, slow_gate = asyncio.Event(), asyncio.Event()

        async def first_is_slow():
            if not entered.is_set():
                entered.set()
                await slow_gate.wait()

        backend.hooks[("GET", "/balance")] = first_is_slow
        backend.balance = 10
        slow = asyncio.ensure_future(signed_in.balance.sync())
        await entered.wait()
        backend.balance = 20
        await signed_in.balance.sync()
        assert signed_in.balance.balance == 20

        # The earlier call arrives last, so its value is the one shown
        backend.balance = 30
        slow_gate.set()
        await slow

        assert signed_in.balance.balance == 30
