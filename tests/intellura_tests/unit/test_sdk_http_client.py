"""
Tests for the async HTTP client: status mapping, credentials, transport errors.
"""

import httpx
import pytest

from intellura_sdk.exceptions import (
    BadRequestError,
    ConflictError,
    IntelluraError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    RequestTimeoutError,
    ServerError,
    UnauthenticatedError,
)
from intellura_sdk.http_client import AsyncHTTPClient


def make_client(handler, **kwargs):
    return AsyncHTTPClient(
        "https://api.intellura.test/",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestSuccessfulResponses:
    """Tests for 2xx handling."""

    @pytest.mark.asyncio
    async def test_get_returns_json(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            return httpx.Response(200, json={"balance": 42})

        client = make_client(handler)
        assert await client.get("/balance") == {"balance": 42}
        assert seen["url"] == "https://api.intellura.test/balance"
        await client.close()

    @pytest.mark.asyncio
    async def test_get_passes_query_params(self):
        def handler(request):
            return httpx.Response(200, json={"nonce": request.url.params["address"]})

        async with make_client(handler) as client:
            response = await client.get("/wallet/nonce", params={"address": "0xabc"})
        assert response == {"nonce": "0xabc"}

    @pytest.mark.asyncio
    async def test_post_sends_json_body(self):
        def handler(request):
            assert request.headers["content-type"] == "application/json"
            return httpx.Response(200, content=request.content, headers={"content-type": "application/json"})

        async with make_client(handler) as client:
            assert await client.post("/referral/apply", data={"code": "FUDCH8"}) == {"code": "FUDCH8"}

    @pytest.mark.asyncio
    async def test_empty_body_returns_none(self):
        async with make_client(lambda request: httpx.Response(204)) as client:
            assert await client.post("/logout") is None

    @pytest.mark.asyncio
    async def test_bearer_token_header(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, json={})

        async with make_client(handler, access_token="tok") as client:
            await client.get("/me")
            assert seen["auth"] == "Bearer tok"
            client.clear_credentials()
            await client.get("/me")
            assert seen["auth"] is None

    @pytest.mark.asyncio
    async def test_cookies_persist_between_requests(self):
        seen = []

        def handler(request):
            seen.append(request.headers.get("cookie"))
            return httpx.Response(200, json={}, headers={"set-cookie": "session=abc; Path=/"})

        async with make_client(handler) as client:
            await client.get("/me")
            await client.get("/me")
        assert seen == [None, "session=abc"]


class TestErrorMapping:
    """Tests for status code to exception mapping."""

    @pytest.mark.parametrize(
        "status,exc_type",
        [
            (400, BadRequestError),
            (401, UnauthenticatedError),
            (403, UnauthenticatedError),
            (404, NotFoundError),
            (409, ConflictError),
            (429, RateLimitError),
            (500, ServerError),
            (503, ServerError),
            (418, IntelluraError),
        ],
    )
    @pytest.mark.asyncio
    async def test_status_maps_to_exception(self, status, exc_type):
        async with make_client(lambda request: httpx.Response(status, json={"detail": "nope"})) as client:
            with pytest.raises(exc_type) as excinfo:
                await client.get("/anything")
        assert excinfo.value.status_code == status
        assert excinfo.value.message == "nope"

    @pytest.mark.asyncio
    async def test_error_payload_is_kept(self):
        def handler(request):
            return httpx.Response(409, json={"message": "Already claimed", "next_available_at": "2025-01-01T00:00:00Z"})

        async with make_client(handler) as client:
            with pytest.raises(ConflictError) as excinfo:
                await client.post("/points/daily")
        assert excinfo.value.details["next_available_at"] == "2025-01-01T00:00:00Z"

    @pytest.mark.asyncio
    async def test_error_code_extracted(self):
        def handler(request):
            return httpx.Response(400, json={"detail": "bad", "code": "self_referral"})

        async with make_client(handler) as client:
            with pytest.raises(BadRequestError) as excinfo:
                await client.post("/referral/apply", data={"code": "X"})
        assert excinfo.value.code == "self_referral"

    @pytest.mark.asyncio
    async def test_non_json_error_body(self):
        async with make_client(lambda request: httpx.Response(500, text="boom")) as client:
            with pytest.raises(ServerError, match="boom"):
                await client.get("/quests")

    @pytest.mark.asyncio
    async def test_rate_limit_retry_after(self):
        def handler(request):
            return httpx.Response(429, json={}, headers={"Retry-After": "7"})

        async with make_client(handler) as client:
            with pytest.raises(RateLimitError) as excinfo:
                await client.get("/balance")
        assert excinfo.value.retry_after == 7


class TestTransportErrors:
    """Tests for network failures."""

    @pytest.mark.asyncio
    async def test_connect_error_becomes_network_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with make_client(handler) as client:
            with pytest.raises(NetworkError, match="Connection error"):
                await client.get("/me")

    @pytest.mark.asyncio
    async def test_timeout_becomes_request_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        async with make_client(handler, timeout=2) as client:
            with pytest.raises(RequestTimeoutError, match="2"):
                await client.get("/me")

    @pytest.mark.asyncio
    async def test_timeout_is_a_network_error(self):
        def handler(request):
            raise httpx.ConnectTimeout("slow", request=request)

        async with make_client(handler) as client:
            with pytest.raises(NetworkError):
                await client.get("/me")

    @pytest.mark.asyncio
    async def test_undecodable_body_becomes_network_error(self):
        def handler(request):
            return httpx.Response(200, content=b"plain text", headers={"content-encoding": "gzip"})

        async with make_client(handler) as client:
            with pytest.raises(NetworkError, match="Request failed"):
                await client.get("/me")

    @pytest.mark.asyncio
    async def test_redirect_loop_becomes_network_error(self):
        def handler(request):
            return httpx.Response(302, headers={"location": "https://api.intellura.test/me"})

        async with make_client(handler) as client:
            client.session.follow_redirects = True
            client.session.max_redirects = 2
            with pytest.raises(NetworkError):
                await client.get("/me")
