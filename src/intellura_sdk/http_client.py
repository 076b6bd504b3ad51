"""
HTTP Client for Intellura SDK

Handles all HTTP communication with the backend: connection retries, the
session cookie jar, optional bearer token, timeouts, and translation of
status codes into typed exceptions.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from .config import HTTP_RETRIES, HTTP_TIMEOUT, USER_AGENT
from .exceptions import (
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

logger = logging.getLogger(__name__)


def _error_message(data: Any, default: str) -> str:
    if isinstance(data, dict):
        for key in ("message", "detail", "error"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict) and isinstance(value.get("message"), str):
                return value["message"]
    if isinstance(data, str) and data:
        return data
    return default


def _error_code(data: Any) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    for key in ("code", "error_code", "reason"):
        value = data.get(key)
        if isinstance(value, str) and value:
            return value
    detail = data.get("detail")
    if isinstance(detail, dict) and isinstance(detail.get("code"), str):
        return detail["code"]
    return None


class AsyncHTTPClient:
    """
    Async HTTP client for the Intellura backend.

    Features:
    - Connection retries through the httpx transport
    - Cookie-based session credential, shared across requests
    - Optional bearer token from the login callback
    - Status-code to exception mapping
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = HTTP_TIMEOUT,
        max_retries: int = HTTP_RETRIES,
        access_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize HTTP client.

        Args:
            base_url: Base URL for API
            timeout: Request timeout in seconds
            max_retries: Connection retries on connect failures
            access_token: Optional bearer token
            transport: Custom transport (tests use ``httpx.MockTransport``)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.access_token = access_token

        self.session = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport or httpx.AsyncHTTPTransport(retries=max_retries),
            headers={
                "Accept": "application/json",
                "User-Agent": USER_AGENT,
            },
            follow_redirects=False,
        )

    def set_access_token(self, token: Optional[str]) -> None:
        self.access_token = token or None

    def clear_credentials(self) -> None:
        """Drop the bearer token and every cookie of the current session."""
        self.access_token = None
        self.session.cookies.clear()

    def _get_headers(self, custom_headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        if custom_headers:
            headers.update(custom_headers)
        return headers

    def _handle_response(self, response: httpx.Response) -> Any:
        """
        Handle API response and raise appropriate exceptions.

        Returns:
            Decoded JSON body, ``None`` for an empty body

        Raises:
            Various SDK exceptions based on status code
        """
        if response.content:
            try:
                data = response.json()
            except ValueError:
                data = {"message": response.text}
        else:
            data = None

        if 200 <= response.status_code < 300:
            return data

        status = response.status_code
        message = _error_message(data, response.reason_phrase or "Unknown error")
        kwargs = {
            "code": _error_code(data),
            "status_code": status,
            "details": data if isinstance(data, dict) else {},
        }

        if status == 400:
            raise BadRequestError(message, **kwargs)
        elif status in (401, 403):
            raise UnauthenticatedError(message, **kwargs)
        elif status == 404:
            raise NotFoundError(message, **kwargs)
        elif status == 409:
            raise ConflictError(message, **kwargs)
        elif status == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                message,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
                **kwargs,
            )
        elif status >= 500:
            raise ServerError(message, **kwargs)
        else:
            raise IntelluraError(message, **kwargs)

    async def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """
        Make a request and return the decoded body.

        Args:
            method: HTTP method
            endpoint: API endpoint, relative to ``base_url``
            params: Query parameters
            data: JSON request body
            headers: Custom headers
        """
        try:
            response = await self.session.request(
                method,
                endpoint,
                params=params,
                json=data,
                headers=self._get_headers(headers),
            )
        except httpx.TimeoutException as e:
            logger.warning(
                "Request timeout",
                extra={"event": "http.timeout", "method": method, "endpoint": endpoint},
            )
            raise RequestTimeoutError(f"Request timeout after {self.timeout}s") from e
        except httpx.TransportError as e:
            logger.warning(
                "Connection error: %s",
                e,
                extra={"event": "http.transport_error", "method": method, "endpoint": endpoint},
            )
            raise NetworkError(f"Connection error: {e}") from e
        except httpx.RequestError as e:
            logger.warning(
                "Request failed: %s",
                e,
                extra={"event": "http.request_error", "method": method, "endpoint": endpoint},
            )
            raise NetworkError(f"Request failed: {e}") from e

        logger.debug(
            "%s %s - Status: %s",
            method,
            endpoint,
            response.status_code,
            extra={"event": "http.response", "status": response.status_code},
        )
        return self._handle_response(response)

    async def get(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        return await self.request("GET", endpoint, params=params, headers=headers)

    async def post(
        self,
        endpoint: str,
        data: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        return await self.request("POST", endpoint, data=data, headers=headers)

    async def close(self) -> None:
        """Close the session."""
        await self.session.aclose()

    async def __aenter__(self) -> "AsyncHTTPClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
