"""Trello REST API client."""

from __future__ import annotations

import asyncio
import logging
import os
import random
import time
from typing import Any

import httpx

logger = logging.getLogger(__name__)

TRELLO_API_URL = "https://api.trello.com/1"


class TrelloClientError(Exception):
    """Base exception for Trello client errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TrelloAuthError(TrelloClientError):
    """Authentication failed."""

    pass


class TrelloForbiddenError(TrelloClientError):
    """Permission denied."""

    pass


class TrelloNotFoundError(TrelloClientError):
    """Resource not found."""

    pass


class TrelloRateLimitError(TrelloClientError):
    """Rate limit still exceeded after retries."""

    pass


class TrelloServerError(TrelloClientError):
    """Server error still returned after retries."""

    pass


class RetryConfig:
    """Retry behavior for transient failures.

    Attributes:
        max_retries: Retries after the first attempt (default: 4)
        base_delay: Delay in seconds before the first retry (default: 0.3)
        multiplier: Exponential backoff multiplier (default: 2.0)
        jitter_ratio: Random variance applied to each delay (default: 0.0)
    """

    def __init__(
        self,
        max_retries: int = 4,
        base_delay: float = 0.3,
        multiplier: float = 2.0,
        jitter_ratio: float = 0.0,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        if base_delay < 0:
            raise ValueError("base_delay must be non-negative")
        if multiplier < 1.0:
            raise ValueError("multiplier must be >= 1.0")
        if not 0.0 <= jitter_ratio <= 1.0:
            raise ValueError("jitter_ratio must be between 0.0 and 1.0")

        self.max_retries = max_retries
        self.base_delay = base_delay
        self.multiplier = multiplier
        self.jitter_ratio = jitter_ratio

    def calculate_delay(self, attempt: int) -> float:
        """Delay before retry number attempt (0-indexed)."""
        delay = self.base_delay * (self.multiplier**attempt)
        if self.jitter_ratio:
            variance = delay * self.jitter_ratio
            delay += random.uniform(-variance, variance)
        return max(0.0, delay)


def is_retryable_status(status_code: int) -> bool:
    """Rate limits and server errors are worth retrying; other 4xx are not."""
    return status_code == 429 or 500 <= status_code < 600


class TrelloClient:
    """Async Trello REST client.

    Provides a thin wrapper around the Trello API with:
    - Key/token authentication as query parameters
    - Retries with exponential backoff on 429, 5xx and transport errors
    - Typed errors for auth, permission and not-found responses
    """

    def __init__(
        self,
        key: str,
        token: str,
        base_url: str = TRELLO_API_URL,
        retry: RetryConfig | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the Trello client.

        Args:
            key: Trello API key
            token: Trello API token
            base_url: API base URL
            retry: Retry policy (default: 4 retries, 0.3s base, x2)
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.key = key
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.retry = retry or RetryConfig()
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> TrelloClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    @classmethod
    def from_environment(cls, **kwargs: Any) -> TrelloClient:
        """Create a client from TRELLO_KEY and TRELLO_TOKEN.

        Raises:
            TrelloAuthError: If either variable is missing
        """
        key = os.environ.get("TRELLO_KEY", "")
        token = os.environ.get("TRELLO_TOKEN", "")
        if not key or not token:
            logger.error("No Trello credentials found")
            raise TrelloAuthError(
                "No Trello credentials found. Set TRELLO_KEY and TRELLO_TOKEN "
                "environment variables."
            )
        return cls(key, token, **kwargs)

    async def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Send a request, retrying transient failures.

        Args:
            method: HTTP method
            path: API path, e.g. "/boards/{id}/lists"
            params: Query parameters (auth is added automatically)
            data: Form body for POST/PUT
            json: JSON body, sent instead of a form body

        Returns:
            Decoded JSON body, or the text body for non-JSON responses.

        Raises:
            TrelloAuthError: 401
            TrelloForbiddenError: 403
            TrelloNotFoundError: 404
            TrelloRateLimitError: 429 after retries are exhausted
            TrelloServerError: 5xx after retries are exhausted
            TrelloClientError: Other errors
        """
        query = {**(params or {}), "key": self.key, "token": self.token}
        op = f"{method} {path}"
        attempt = 0

        while True:
            start_time = time.monotonic()
            try:
                response = await self._client.request(
                    method, path, params=query, data=data, json=json
                )
            except httpx.RequestError as e:
                elapsed_ms = (time.monotonic() - start_time) * 1000
                if attempt < self.retry.max_retries:
                    await self._backoff(op, attempt, f"request error: {e}")
                    attempt += 1
                    continue
                logger.error("%s failed after %.0fms: %s", op, elapsed_ms, e)
                raise TrelloClientError(f"Request failed: {e}") from e

            elapsed_ms = (time.monotonic() - start_time) * 1000
            status = response.status_code
            logger.debug("%s: HTTP %d (%.0fms)", op, status, elapsed_ms)

            if is_retryable_status(status):
                if attempt < self.retry.max_retries:
                    await self._backoff(op, attempt, f"HTTP {status}")
                    attempt += 1
                    continue
                logger.error("%s: HTTP %d after %d retries", op, status, attempt)
                if status == 429:
                    raise TrelloRateLimitError(
                        "Trello API rate limit exceeded. Try again later.", status
                    )
                raise TrelloServerError(f"HTTP {status}: {response.text}", status)

            return self._handle_response(op, response, elapsed_ms)

    async def _backoff(self, op: str, attempt: int, reason: str) -> None:
        delay = self.retry.calculate_delay(attempt)
        logger.warning(
            "%s: %s, retrying in %.2fs (attempt %d/%d)",
            op,
            reason,
            delay,
            attempt + 1,
            self.retry.max_retries,
        )
        await asyncio.sleep(delay)

    def _handle_response(self, op: str, response: httpx.Response, elapsed_ms: float) -> Any:
        status = response.status_code
        if status == 401:
            logger.error("%s: 401 Unauthorized (%.0fms)", op, elapsed_ms)
            raise TrelloAuthError(
                "Authentication failed. Check TRELLO_KEY and TRELLO_TOKEN.", status
            )
        if status == 403:
            logger.error("%s: 403 Forbidden (%.0fms)", op, elapsed_ms)
            raise TrelloForbiddenError(
                "Permission denied. Check that the token has read/write access to the board.",
                status,
            )
        if status == 404:
            logger.error("%s: 404 Not Found (%.0fms)", op, elapsed_ms)
            raise TrelloNotFoundError("Resource not found", status)
        if status >= 400:
            logger.error("%s: HTTP %d (%.0fms)", op, status, elapsed_ms)
            raise TrelloClientError(f"HTTP {status}: {response.text}", status)

        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type:
            return response.text
        try:
            return response.json()
        except ValueError as e:
            logger.error("%s: Invalid JSON response (%.0fms)", op, elapsed_ms)
            raise TrelloClientError(f"Invalid JSON response: {e}") from e

    async def get(self, path: str, **params: Any) -> Any:
        return await self.request("GET", path, params=params or None)

    async def post(self, path: str, data: dict[str, Any] | None = None, **params: Any) -> Any:
        return await self.request("POST", path, params=params or None, data=data)

    async def put(
        self, path: str, data: dict[str, Any] | None = None, json: Any = None, **params: Any
    ) -> Any:
        return await self.request("PUT", path, params=params or None, data=data, json=json)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)
