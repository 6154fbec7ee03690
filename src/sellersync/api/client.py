#!/usr/bin/env python3
"""Shared async HTTP plumbing for the provider clients.

This module provides the parts of provider communication that do not
depend on the provider:

    - Connection pooling via a shared aiohttp session
    - Typed exceptions for HTTP status codes and network failures
    - Rate limit handling on 429 responses
    - Exponential backoff on 5xx responses and network errors

Design Philosophy:
    The client knows HOW to talk HTTP to a provider, not WHAT to fetch.
    EbayClient and WaveClient build on it with provider URLs and payloads.

Usage:
    async with EbayClient() as client:
        orders = await client.get_orders(access_token, start, end)
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional

import aiohttp

from .exceptions import (
    APIError,
    ConnectionError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    ServerError,
    TimeoutError,
    TokenExpiredError,
    ValidationError,
)

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 60
MAX_RATE_LIMIT_WAIT_SECONDS = 120.0


# ============================================
# Configuration
# ============================================

@dataclass
class PaginationConfig:
    """Configuration for paginated API requests.

    Attributes:
        page_size: Number of items per request (API-specific limits apply)
        delay_between_pages: Seconds to wait between requests (rate limiting)
        max_pages: Safety limit to prevent infinite loops (None = no limit)
    """
    page_size: int = 50
    delay_between_pages: float = 0.0
    max_pages: Optional[int] = None


# ============================================
# The Client
# ============================================

class ProviderClient:
    """Async HTTP client base for provider APIs.

    Designed to be used as an async context manager to ensure proper
    session lifecycle management:

        async with WaveClient() as client:
            businesses = await client.get_businesses(token)

    Attributes:
        name: Provider name used in log and error messages
    """

    name = "provider"

    def __init__(self):
        # Session is created in __aenter__, closed in __aexit__
        self._session: Optional[aiohttp.ClientSession] = None

    # ----------------------------------------
    # Context Manager Protocol
    # ----------------------------------------

    async def __aenter__(self):
        """Enter async context: create the HTTP session."""
        self._session = aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(
                limit=10,
                limit_per_host=10,
            ),
            timeout=aiohttp.ClientTimeout(
                total=REQUEST_TIMEOUT_SECONDS,
                connect=10,
            ),
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context: close the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    # ----------------------------------------
    # Low-Level Request Methods
    # ----------------------------------------

    async def _request(
        self,
        method: str,
        url: str,
        headers: Optional[dict] = None,
        params: Optional[dict] = None,
        json_body: Optional[dict] = None,
        data: Optional[dict] = None,
    ) -> dict[str, Any]:
        """Make a single HTTP request (no retry logic).

        Args:
            method: HTTP method (GET, POST)
            url: Absolute request URL
            headers: Request headers (authorization is the caller's job)
            params: Query parameters
            json_body: JSON request body
            data: Form-encoded request body

        Returns:
            Parsed JSON response as dict

        Raises:
            APIError: If response status is not 2xx
            RuntimeError: If called outside of async context manager
            ConnectionError: If connection to server fails
            TimeoutError: If request times out
        """
        if not self._session:
            raise RuntimeError(
                f"{self.__class__.__name__} must be used as async context manager: "
                f"async with {self.__class__.__name__}(...) as client:"
            )

        try:
            async with self._session.request(
                method=method,
                url=url,
                headers=headers,
                params=params,
                json=json_body,
                data=data,
            ) as response:
                if response.status >= 400:
                    error_text = await response.text()
                    raise self._create_api_error(
                        status=response.status,
                        method=method,
                        endpoint=url,
                        response_body=error_text,
                        retry_after=response.headers.get("Retry-After"),
                    )

                return await response.json(content_type=None)

        except aiohttp.ClientConnectionError as e:
            raise ConnectionError(
                f"Failed to connect to {self.name}: {e}",
                host=url,
                cause=e,
            )

        except asyncio.TimeoutError as e:
            raise TimeoutError(
                f"Request to {url} timed out",
                timeout_seconds=REQUEST_TIMEOUT_SECONDS,
                cause=e,
            )

        except aiohttp.ClientError as e:
            raise NetworkError(
                f"Network error during {method} {url}: {e}",
                cause=e,
            )

    def _create_api_error(
        self,
        status: int,
        method: str,
        endpoint: str,
        response_body: str,
        retry_after: Optional[str] = None,
    ) -> APIError:
        """Create appropriate error subclass based on status code."""
        if status == 401:
            return TokenExpiredError(
                f"{self.name} rejected the access token",
                details={"endpoint": endpoint},
            )

        if status == 404:
            return NotFoundError(
                resource_type="Resource",
                resource_id=endpoint,
                endpoint=endpoint,
                response_body=response_body,
            )

        if status == 429:
            try:
                wait = int(retry_after) if retry_after else 60
            except ValueError:
                wait = 60
            return RateLimitError(
                f"Rate limit exceeded for {endpoint}",
                retry_after=wait,
                endpoint=endpoint,
                response_body=response_body,
            )

        if status == 400 or status == 422:
            return ValidationError(
                f"Validation failed for {method} {endpoint}",
                status_code=status,
                endpoint=endpoint,
                response_body=response_body,
            )

        if status >= 500:
            return ServerError(
                f"Server error ({status}) for {method} {endpoint}",
                status_code=status,
                endpoint=endpoint,
                response_body=response_body,
            )

        return APIError(
            f"{method} {endpoint} failed",
            status_code=status,
            endpoint=endpoint,
            method=method,
            response_body=response_body,
        )

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        max_retries: int = 3,
        **kwargs,
    ) -> dict[str, Any]:
        """Make an HTTP request with automatic retry.

        This method wraps _request() with resilience logic:
            - 429 Rate Limited: Wait for Retry-After (capped), retry
            - 5xx Server Errors: Exponential backoff retry
            - Network errors: Exponential backoff retry
            - 401/404/400: No retry

        Raises:
            APIError: If request fails after all retries
            NetworkError: If network error persists after retries
        """
        last_error: Optional[Exception] = None
        backoff_delay = 1.0

        for attempt in range(1, max_retries + 1):
            try:
                return await self._request(method, url, **kwargs)

            except RateLimitError as e:
                last_error = e
                if attempt == max_retries:
                    raise
                wait_time = min(e.retry_after, MAX_RATE_LIMIT_WAIT_SECONDS)
                logger.warning(
                    f"{self.name} rate limited, waiting {wait_time}s "
                    f"(attempt {attempt}/{max_retries})"
                )
                await asyncio.sleep(wait_time)

            except (ServerError, NetworkError) as e:
                last_error = e
                if attempt == max_retries:
                    raise
                logger.warning(
                    f"{self.name} request failed: {e}. Retrying in {backoff_delay}s "
                    f"(attempt {attempt}/{max_retries})"
                )
                await asyncio.sleep(backoff_delay)
                backoff_delay = min(backoff_delay * 2, 60.0)

        if last_error:
            raise last_error

        raise APIError(
            "Request failed after all retries",
            status_code=0,
            endpoint=url,
            method=method,
        )


__all__ = [
    "PaginationConfig",
    "ProviderClient",
]
