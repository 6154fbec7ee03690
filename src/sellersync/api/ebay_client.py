#!/usr/bin/env python3
"""eBay REST API client (OAuth, Fulfillment and Identity APIs).

Handles the OAuth 2.0 authorization-code flow for a seller account and
reads the seller's orders.

Features:
    - Authorization URL construction for the consent redirect
    - Code exchange and refresh-token grants (HTTP Basic client auth)
    - Offset-based order pagination with a safety page limit
    - Typed errors: a rejected grant raises InvalidCredentialsError

Security Notes:
    - Client secrets are read from environment variables
    - Tokens are never logged; a SHA-256 prefix is logged instead

Environment Variables:
    EBAY_CLIENT_ID: OAuth client id (App ID)
    EBAY_CLIENT_SECRET: OAuth client secret (Cert ID)
    EBAY_REDIRECT_URI: RuName registered for the consent redirect
    EBAY_ENVIRONMENT: "sandbox" or "production" (default: sandbox)

Example:
    async with EbayClient() as client:
        tokens = await client.exchange_code(code)
        orders = await client.get_orders(tokens["access_token"], start, end)
"""
import asyncio
import base64
import hashlib
import logging
import os
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Optional
from urllib.parse import urlencode

from dotenv import load_dotenv

from .client import PaginationConfig, ProviderClient
from .exceptions import (
    APIError,
    ConfigurationError,
    InvalidCredentialsError,
    NetworkError,
    TokenExpiredError,
    TokenFetchError,
    ValidationError,
)

load_dotenv()

logger = logging.getLogger(__name__)


EBAY_SCOPES = [
    "https://api.ebay.com/oauth/api_scope",
    "https://api.ebay.com/oauth/api_scope/sell.fulfillment.readonly",
    "https://api.ebay.com/oauth/api_scope/sell.finances.readonly",
]

# Applied when the token response leaves them out
DEFAULT_ACCESS_TOKEN_TTL = 7200
DEFAULT_REFRESH_TOKEN_TTL = 47304000  # 18 months

# eBay caps the Fulfillment API at 200 per page; stop after ~1000 orders
EBAY_ORDERS_PAGINATION = PaginationConfig(
    page_size=50,
    delay_between_pages=0.0,
    max_pages=21,
)

_HOSTS = {
    "sandbox": {
        "api": "https://api.sandbox.ebay.com",
        "apiz": "https://apiz.sandbox.ebay.com",
        "auth": "https://auth.sandbox.ebay.com",
    },
    "production": {
        "api": "https://api.ebay.com",
        "apiz": "https://apiz.ebay.com",
        "auth": "https://auth.ebay.com",
    },
}


def format_ebay_timestamp(value: datetime) -> str:
    """Format a datetime the way the creationdate filter expects (UTC, ms)."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


class EbayClient(ProviderClient):
    """Async client for the eBay seller APIs.

    Attributes:
        client_id: OAuth client id (from env: EBAY_CLIENT_ID)
        client_secret: OAuth client secret (from env: EBAY_CLIENT_SECRET)
        redirect_uri: Consent redirect (from env: EBAY_REDIRECT_URI)
        environment: "sandbox" or "production" (from env: EBAY_ENVIRONMENT)
    """

    name = "eBay"

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        environment: Optional[str] = None,
        scopes: Optional[list[str]] = None,
        pagination: PaginationConfig = EBAY_ORDERS_PAGINATION,
    ):
        super().__init__()
        self.client_id = client_id or os.getenv("EBAY_CLIENT_ID")
        self.client_secret = client_secret or os.getenv("EBAY_CLIENT_SECRET")
        self.redirect_uri = redirect_uri or os.getenv("EBAY_REDIRECT_URI")
        self.environment = (environment or os.getenv("EBAY_ENVIRONMENT", "sandbox")).lower()
        self.scopes = scopes or list(EBAY_SCOPES)
        self.pagination = pagination

        missing = []
        if not self.client_id:
            missing.append("EBAY_CLIENT_ID")
        if not self.client_secret:
            missing.append("EBAY_CLIENT_SECRET")
        if not self.redirect_uri:
            missing.append("EBAY_REDIRECT_URI")
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}",
                missing_keys=missing,
            )

        if self.environment not in _HOSTS:
            raise ConfigurationError(
                f"EBAY_ENVIRONMENT must be 'sandbox' or 'production', got '{self.environment}'"
            )

        hosts = _HOSTS[self.environment]
        self.token_url = f"{hosts['api']}/identity/v1/oauth2/token"
        self.authorize_url = f"{hosts['auth']}/oauth2/authorize"
        self.orders_url = f"{hosts['api']}/sell/fulfillment/v1/order"
        self.identity_url = f"{hosts['apiz']}/commerce/identity/v1/user"

    # ----------------------------------------
    # OAuth
    # ----------------------------------------

    def authorization_url(self, state: str) -> str:
        """Build the consent URL the seller is redirected to."""
        query = urlencode(
            {
                "client_id": self.client_id,
                "response_type": "code",
                "redirect_uri": self.redirect_uri,
                "scope": " ".join(self.scopes),
                "state": state,
            }
        )
        return f"{self.authorize_url}?{query}"

    async def exchange_code(self, authorization_code: str) -> dict[str, Any]:
        """Exchange an authorization code for an access/refresh token pair."""
        return await self._token_request(
            {
                "grant_type": "authorization_code",
                "code": authorization_code,
                "redirect_uri": self.redirect_uri,
            }
        )

    async def refresh_token(self, refresh_token: str) -> dict[str, Any]:
        """Obtain a new access token with a refresh token."""
        return await self._token_request(
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "scope": " ".join(self.scopes),
            }
        )

    def _basic_auth_header(self) -> str:
        raw = f"{self.client_id}:{self.client_secret}".encode("ascii")
        return f"Basic {base64.b64encode(raw).decode('ascii')}"

    async def _token_request(self, form: dict[str, str], max_retries: int = 3) -> dict[str, Any]:
        """POST a grant to the token endpoint.

        Returns:
            Token response with expires_in / refresh_token_expires_in defaults applied

        Raises:
            InvalidCredentialsError: Client credentials or grant rejected (401, invalid_grant)
            TokenFetchError: Any other failure after retries
        """
        headers = {
            "Authorization": self._basic_auth_header(),
            "Content-Type": "application/x-www-form-urlencoded",
        }

        try:
            data = await self._request_with_retry(
                "POST",
                self.token_url,
                max_retries=max_retries,
                headers=headers,
                data=form,
            )
        except TokenExpiredError as e:
            raise InvalidCredentialsError(
                "eBay rejected the client credentials",
                cause=e,
            )
        except ValidationError as e:
            body = e.response_body or ""
            if "invalid_grant" in body:
                raise InvalidCredentialsError(
                    f"eBay rejected the {form['grant_type']} grant",
                    details={"response": body[:200]},
                    cause=e,
                )
            raise TokenFetchError(
                f"Invalid token request: {body[:200]}",
                status_code=e.status_code,
                cause=e,
            )
        except (APIError, NetworkError) as e:
            raise TokenFetchError(
                f"Failed to fetch eBay token: {e.message}",
                status_code=getattr(e, "status_code", None),
                attempts=max_retries,
                cause=e,
            )

        access_token = data.get("access_token")
        if not access_token:
            raise TokenFetchError(
                "Token response missing access_token",
                status_code=200,
                details={"response_keys": list(data.keys())},
            )

        data.setdefault("expires_in", DEFAULT_ACCESS_TOKEN_TTL)
        if data.get("refresh_token"):
            data.setdefault("refresh_token_expires_in", DEFAULT_REFRESH_TOKEN_TTL)

        token_id = hashlib.sha256(access_token.encode()).hexdigest()[:8]
        logger.info(
            f"eBay token fetched (id={token_id}, grant={form['grant_type']}), "
            f"expires in {data['expires_in']}s"
        )
        return data

    # ----------------------------------------
    # Seller Data
    # ----------------------------------------

    @staticmethod
    def _bearer(access_token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }

    async def get_user(self, access_token: str) -> dict[str, Any]:
        """Identity of the seller behind the token (userId, username)."""
        return await self._request_with_retry(
            "GET",
            self.identity_url,
            headers=self._bearer(access_token),
        )

    async def paginate_orders(
        self,
        access_token: str,
        start_date: datetime,
        end_date: datetime,
    ) -> AsyncIterator[list[dict[str, Any]]]:
        """Yield pages of orders created within [start_date, end_date].

        Follows the offset until the response has no `next` link or the
        configured page limit is reached.
        """
        config = self.pagination
        order_filter = (
            f"creationdate:[{format_ebay_timestamp(start_date)}.."
            f"{format_ebay_timestamp(end_date)}]"
        )
        offset = 0
        page = 0

        while True:
            data = await self._request_with_retry(
                "GET",
                self.orders_url,
                headers=self._bearer(access_token),
                params={
                    "filter": order_filter,
                    "limit": str(config.page_size),
                    "offset": str(offset),
                },
            )
            page += 1
            orders = data.get("orders") or []
            logger.debug(f"eBay orders page {page}: {len(orders)} orders (offset={offset})")
            yield orders

            if not data.get("next"):
                break
            if config.max_pages is not None and page >= config.max_pages:
                logger.warning(
                    f"Reached safety limit of {page * config.page_size} eBay orders during sync"
                )
                break

            offset += config.page_size
            if config.delay_between_pages:
                await asyncio.sleep(config.delay_between_pages)

    async def get_orders(
        self,
        access_token: str,
        start_date: datetime,
        end_date: datetime,
    ) -> list[dict[str, Any]]:
        """Fetch every order page into one list."""
        orders: list[dict[str, Any]] = []
        async for page in self.paginate_orders(access_token, start_date, end_date):
            orders.extend(page)
        return orders


__all__ = [
    "EBAY_SCOPES",
    "EBAY_ORDERS_PAGINATION",
    "EbayClient",
    "format_ebay_timestamp",
]
