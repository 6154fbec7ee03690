#!/usr/bin/env python3
"""Wave GraphQL API client.

Wave authenticates with a full-access token the user creates in the Wave
developer portal. The token does not expire and there is no refresh grant.

Features:
    - Business listing (used to validate a token and pick the business)
    - Page-number invoice pagination with a safety page limit
    - GraphQL `errors` surfaced as typed exceptions

Example:
    async with WaveClient() as client:
        businesses = await client.get_businesses(token)
        invoices = await client.get_invoices(token, businesses[0]["id"], start, end)
"""
import asyncio
import logging
from datetime import date, datetime
from typing import Any, AsyncIterator, Optional

from .client import PaginationConfig, ProviderClient
from .exceptions import APIError, NotFoundError, TokenExpiredError

logger = logging.getLogger(__name__)


WAVE_GRAPHQL_URL = "https://gql.waveapps.com/graphql/public"

WAVE_INVOICES_PAGINATION = PaginationConfig(
    page_size=50,
    delay_between_pages=0.0,
    max_pages=20,
)

BUSINESSES_QUERY = """
query {
    businesses(page: 1, pageSize: 100) {
        edges {
            node {
                id
                name
                isPersonal
                currency {
                    code
                }
            }
        }
    }
}
"""

_MONEY = "value currency { code }"

INVOICES_QUERY = f"""
query ($businessId: ID!, $page: Int!, $pageSize: Int!) {{
    business(id: $businessId) {{
        invoices(page: $page, pageSize: $pageSize) {{
            pageInfo {{
                totalPages
                currentPage
            }}
            edges {{
                node {{
                    id
                    invoiceNumber
                    status
                    invoiceDate
                    dueDate
                    memo
                    viewUrl
                    customer {{
                        id
                        name
                        email
                    }}
                    total {{ {_MONEY} }}
                    amountDue {{ {_MONEY} }}
                    amountPaid {{ {_MONEY} }}
                    items {{
                        description
                        quantity
                        unitPrice {{ {_MONEY} }}
                        total {{ {_MONEY} }}
                    }}
                }}
            }}
        }}
    }}
}}
"""


def _invoice_day(node: dict[str, Any]) -> Optional[date]:
    raw = node.get("invoiceDate")
    if not raw:
        return None
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        return None


class WaveClient(ProviderClient):
    """Async client for the Wave public GraphQL API."""

    name = "Wave"

    def __init__(
        self,
        graphql_url: str = WAVE_GRAPHQL_URL,
        pagination: PaginationConfig = WAVE_INVOICES_PAGINATION,
    ):
        super().__init__()
        self.graphql_url = graphql_url
        self.pagination = pagination

    async def execute(
        self,
        access_token: str,
        query: str,
        variables: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """Run a GraphQL query and return its `data` object.

        Raises:
            TokenExpiredError: Token rejected (HTTP 401 or UNAUTHENTICATED)
            APIError: The response carried GraphQL errors
        """
        body: dict[str, Any] = {"query": query}
        if variables:
            body["variables"] = variables

        response = await self._request_with_retry(
            "POST",
            self.graphql_url,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Content-Type": "application/json",
            },
            json_body=body,
        )

        errors = response.get("errors")
        if errors:
            messages = "; ".join(str(err.get("message", err)) for err in errors)
            codes = {
                (err.get("extensions") or {}).get("code")
                for err in errors
                if isinstance(err, dict)
            }
            if "UNAUTHENTICATED" in codes:
                raise TokenExpiredError(f"Wave rejected the access token: {messages}")
            raise APIError(
                f"Wave GraphQL error: {messages}",
                status_code=200,
                endpoint=self.graphql_url,
                method="POST",
            )

        return response.get("data") or {}

    async def get_businesses(self, access_token: str) -> list[dict[str, Any]]:
        """Businesses the token can access (id, name, isPersonal, currency)."""
        data = await self.execute(access_token, BUSINESSES_QUERY)
        edges = ((data.get("businesses") or {}).get("edges")) or []
        return [edge["node"] for edge in edges if edge.get("node")]

    async def paginate_invoices(
        self,
        access_token: str,
        business_id: str,
    ) -> AsyncIterator[list[dict[str, Any]]]:
        """Yield pages of invoice nodes of one business."""
        config = self.pagination
        page = 1

        while True:
            data = await self.execute(
                access_token,
                INVOICES_QUERY,
                {"businessId": business_id, "page": page, "pageSize": config.page_size},
            )
            business = data.get("business")
            if business is None:
                raise NotFoundError("Wave business", business_id)

            invoices = business.get("invoices") or {}
            edges = invoices.get("edges") or []
            yield [edge["node"] for edge in edges if edge.get("node")]

            page_info = invoices.get("pageInfo") or {}
            if page_info.get("currentPage", page) >= page_info.get("totalPages", 0):
                break
            if config.max_pages is not None and page >= config.max_pages:
                logger.warning(
                    f"Reached safety limit of {config.max_pages} pages during Wave invoice sync"
                )
                break

            page += 1
            if config.delay_between_pages:
                await asyncio.sleep(config.delay_between_pages)

    async def get_invoices(
        self,
        access_token: str,
        business_id: str,
        start_date: datetime,
        end_date: datetime,
    ) -> list[dict[str, Any]]:
        """Invoices dated within [start_date, end_date] (by calendar day).

        The invoices connection has no date filter, so pages are read in
        full and filtered here. Invoices without a parseable date are dropped.
        """
        first, last = start_date.date(), end_date.date()
        selected: list[dict[str, Any]] = []

        async for page in self.paginate_invoices(access_token, business_id):
            for node in page:
                day = _invoice_day(node)
                if day is not None and first <= day <= last:
                    selected.append(node)

        logger.debug(f"Wave business {business_id}: {len(selected)} invoices in window")
        return selected


__all__ = [
    "WAVE_GRAPHQL_URL",
    "WAVE_INVOICES_PAGINATION",
    "WaveClient",
]
