"""eBay API adapter for fetching orders and managing eBay OAuth grants.

This adapter implements IMarketplaceFetcher and wraps EbayClient.
The client must already be open (async with EbayClient() as client).
"""

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from ...api.exceptions import SellerSyncError
from ..domain.entities import AccountIdentity, ExternalOrder, ProviderKind, TokenGrant, UnmappedRecord
from ..domain.ports import IMarketplaceFetcher
from .field_mapper import EbayOrderMapper, map_each, token_grant_from_response

if TYPE_CHECKING:
    from ...api.ebay_client import EbayClient

logger = logging.getLogger(__name__)


class EbayOrderFetcher(IMarketplaceFetcher):
    """eBay Fulfillment API adapter."""

    provider = ProviderKind.EBAY

    def __init__(self, client: "EbayClient", mapper: Optional[EbayOrderMapper] = None):
        self.client = client
        self.mapper = mapper or EbayOrderMapper()

    async def fetch_records(
        self,
        access_token: str,
        account_id: Optional[str],
        start_date: datetime,
        end_date: datetime,
    ) -> list[ExternalOrder | UnmappedRecord]:
        """Fetch the seller's orders created within the window.

        account_id is unused: the token already identifies the seller.
        """
        raw_orders = await self.client.get_orders(access_token, start_date, end_date)
        return map_each(self.mapper.map_to_entity, raw_orders, "orderId")

    async def exchange_authorization_code(self, authorization_code: str) -> TokenGrant:
        data = await self.client.exchange_code(authorization_code)
        return token_grant_from_response(data)

    async def refresh_access_token(self, refresh_token: str) -> TokenGrant:
        data = await self.client.refresh_token(refresh_token)
        return token_grant_from_response(data)

    async def get_account_identity(self, access_token: str) -> AccountIdentity:
        return self.mapper.map_identity(await self.client.get_user(access_token))

    async def validate_token(self, access_token: str) -> bool:
        try:
            await self.client.get_user(access_token)
            return True
        except SellerSyncError as e:
            logger.warning(f"eBay token validation failed: {e}")
            return False
