"""Wave API adapter for fetching invoices of a connected business.

This adapter implements IInvoicingFetcher and wraps WaveClient.
Wave full-access tokens do not expire and cannot be refreshed.
"""

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from ...api.exceptions import AuthenticationError, SellerSyncError, ValidationError
from ..domain.entities import AccountIdentity, ExternalInvoice, ProviderKind, TokenGrant, UnmappedRecord
from ..domain.ports import IInvoicingFetcher
from .field_mapper import WaveInvoiceMapper, map_each

if TYPE_CHECKING:
    from ...api.wave_client import WaveClient

logger = logging.getLogger(__name__)


class WaveInvoiceFetcher(IInvoicingFetcher):
    """Wave GraphQL API adapter."""

    provider = ProviderKind.WAVE

    def __init__(self, client: "WaveClient", mapper: Optional[WaveInvoiceMapper] = None):
        self.client = client
        self.mapper = mapper or WaveInvoiceMapper()

    async def fetch_records(
        self,
        access_token: str,
        account_id: Optional[str],
        start_date: datetime,
        end_date: datetime,
    ) -> list[ExternalInvoice | UnmappedRecord]:
        """Fetch invoices of the connected business dated within the window."""
        if not account_id:
            raise ValidationError("No Wave business selected for this account", field="business_id")

        raw_invoices = await self.client.get_invoices(access_token, account_id, start_date, end_date)
        return map_each(self.mapper.map_to_entity, raw_invoices, "id")

    async def refresh_access_token(self, refresh_token: str) -> TokenGrant:
        raise AuthenticationError(
            "Wave access tokens cannot be refreshed; reconnect the account",
            recoverable=False,
        )

    async def list_accounts(self, access_token: str) -> list[AccountIdentity]:
        businesses = await self.client.get_businesses(access_token)
        return [self.mapper.map_business(b) for b in businesses]

    async def get_account_identity(self, access_token: str) -> AccountIdentity:
        accounts = await self.list_accounts(access_token)
        if not accounts:
            raise AuthenticationError("The Wave token does not have access to any business")
        return accounts[0]

    async def validate_token(self, access_token: str) -> bool:
        """A token is valid if it can see at least one business."""
        try:
            return len(await self.client.get_businesses(access_token)) > 0
        except SellerSyncError as e:
            logger.warning(f"Wave token validation failed: {e}")
            return False
