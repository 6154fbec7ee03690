"""Connect Account Use Cases - store a new provider authorization.

eBay uses the OAuth authorization-code flow: the code is exchanged for an
access/refresh token pair and the eBay user identity is read with it.
Wave uses a full-access token pasted by the user; it is validated against
the API and stored with a non-expiring expiry.
"""

import logging
from datetime import timedelta

from ...api.exceptions import AccountConnectionError, error_message
from ..domain.entities import (
    NON_EXPIRING,
    ConnectionStatus,
    Credential,
    ProviderKind,
    utc_now,
)
from ..domain.ports import (
    ICredentialRepository,
    IInvoicingFetcher,
    IMarketplaceFetcher,
    ITokenCipher,
    IUnitOfWork,
)

logger = logging.getLogger(__name__)


async def _load_or_new(
    credential_repo: ICredentialRepository,
    user_id: str,
    provider: ProviderKind,
) -> tuple[Credential, bool]:
    credential = await credential_repo.get(user_id, provider)
    if credential is None:
        return Credential(user_id=user_id, provider=provider), True
    return credential, False


class ConnectEbayAccountUseCase:
    """Completes the eBay OAuth flow for a user."""

    def __init__(
        self,
        fetcher: IMarketplaceFetcher,
        credential_repo: ICredentialRepository,
        cipher: ITokenCipher,
        unit_of_work: IUnitOfWork,
    ):
        self.fetcher = fetcher
        self.credential_repo = credential_repo
        self.cipher = cipher
        self.unit_of_work = unit_of_work

    async def execute(self, user_id: str, authorization_code: str) -> ConnectionStatus:
        """Exchange the authorization code and persist the credential.

        Raises:
            AccountConnectionError: If the exchange or identity lookup fails
        """
        if not authorization_code:
            raise AccountConnectionError("Authorization code is required")

        try:
            grant = await self.fetcher.exchange_authorization_code(authorization_code)
            identity = await self.fetcher.get_account_identity(grant.access_token)
        except Exception as e:
            logger.error(f"Failed to connect eBay account for user {user_id}: {e}")
            raise AccountConnectionError(f"Failed to connect eBay account: {error_message(e)}", cause=e)

        now = utc_now()
        refresh_expires_at = None
        if grant.refresh_token_expires_in and grant.refresh_token_expires_in > 0:
            refresh_expires_at = now + timedelta(seconds=grant.refresh_token_expires_in)

        credential, is_new = await _load_or_new(self.credential_repo, user_id, ProviderKind.EBAY)
        credential.connect(
            encrypted_access_token=await self.cipher.encrypt(grant.access_token),
            access_token_expires_at=now + timedelta(seconds=grant.expires_in),
            encrypted_refresh_token=(
                await self.cipher.encrypt(grant.refresh_token) if grant.refresh_token else None
            ),
            refresh_token_expires_at=refresh_expires_at,
            account_id=identity.account_id,
            account_name=identity.display_name,
            scopes=grant.scope,
            now=now,
        )

        if is_new:
            await self.credential_repo.add(credential)
        else:
            await self.credential_repo.update(credential)
        await self.unit_of_work.commit()

        logger.info(f"Connected eBay account {identity.display_name} for user {user_id}")
        return ConnectionStatus.from_credential(credential, ProviderKind.EBAY, now)


class ConnectWaveAccountUseCase:
    """Stores a validated Wave full-access token for a user."""

    def __init__(
        self,
        fetcher: IInvoicingFetcher,
        credential_repo: ICredentialRepository,
        cipher: ITokenCipher,
        unit_of_work: IUnitOfWork,
    ):
        self.fetcher = fetcher
        self.credential_repo = credential_repo
        self.cipher = cipher
        self.unit_of_work = unit_of_work

    async def execute(
        self,
        user_id: str,
        access_token: str,
        business_id: str | None = None,
        business_name: str | None = None,
    ) -> ConnectionStatus:
        """Validate the token and persist the credential.

        Args:
            user_id: Owner of the credential
            access_token: Wave full-access token
            business_id: Business to sync (default: first one the token sees)
            business_name: Display name of that business

        Raises:
            AccountConnectionError: If the token is invalid or sees no business
        """
        if not access_token or not await self.fetcher.validate_token(access_token):
            raise AccountConnectionError(
                "Invalid Wave access token. Please check your token and try again."
            )

        if not business_id:
            try:
                businesses = await self.fetcher.list_accounts(access_token)
            except Exception as e:
                raise AccountConnectionError(f"Failed to load Wave businesses: {error_message(e)}", cause=e)
            if not businesses:
                raise AccountConnectionError("The Wave token does not have access to any business")
            business_id = businesses[0].account_id
            business_name = business_name or businesses[0].display_name

        now = utc_now()
        credential, is_new = await _load_or_new(self.credential_repo, user_id, ProviderKind.WAVE)
        credential.connect(
            encrypted_access_token=await self.cipher.encrypt(access_token),
            access_token_expires_at=NON_EXPIRING,
            account_id=business_id,
            account_name=business_name,
            now=now,
        )

        if is_new:
            await self.credential_repo.add(credential)
        else:
            await self.credential_repo.update(credential)
        await self.unit_of_work.commit()

        logger.info(f"Connected Wave business {business_name or business_id} for user {user_id}")
        return ConnectionStatus.from_credential(credential, ProviderKind.WAVE, now)
