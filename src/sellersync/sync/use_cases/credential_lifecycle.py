"""Credential Lifecycle Manager - keeps provider access tokens usable.

Decides whether a stored credential can be used as-is, has to be refreshed,
or needs the user to reauthorize. It only mutates the in-memory credential
and registers the write through the credential repository; committing is
left to the caller.
"""

import hashlib
import logging
from datetime import datetime, timedelta

from ...api.exceptions import (
    InvalidCredentialsError,
    ReauthorizationRequiredError,
    TokenRefreshFailedError,
    error_message,
)
from ..domain.entities import Credential, TokenGrant, utc_now
from ..domain.ports import ICredentialRepository, IExternalRecordFetcher, ITokenCipher

logger = logging.getLogger(__name__)


def token_id(token: str) -> str:
    """Safe identifier for logging (SHA-256 hash, first 8 chars)."""
    return hashlib.sha256(token.encode()).hexdigest()[:8]


class CredentialLifecycleManager:
    """Determines token validity and runs the refresh protocol.

    Example:
        lifecycle = CredentialLifecycleManager(cipher, credential_repo, fetcher)
        access_token = await lifecycle.ensure_valid_access_token(credential)
        await unit_of_work.commit()
    """

    def __init__(
        self,
        cipher: ITokenCipher,
        credential_repo: ICredentialRepository,
        fetcher: IExternalRecordFetcher,
    ):
        self.cipher = cipher
        self.credential_repo = credential_repo
        self.fetcher = fetcher

    @staticmethod
    def is_access_token_expired(credential: Credential, now: datetime | None = None) -> bool:
        if credential.access_token_expires_at is None:
            return True
        return (now or utc_now()) >= credential.access_token_expires_at

    @staticmethod
    def is_refresh_token_expired(credential: Credential, now: datetime | None = None) -> bool:
        if credential.refresh_token_expires_at is None:
            return False
        return (now or utc_now()) >= credential.refresh_token_expires_at

    def needs_refresh(
        self,
        credential: Credential,
        ahead: timedelta = timedelta(0),
        now: datetime | None = None,
    ) -> bool:
        """True if the access token expires within `ahead` and can be refreshed."""
        now = now or utc_now()
        return (
            credential.encrypted_refresh_token is not None
            and not self.is_refresh_token_expired(credential, now)
            and self.is_access_token_expired(credential, now + ahead)
        )

    async def ensure_valid_access_token(self, credential: Credential) -> str:
        """Return a usable plaintext access token.

        Returns:
            The decrypted (possibly just refreshed) access token

        Raises:
            ReauthorizationRequiredError: Refresh token expired or revoked
            TokenRefreshFailedError: Refresh call failed for another reason
        """
        now = utc_now()

        if self.is_refresh_token_expired(credential, now):
            await self.require_reauthorization(credential, now)

        if self.is_access_token_expired(credential, now):
            return await self.refresh(credential)

        return await self.cipher.decrypt(credential.encrypted_access_token)

    async def refresh(self, credential: Credential) -> str:
        """Exchange the refresh token for a new access token.

        Calls the provider exactly once and registers the new token state
        with the repository before returning.
        """
        now = utc_now()
        provider = credential.provider

        if not credential.encrypted_refresh_token:
            await self.require_reauthorization(credential, now)

        refresh_token = await self.cipher.decrypt(credential.encrypted_refresh_token)

        try:
            grant = await self.fetcher.refresh_access_token(refresh_token)
        except InvalidCredentialsError as e:
            logger.warning(f"{provider.display_name} rejected refresh token for user {credential.user_id}: {e}")
            await self.require_reauthorization(credential, now, cause=e)
        except Exception as e:
            raise TokenRefreshFailedError(
                f"Failed to refresh {provider.display_name} access token: {error_message(e)}",
                cause=e,
            )

        await self._apply_grant(credential, grant, now)
        logger.info(
            f"Refreshed {provider.display_name} token (id={token_id(grant.access_token)}) "
            f"for user {credential.user_id}, expires in {grant.expires_in}s"
        )
        return grant.access_token

    async def require_reauthorization(
        self,
        credential: Credential,
        now: datetime | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Mark the credential disconnected and raise ReauthorizationRequiredError."""
        error = ReauthorizationRequiredError(credential.provider.display_name, cause=cause)
        credential.mark_reauthorization_required(error.message, now)
        await self.credential_repo.update(credential)
        logger.warning(
            f"{credential.provider.display_name} credential for user {credential.user_id} "
            f"requires reauthorization"
        )
        raise error

    async def _apply_grant(self, credential: Credential, grant: TokenGrant, now: datetime) -> None:
        if not grant.access_token:
            raise TokenRefreshFailedError("Token response missing access_token")

        encrypted_access = await self.cipher.encrypt(grant.access_token)
        encrypted_refresh = None
        if grant.refresh_token:
            encrypted_refresh = await self.cipher.encrypt(grant.refresh_token)

        refresh_expires_at = None
        if grant.refresh_token_expires_in and grant.refresh_token_expires_in > 0:
            refresh_expires_at = now + timedelta(seconds=grant.refresh_token_expires_in)

        credential.update_tokens(
            encrypted_access_token=encrypted_access,
            access_token_expires_at=now + timedelta(seconds=grant.expires_in),
            encrypted_refresh_token=encrypted_refresh,
            refresh_token_expires_at=refresh_expires_at,
            now=now,
        )
        await self.credential_repo.update(credential)
