"""Token cipher backed by PostgreSQL pgcrypto.

Tokens are encrypted with pgp_sym_encrypt and stored ASCII-armored, so the
ciphertext fits a text column. The key never leaves this process except
as a query parameter.
"""

import logging
import os
from typing import TYPE_CHECKING, Optional

from dotenv import load_dotenv

from ...api.database import database_connection
from ...api.exceptions import ConfigurationError
from ..domain.ports import ITokenCipher

if TYPE_CHECKING:
    import asyncpg

load_dotenv()

logger = logging.getLogger(__name__)


class PgcryptoTokenCipher(ITokenCipher):
    """ITokenCipher using pgp_sym_encrypt/pgp_sym_decrypt.

    Requires the pgcrypto extension (CREATE EXTENSION pgcrypto).

    Environment Variables:
        TOKEN_ENCRYPTION_KEY: Symmetric key for token encryption (required)
    """

    def __init__(self, pool: "asyncpg.Pool", key: Optional[str] = None):
        self.pool = pool
        self._key = key or os.getenv("TOKEN_ENCRYPTION_KEY")
        if not self._key:
            raise ConfigurationError(
                "Missing required environment variables: TOKEN_ENCRYPTION_KEY",
                missing_keys=["TOKEN_ENCRYPTION_KEY"],
            )

    async def encrypt(self, plaintext: str) -> str:
        async with database_connection(self.pool) as conn:
            return await conn.fetchval(
                "SELECT armor(pgp_sym_encrypt($1::text, $2::text))",
                plaintext,
                self._key,
            )

    async def decrypt(self, ciphertext: str) -> str:
        async with database_connection(self.pool) as conn:
            return await conn.fetchval(
                "SELECT pgp_sym_decrypt(dearmor($1::text), $2::text)",
                ciphertext,
                self._key,
            )

    def __repr__(self):
        return "PgcryptoTokenCipher(key=***)"
