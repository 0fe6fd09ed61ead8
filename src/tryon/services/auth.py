"""Bearer token verification against the hosted auth service.

The auth service issues and refreshes sessions; this backend only needs to
turn an access token into a user id. Verification is a single call to
``GET {SUPABASE_URL}/auth/v1/user`` with the caller's token.
"""

from typing import Optional, Protocol
from uuid import UUID

import httpx
import structlog

from tryon.services.exceptions import AuthServiceError

logger = structlog.get_logger()


class TokenVerifier(Protocol):
    async def verify(self, access_token: str) -> Optional[UUID]: ...


class SupabaseAuthVerifier:
    """Resolves access tokens to user ids via the Supabase auth API."""

    def __init__(self, base_url: str, anon_key: str, timeout: float = 10.0):
        self.user_url = f"{base_url.rstrip('/')}/auth/v1/user"
        self.anon_key = anon_key
        self.timeout = timeout

    async def verify(self, access_token: str) -> Optional[UUID]:
        """Return the token's user id, or None if the token is not valid.

        Raises:
            AuthServiceError: Auth service unreachable or returned 5xx
        """
        headers = {"Authorization": f"Bearer {access_token}", "apikey": self.anon_key}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(self.user_url, headers=headers)
        except httpx.HTTPError as e:
            raise AuthServiceError(f"Auth service unreachable: {e}") from e

        if response.status_code >= 500:
            raise AuthServiceError(f"Auth service error ({response.status_code})")
        if response.status_code != 200:
            logger.info("auth.token_rejected", status_code=response.status_code)
            return None

        user_id = response.json().get("id")
        try:
            return UUID(str(user_id))
        except ValueError:
            logger.warning("auth.malformed_user_id", user_id=user_id)
            return None
