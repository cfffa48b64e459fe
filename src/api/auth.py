"""
Caller authentication

Turns an ``Authorization: Bearer <token>`` header into a CallerIdentity.
Two verifiers are provided:
- SupabaseTokenVerifier: asks the Supabase auth server who owns the token
- StaticTokenVerifier: fixed token -> user table, for local runs and tests
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

import httpx

from src.core.errors import UnauthorizedError
from src.core.models import CallerIdentity

logger = logging.getLogger(__name__)


def extract_bearer(authorization: Optional[str]) -> str:
    """Token part of a bearer header; raises UnauthorizedError when absent"""
    if not authorization:
        raise UnauthorizedError()
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise UnauthorizedError()
    return token.strip()


class TokenVerifier(ABC):
    """Resolves bearer tokens to verified callers"""

    @abstractmethod
    async def verify(self, token: str) -> CallerIdentity:
        """Return the caller or raise UnauthorizedError"""

    async def authenticate(self, authorization: Optional[str]) -> CallerIdentity:
        return await self.verify(extract_bearer(authorization))


class StaticTokenVerifier(TokenVerifier):
    """Verifier backed by a fixed token table"""

    def __init__(self, tokens: Dict[str, str]):
        self._tokens = dict(tokens)

    async def verify(self, token: str) -> CallerIdentity:
        user_id = self._tokens.get(token)
        if not user_id:
            raise UnauthorizedError()
        return CallerIdentity(user_id=user_id)


class SupabaseTokenVerifier(TokenVerifier):
    """Verifier that looks the token up on a Supabase auth server"""

    def __init__(
        self,
        supabase_url: str,
        api_key: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.user_url = f"{supabase_url.rstrip('/')}/auth/v1/user"
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    async def verify(self, token: str) -> CallerIdentity:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {token}",
        }

        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout), transport=self._transport) as client:
                response = await client.get(self.user_url, headers=headers)
        except httpx.HTTPError as e:
            logger.warning(f"Auth server unreachable: {e}")
            raise UnauthorizedError() from e

        if response.status_code != 200:
            logger.info(f"Token rejected by auth server ({response.status_code})")
            raise UnauthorizedError()

        try:
            user = response.json()
        except ValueError as e:
            raise UnauthorizedError() from e

        if not isinstance(user, dict) or not user.get("id"):
            raise UnauthorizedError()
        return CallerIdentity(user_id=str(user["id"]), email=user.get("email"))
