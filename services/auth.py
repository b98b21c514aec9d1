"""
Session authentication against Supabase Auth.

The browser holds the Supabase access token either as a bearer token or in
the `sb-access-token` cookie. Routes depend on `require_user`, which resolves
the token to an AuthUser or raises AuthenticationError (401).
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from services.app_state import get_app_state_from_request
from services.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

ACCESS_TOKEN_COOKIE = "sb-access-token"


@dataclass
class AuthUser:
    id: str
    email: Optional[str] = None


class SupabaseAuth:
    """Resolves access tokens through the Supabase Auth API."""

    def __init__(self, client):
        self.client = client

    def _lookup(self, access_token: str) -> Optional[AuthUser]:
        try:
            response = self.client.auth.get_user(access_token)
        except Exception as e:
            logger.info(f"[AUTH] Token rejected: {e}")
            return None

        user = getattr(response, "user", None)
        if user is None:
            return None
        return AuthUser(id=str(user.id), email=getattr(user, "email", None))

    async def get_user(self, access_token: str) -> Optional[AuthUser]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._lookup, access_token)

    def _sign_in(self, email: str, password: str) -> Optional[str]:
        try:
            response = self.client.auth.sign_in_with_password({"email": email, "password": password})
        except Exception as e:
            logger.info(f"[AUTH] Sign-in failed for {email}: {e}")
            return None

        session = getattr(response, "session", None)
        return getattr(session, "access_token", None)

    async def sign_in(self, email: str, password: str) -> Optional[str]:
        """Password sign-in. Returns the access token, or None on bad credentials."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._sign_in, email, password)


def extract_access_token(request: Request) -> Optional[str]:
    """Bearer header first, then the session cookie."""
    header = request.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        token = header[7:].strip()
        if token:
            return token
    return request.cookies.get(ACCESS_TOKEN_COOKIE) or None


async def get_optional_user(request: Request) -> Optional[AuthUser]:
    """Current user, or None. Never raises for a missing session."""
    state = get_app_state_from_request(request)
    token = extract_access_token(request)
    if not token or state.auth is None:
        return None
    return await state.auth.get_user(token)


async def require_user(request: Request) -> AuthUser:
    """FastAPI dependency for authenticated API routes."""
    user = await get_optional_user(request)
    if user is None:
        logger.warning(f"[AUTH] Unauthenticated request to {request.url.path}")
        raise AuthenticationError()
    return user
