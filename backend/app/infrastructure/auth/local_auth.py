"""
Local JWT authentication provider.

Tokens are issued by the external sign-in service with a shared HS256
secret; the subject claim is the user id.
"""

from __future__ import annotations

from jose import JWTError

from app.core.config import Settings
from app.core.security import decode_access_token
from app.interfaces.auth_provider import IAuthProvider, User


class LocalAuthProvider(IAuthProvider):
    """Local auth provider with HMAC JWT validation."""

    def __init__(self, settings: Settings):
        if not settings.LOCAL_JWT_SECRET:
            raise ValueError("LOCAL_JWT_SECRET must be set for local auth")
        self._settings = settings

    async def verify_token(self, token: str) -> User:
        claims = decode_access_token(token, self._settings)
        subject = claims.get("sub")
        if not subject:
            raise JWTError("Missing subject")
        email = claims.get("email")
        name = claims.get("name")
        return User(
            id=str(subject),
            email=str(email) if email else None,
            display_name=str(name) if name else None,
        )

    def is_enabled(self) -> bool:
        return True
