"""
JWT token service for API authentication.

Tokens are issued by the dashboard and carry the caller's organisation and
role; every route scopes its work to `org_id` from the token.
"""
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from app.config import settings


class JWTService:
    """Service for creating and verifying JWT tokens."""

    def __init__(self, secret_key: str | None = None, algorithm: str | None = None):
        self.secret_key = secret_key or settings.JWT_SECRET_KEY
        self.algorithm = algorithm or settings.JWT_ALGORITHM

    def create_token(
        self,
        user_id: str,
        org_id: str,
        role: str,
        email: str,
        expires_in: timedelta | None = None,
    ) -> str:
        """
        Create a token for a user acting within one organisation.

        Args:
            user_id: User's unique ID
            org_id: Organisation the token is scoped to
            role: "admin" or "member"
            email: User's email
            expires_in: Lifetime, JWT_EXPIRATION_MINUTES by default

        Returns:
            Encoded JWT string
        """
        issued_at = datetime.now(timezone.utc)
        lifetime = expires_in or timedelta(minutes=settings.JWT_EXPIRATION_MINUTES)

        claims = {
            "sub": user_id,
            "org_id": org_id,
            "role": role,
            "email": email,
            "iat": issued_at,
            "exp": issued_at + lifetime,
        }
        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> dict[str, Any] | None:
        """Decode a token; None when the signature or expiry check fails."""
        try:
            return jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            return None
