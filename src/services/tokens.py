"""Signed access and refresh tokens.

Access and refresh tokens are signed with different secrets, so a leaked
refresh secret cannot forge access tokens and vice versa. Both carry an
issuer and audience that are checked on verification.
"""

import logging
import uuid
from datetime import timedelta
from enum import Enum
from typing import Any

from jose import JWTError, jwt

from src.config import Settings, get_settings
from src.models.user import User
from src.services.timing import utcnow

logger = logging.getLogger(__name__)


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


def claims_for_user(user: User) -> dict[str, Any]:
    """Identity claims embedded in both token kinds."""
    return {
        "sub": str(user.id),
        "user_id": user.id,
        "username": user.username,
        "email": user.email,
        "role": user.role.value if user.role else None,
    }


class TokenService:
    """Issues and verifies JWTs. Holds no state besides its configuration."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()

    def _secret(self, kind: TokenKind) -> str:
        if kind == TokenKind.REFRESH:
            return self.settings.jwt_refresh_secret
        return self.settings.jwt_secret

    def _lifetime(self, kind: TokenKind) -> timedelta:
        if kind == TokenKind.REFRESH:
            return timedelta(days=self.settings.refresh_token_expire_days)
        return timedelta(minutes=self.settings.access_token_expire_minutes)

    def _issue(self, claims: dict[str, Any], kind: TokenKind) -> str:
        now = utcnow()
        to_encode = dict(claims)
        to_encode.update(
            {
                "type": kind.value,
                "iss": self.settings.jwt_issuer,
                "aud": self.settings.jwt_audience,
                "iat": now,
                "exp": now + self._lifetime(kind),
                "jti": uuid.uuid4().hex,
            }
        )
        return jwt.encode(to_encode, self._secret(kind), algorithm=self.settings.jwt_algorithm)

    def issue_access_token(self, claims: dict[str, Any]) -> str:
        """Create a short-lived access token."""
        return self._issue(claims, TokenKind.ACCESS)

    def issue_refresh_token(self, claims: dict[str, Any]) -> str:
        """Create a long-lived refresh token."""
        return self._issue(claims, TokenKind.REFRESH)

    def verify(self, token: str, kind: TokenKind) -> dict[str, Any] | None:
        """Decode and validate a token of the given kind.

        Signature, expiry, issuer and audience must all match. Any failure
        yields None; callers treat None as "unauthenticated".
        """
        if not token:
            return None
        try:
            payload = jwt.decode(
                token,
                self._secret(kind),
                algorithms=[self.settings.jwt_algorithm],
                audience=self.settings.jwt_audience,
                issuer=self.settings.jwt_issuer,
            )
        except JWTError as e:
            logger.debug(f"Rejected {kind.value} token: {e}")
            return None
        if payload.get("type") != kind.value or payload.get("user_id") is None:
            return None
        return payload
