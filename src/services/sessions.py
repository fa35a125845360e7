"""Session continuation: refresh-token exchange and logout."""

import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.config import Settings, get_settings
from src.services.credential_store import CredentialStore
from src.services.errors import InactiveAccountError, TokenInvalidError, ValidationError
from src.services.tokens import TokenKind, TokenService, claims_for_user

logger = logging.getLogger(__name__)


@dataclass
class RefreshResult:
    access_token: str
    expires_in: int


class SessionService:
    """Exchanges the single live refresh token for access tokens."""

    def __init__(
        self,
        db: Session,
        settings: Settings | None = None,
        token_service: TokenService | None = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.store = CredentialStore(db)
        self.tokens = token_service or TokenService(self.settings)

    def refresh(self, refresh_token: str | None) -> RefreshResult:
        """Mint a new access token. The refresh token itself is not rotated."""
        if not refresh_token or not isinstance(refresh_token, str):
            raise ValidationError("Refresh token is required")

        claims = self.tokens.verify(refresh_token, TokenKind.REFRESH)
        if claims is None:
            logger.warning("Refresh rejected: invalid or expired token")
            raise TokenInvalidError()

        user = self.store.get(claims["user_id"])
        if user is None:
            logger.warning(f"Refresh rejected: account {claims['user_id']} not found")
            raise TokenInvalidError()
        if not user.is_active:
            logger.warning(f"Refresh refused for inactive user {user.id}")
            raise InactiveAccountError()

        # A later login replaces the stored token, retiring earlier ones
        if user.refresh_token != refresh_token:
            logger.warning(f"Refresh rejected for user {user.id}: token superseded or revoked")
            raise TokenInvalidError("Refresh token is no longer valid")

        access_token = self.tokens.issue_access_token(claims_for_user(user))
        logger.info(f"Access token refreshed for user {user.id}")
        return RefreshResult(
            access_token=access_token,
            expires_in=self.settings.access_token_expire_seconds,
        )

    def logout(self, user_id: int | None, refresh_token: str | None = None) -> None:
        """Forget the presented refresh token. Never fails once a user is known."""
        if user_id is None:
            raise ValidationError("Missing user context")

        if refresh_token:
            try:
                if self.store.clear_refresh_token(user_id, refresh_token):
                    logger.info(f"Refresh token removed for user {user_id}")
            except SQLAlchemyError:
                logger.exception(f"Failed to remove refresh token for user {user_id}")
                self.db.rollback()

        logger.info(f"Logout for user {user_id}")
