"""FastAPI dependencies for authentication, database and services."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from src.config import Settings, get_settings
from src.database import get_db
from src.models.user import User
from src.services.auth import AuthService
from src.services.credential_store import CredentialStore
from src.services.mail import MailSender, build_mail_sender
from src.services.password_reset import PasswordResetService
from src.services.registration import RegistrationService
from src.services.sessions import SessionService
from src.services.tokens import TokenKind, TokenService

security = HTTPBearer(auto_error=False)

_UNAUTHORIZED_HEADERS = {"WWW-Authenticate": "Bearer"}


def get_mail_sender(settings: Annotated[Settings, Depends(get_settings)]) -> MailSender:
    """Get the configured mail transport."""
    return build_mail_sender(settings)


def get_token_service(settings: Annotated[Settings, Depends(get_settings)]) -> TokenService:
    return TokenService(settings)


def _user_from_credentials(
    credentials: HTTPAuthorizationCredentials | None,
    db: Session,
    token_service: TokenService,
) -> User | None:
    if credentials is None:
        return None
    payload = token_service.verify(credentials.credentials, TokenKind.ACCESS)
    if payload is None:
        return None
    return CredentialStore(db).get(payload["user_id"])


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
    token_service: Annotated[TokenService, Depends(get_token_service)],
) -> User:
    """Get the current authenticated user from the access token."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers=_UNAUTHORIZED_HEADERS,
        )

    user = _user_from_credentials(credentials, db, token_service)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers=_UNAUTHORIZED_HEADERS,
        )
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is inactive")

    return user


def get_optional_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
    token_service: Annotated[TokenService, Depends(get_token_service)],
) -> User | None:
    """Like get_current_user, but a missing or bad token yields None."""
    return _user_from_credentials(credentials, db, token_service)


def get_auth_service(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    token_service: Annotated[TokenService, Depends(get_token_service)],
) -> AuthService:
    return AuthService(db, settings, token_service)


def get_session_service(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    token_service: Annotated[TokenService, Depends(get_token_service)],
) -> SessionService:
    return SessionService(db, settings, token_service)


def get_registration_service(
    db: Annotated[Session, Depends(get_db)],
    mail_sender: Annotated[MailSender, Depends(get_mail_sender)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> RegistrationService:
    """Get registration service with dependencies."""
    return RegistrationService(db, mail_sender, settings)


def get_password_reset_service(
    db: Annotated[Session, Depends(get_db)],
    mail_sender: Annotated[MailSender, Depends(get_mail_sender)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> PasswordResetService:
    """Get password reset service with dependencies."""
    return PasswordResetService(db, mail_sender, settings)


def get_credential_store(db: Annotated[Session, Depends(get_db)]) -> CredentialStore:
    return CredentialStore(db)
