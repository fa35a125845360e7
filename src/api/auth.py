"""Authentication API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from src.api.dependencies import (
    get_auth_service,
    get_credential_store,
    get_current_user,
    get_optional_user,
    get_password_reset_service,
    get_registration_service,
    get_session_service,
)
from src.models.enums import OtpPurpose
from src.models.user import User
from src.schemas.auth import (
    AuthResponse,
    ForgotPasswordRequest,
    LogoutRequest,
    MessageResponse,
    RefreshTokenRequest,
    RefreshTokenResponse,
    RegisterResponse,
    ResetPasswordRequest,
    SendOtpRequest,
    SendOtpResponse,
    UserLogin,
    UserProfileUpdate,
    UserRegister,
    UserResponse,
    VerifiedResponse,
    VerifyForgotPasswordOtpRequest,
    VerifyOtpRequest,
    VerifyOtpResponse,
)
from src.services.auth import AuthService
from src.services.credential_store import PROFILE_FIELDS, CredentialStore
from src.services.errors import ForbiddenError
from src.services.password_reset import PasswordResetService
from src.services.registration import RegistrationService
from src.services.sessions import SessionService

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


@router.post("/login", response_model=AuthResponse)
def login(
    credentials: UserLogin,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
):
    """Login with email or username and password."""
    result = auth_service.login(credentials.login_identifier, credentials.password)
    return AuthResponse(
        token=result.access_token,
        refresh_token=result.refresh_token,
        expires_in=result.expires_in,
        user=UserResponse.model_validate(result.user),
    )


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(
    user_data: UserRegister,
    registration: Annotated[RegistrationService, Depends(get_registration_service)],
):
    """Start a customer registration.

    No account exists until the emailed code is verified.
    """
    result = registration.register(
        user_data.email,
        user_data.username,
        password=user_data.password,
        password_hash=user_data.password_hash,
        role=user_data.role,
        first_name=user_data.first_name,
        last_name=user_data.last_name,
        phone=user_data.phone,
    )
    return RegisterResponse(
        message="Registration started. Check your email for the verification code.",
        otp_sent=result.otp_sent,
        email=result.email,
    )


@router.post("/send-otp", response_model=SendOtpResponse)
def send_otp(
    request: SendOtpRequest,
    registration: Annotated[RegistrationService, Depends(get_registration_service)],
):
    """Send a fresh verification code."""
    sent = registration.send_otp(request.email, request.purpose)
    return SendOtpResponse(message="Verification code sent", sent=sent)


@router.post("/verify-otp", response_model=VerifyOtpResponse)
def verify_otp(
    request: VerifyOtpRequest,
    registration: Annotated[RegistrationService, Depends(get_registration_service)],
):
    """Verify an emailed code, creating the account for a pending registration."""
    result = registration.verify_otp(request.email, request.otp, request.purpose)

    if result.user_created:
        message = "Email verified. Your account has been created."
    elif request.purpose == OtpPurpose.EMAIL_VERIFICATION:
        message = "Email verified successfully"
    else:
        message = "Code verified successfully"

    return VerifyOtpResponse(
        message=message,
        email=request.email.strip().lower(),
        verified=result.verified,
        user_created=result.user_created,
        user=UserResponse.model_validate(result.user) if result.user else None,
    )


@router.post("/refresh-token", response_model=RefreshTokenResponse)
def refresh_token(
    request: RefreshTokenRequest,
    sessions: Annotated[SessionService, Depends(get_session_service)],
):
    """Exchange the refresh token for a new access token."""
    result = sessions.refresh(request.refresh_token)
    return RefreshTokenResponse(token=result.access_token, expires_in=result.expires_in)


@router.post("/logout", response_model=MessageResponse)
def logout(
    sessions: Annotated[SessionService, Depends(get_session_service)],
    current_user: Annotated[User | None, Depends(get_optional_user)],
    request: LogoutRequest | None = None,
):
    """Log out, forgetting the presented refresh token.

    The user comes from the bearer token when one is valid, otherwise
    from ``userId`` in the body.
    """
    request = request or LogoutRequest()
    user_id = current_user.id if current_user is not None else request.user_id
    sessions.logout(user_id, request.refresh_token)
    return MessageResponse(message="Logged out successfully")


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(
    request: ForgotPasswordRequest,
    password_reset: Annotated[PasswordResetService, Depends(get_password_reset_service)],
):
    """Request a password reset code."""
    return MessageResponse(message=password_reset.forgot_password(request.email))


@router.post("/verify-forgot-password-otp", response_model=VerifiedResponse)
def verify_forgot_password_otp(
    request: VerifyForgotPasswordOtpRequest,
    password_reset: Annotated[PasswordResetService, Depends(get_password_reset_service)],
):
    """Check a reset code without using it up."""
    verified = password_reset.verify_forgot_password_otp(request.email, request.otp)
    return VerifiedResponse(message="Code verified. You can now set a new password.", verified=verified)


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(
    request: ResetPasswordRequest,
    password_reset: Annotated[PasswordResetService, Depends(get_password_reset_service)],
):
    """Set a new password using a reset code."""
    password_reset.reset_password(request.email, request.otp, request.new_password)
    return MessageResponse(message="Password has been reset successfully. Please log in.")


@router.get("/me", response_model=UserResponse)
def get_me(current_user: Annotated[User, Depends(get_current_user)]):
    """Get current user information."""
    return UserResponse.model_validate(current_user)


@router.put("/me", response_model=UserResponse)
def update_me(
    update: UserProfileUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    store: Annotated[CredentialStore, Depends(get_credential_store)],
):
    """Update the caller's own profile fields."""
    locked = update.model_fields_set & {"email", "username", "role", "is_active"}
    if locked:
        raise ForbiddenError("Email, username, role and account status cannot be changed here")

    fields = update.model_dump(include=set(PROFILE_FIELDS), exclude_unset=True)
    return UserResponse.model_validate(store.update_profile(current_user, **fields))
