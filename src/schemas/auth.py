"""Authentication schemas.

Request fields are optional at the schema level so that missing values
are reported by the services as 400 errors with a specific message.
Client-facing camelCase names are exposed through aliases.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from src.models.enums import OtpPurpose, UserRole


class CamelModel(BaseModel):
    """Accepts both field names and camelCase aliases."""

    model_config = ConfigDict(populate_by_name=True)


class UserLogin(CamelModel):
    """Login request: ``identifier`` or one of ``email``/``username``."""

    identifier: str | None = Field(None, max_length=255)
    email: str | None = Field(None, max_length=255)
    username: str | None = Field(None, max_length=100)
    password: str | None = Field(None, max_length=128)

    @property
    def login_identifier(self) -> str | None:
        return self.identifier or self.email or self.username


class UserRegister(CamelModel):
    """User registration request."""

    email: str | None = Field(None, max_length=255)
    username: str | None = Field(None, max_length=100)
    password: str | None = Field(None, max_length=128)
    password_hash: str | None = Field(None, alias="passwordHash", max_length=255)
    first_name: str | None = Field(None, alias="firstName", max_length=100)
    last_name: str | None = Field(None, alias="lastName", max_length=100)
    phone: str | None = Field(None, max_length=30)
    # Accepted only so it can be ignored; self-registration is always a customer
    role: str | None = None


class SendOtpRequest(CamelModel):
    email: str | None = Field(None, max_length=255)
    purpose: OtpPurpose = OtpPurpose.EMAIL_VERIFICATION


class VerifyOtpRequest(CamelModel):
    email: str | None = Field(None, max_length=255)
    otp: str | None = Field(None, alias="code", max_length=10)
    purpose: OtpPurpose = OtpPurpose.EMAIL_VERIFICATION


class RefreshTokenRequest(CamelModel):
    refresh_token: str | None = Field(None, alias="refreshToken")


class LogoutRequest(CamelModel):
    refresh_token: str | None = Field(None, alias="refreshToken")
    user_id: int | None = Field(None, alias="userId")


class ForgotPasswordRequest(CamelModel):
    email: str | None = Field(None, max_length=255)


class VerifyForgotPasswordOtpRequest(CamelModel):
    email: str | None = Field(None, max_length=255)
    otp: str | None = Field(None, alias="code", max_length=10)


class ResetPasswordRequest(CamelModel):
    email: str | None = Field(None, max_length=255)
    otp: str | None = Field(None, alias="code", max_length=10)
    new_password: str | None = Field(None, alias="newPassword", max_length=256)


class UserProfileUpdate(CamelModel):
    """Self-service profile edit. Identity and account fields are accepted
    only so the endpoint can refuse them explicitly."""

    first_name: str | None = Field(None, alias="firstName", max_length=100)
    last_name: str | None = Field(None, alias="lastName", max_length=100)
    phone: str | None = Field(None, max_length=30)
    email: str | None = None
    username: str | None = None
    role: str | None = None
    is_active: bool | None = Field(None, alias="isActive")


class UserResponse(CamelModel):
    """User information response. Never carries the hash or tokens."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    username: str
    email: str
    role: UserRole
    first_name: str | None = Field(None, alias="firstName")
    last_name: str | None = Field(None, alias="lastName")
    phone: str | None = None
    is_active: bool = Field(alias="isActive")
    email_verified: bool = Field(alias="emailVerified")
    last_login: datetime | None = Field(None, alias="lastLogin")
    created_at: datetime | None = Field(None, alias="createdAt")


class AuthResponse(CamelModel):
    """Successful login."""

    token: str
    refresh_token: str = Field(alias="refreshToken")
    token_type: str = Field("bearer", alias="tokenType")  # noqa: S105
    expires_in: int = Field(alias="expiresIn")
    user: UserResponse


class RegisterResponse(CamelModel):
    """Registration accepted; the account appears after email verification."""

    message: str
    requires_email_verification: bool = Field(True, alias="requiresEmailVerification")
    otp_sent: bool = Field(alias="otpSent")
    email: str


class VerifyOtpResponse(CamelModel):
    message: str
    email: str
    verified: bool
    user_created: bool = Field(False, alias="userCreated")
    user: UserResponse | None = None


class RefreshTokenResponse(CamelModel):
    token: str
    token_type: str = Field("bearer", alias="tokenType")  # noqa: S105
    expires_in: int = Field(alias="expiresIn")


class SendOtpResponse(CamelModel):
    message: str
    sent: bool


class VerifiedResponse(CamelModel):
    message: str
    verified: bool


class MessageResponse(BaseModel):
    message: str
