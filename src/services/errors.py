"""Typed errors raised by the identity services.

Each error knows the HTTP status it maps to and an optional ``extra``
payload that is merged into the JSON error body (keys are already in
the client's camelCase spelling).
"""

from datetime import datetime
from typing import Any


class AuthError(Exception):
    """Base class for recoverable identity errors."""

    status_code = 400
    default_message = "Request could not be processed"

    def __init__(self, message: str | None = None, **extra: Any) -> None:
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)


class ValidationError(AuthError):
    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(AuthError):
    status_code = 401
    default_message = "Invalid email/username or password"

    def __init__(self, message: str | None = None, remaining_attempts: int | None = None) -> None:
        extra = {} if remaining_attempts is None else {"remainingAttempts": remaining_attempts}
        super().__init__(message, **extra)
        self.remaining_attempts = remaining_attempts


class LockedError(AuthError):
    status_code = 423
    default_message = "Account is temporarily locked after too many failed login attempts"

    def __init__(self, lockout_expiry: datetime, message: str | None = None) -> None:
        super().__init__(message, lockoutExpiry=lockout_expiry.isoformat())
        self.lockout_expiry = lockout_expiry


class InactiveAccountError(AuthError):
    status_code = 403
    default_message = "Account has been deactivated"


class EmailNotVerifiedError(AuthError):
    status_code = 403
    default_message = "Email address has not been verified"

    def __init__(self, email: str, message: str | None = None) -> None:
        super().__init__(message, email=email, requiresEmailVerification=True)
        self.email = email


class ForbiddenError(AuthError):
    status_code = 403
    default_message = "Operation not permitted for this account"


class NotFoundError(AuthError):
    status_code = 404
    default_message = "Not found"


class RateLimitExceededError(AuthError):
    status_code = 429
    default_message = "Too many verification codes requested. Please wait before trying again."


class OtpInvalidOrExpiredError(AuthError):
    status_code = 400
    default_message = "Verification code is incorrect or has expired"


class TooManyOtpAttemptsError(AuthError):
    status_code = 400
    default_message = "Too many incorrect attempts. Please request a new verification code."


class TokenInvalidError(AuthError):
    status_code = 401
    default_message = "Refresh token is invalid or has expired"


class SystemFailureError(AuthError):
    """Storage or mail fault; details stay in the server log."""

    status_code = 500
    default_message = "A system error occurred. Please try again later."
