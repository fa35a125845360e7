"""Pydantic schemas for API requests and responses."""

from src.schemas.auth import (
    AuthResponse,
    RegisterResponse,
    UserLogin,
    UserRegister,
    UserResponse,
    VerifyOtpResponse,
)

__all__ = [
    "UserRegister",
    "UserLogin",
    "UserResponse",
    "AuthResponse",
    "RegisterResponse",
    "VerifyOtpResponse",
]
