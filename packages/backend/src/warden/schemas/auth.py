"""Pydantic schemas for the auth API.

Every string field must be non-empty and every id positive; anything
else is rejected with 422 before the service is called.
"""

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from warden.auth.password import MAX_PASSWORD_BYTES, password_too_long


# ─── Login ───────────────────────────────────────────────


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    app_id: int = Field(..., gt=0, description="App the token is issued for")


class LoginResponse(BaseModel):
    token: str


# ─── Register ────────────────────────────────────────────


class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    date_of_birth: str = Field(..., min_length=1)
    full_name: str = Field(..., min_length=1)
    phone_number: str = Field(..., min_length=1)
    telegram_name: str = Field(..., min_length=1, description="Telegram username")

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        if password_too_long(v):
            raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")
        return v


class RegisterResponse(BaseModel):
    user_id: int


# ─── Admin ───────────────────────────────────────────────


class IsAdminResponse(BaseModel):
    is_admin: bool


# ─── Confirmation ────────────────────────────────────────


class VerifyEmailRequest(BaseModel):
    email: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1, description="Code from the confirmation email")


class VerifyEmailResponse(BaseModel):
    status: Literal["confirmed", "already_confirmed", "mismatch"]
    is_verified: bool


class ResendConfirmationRequest(BaseModel):
    email: str = Field(..., min_length=1)


class ResendConfirmationResponse(BaseModel):
    status: Literal["sent", "already_confirmed"]
