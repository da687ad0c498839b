"""
Pydantic schemas for the token endpoints (login, activation, revocation).
"""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field


class UserLoginRequest(BaseModel):
    """Request body for POST /v1/tokens/authentication."""
    email: EmailStr
    password: str = Field(min_length=8, max_length=72)


class ActivationTokenRequest(BaseModel):
    """Request body for POST /v1/tokens/activation."""
    user_id: int = Field(gt=0)


class TokenResponse(BaseModel):
    """A freshly issued token. The plaintext is shown exactly once."""
    token: str
    token_type: str = "bearer"
    scope: str
    expiry: datetime


class MessageResponse(BaseModel):
    message: str
