"""
Pydantic schemas for user endpoints.

These schemas control what user data is exposed through the API.
password_hash is NEVER included in any response schema — this is a critical
security boundary.
"""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field


class UserRegisterRequest(BaseModel):
    """Request body for POST /v1/users."""
    username: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=8, max_length=72)


class UserActivateRequest(BaseModel):
    """Request body for PUT /v1/users/activated."""
    token: str


class UserUpdateRequest(BaseModel):
    """
    Request body for PATCH /v1/users/{id}.

    Every field is optional; only the fields present in the body are applied.
    role_id, is_active and is_activated are restricted to administrators.
    """
    username: str | None = Field(default=None, min_length=1, max_length=100)
    email: EmailStr | None = None
    password: str | None = Field(default=None, min_length=8, max_length=72)
    role_id: int | None = None
    is_active: bool | None = None
    is_activated: bool | None = None


class UserResponse(BaseModel):
    """Public representation of a User (never includes the password hash)."""
    id: int
    username: str
    email: str
    role_id: int
    role_name: str | None = None
    is_active: bool
    is_activated: bool
    last_login: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class UserEnvelope(BaseModel):
    user: UserResponse


class UserListEnvelope(BaseModel):
    users: list[UserResponse]
