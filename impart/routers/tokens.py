"""
Tokens router — login, activation tokens, logout and revocation.

Endpoints:
  POST   /v1/tokens/authentication      — Log in, get a bearer token (public)
  POST   /v1/tokens/activation          — Get a new activation token (public)
  DELETE /v1/tokens/authentication      — Log out everywhere [authenticated]
  DELETE /v1/tokens/user/{user_id}      — Revoke a user's tokens [Admin]

Security audit notes:
  - Token plaintexts appear only in response bodies; the database holds
    SHA-256 fingerprints, and nothing here logs a token or a password.
  - Revocation deletes rows, so a revoked token is indistinguishable from
    one that never existed.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from impart.database import bounded, get_db
from impart.dependencies import require_authenticated_user, require_role
from impart.exceptions import FailedValidationError
from impart.models.role import ROLE_ADMIN
from impart.models.user import User
from impart.schemas.auth import (
    ActivationTokenRequest,
    MessageResponse,
    TokenResponse,
    UserLoginRequest,
)
from impart.security import SCOPE_ACTIVATION, SCOPE_AUTHENTICATION, TOKEN_SCOPES
from impart.services import auth_service, token_service

router = APIRouter()


@router.post(
    "/authentication",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Authenticate and get a token",
)
async def create_authentication_token(
    request: UserLoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Authenticate with email and password.

    Returns a bearer token that must be included in the Authorization
    header for all subsequent requests:

        Authorization: Bearer <token>

    The token expires after AUTH_TOKEN_TTL_HOURS (default: 24).
    """
    user, token, record = await auth_service.login(
        db=db,
        email=request.email,
        password=request.password,
    )
    await bounded(db.commit())
    return TokenResponse(token=token, scope=SCOPE_AUTHENTICATION, expiry=record.expiry)


@router.post(
    "/activation",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an activation token",
)
async def create_activation_token(
    request: ActivationTokenRequest,
    db: AsyncSession = Depends(get_db),
):
    """Issue a new activation token, valid for ACTIVATION_TOKEN_TTL_HOURS."""
    token, record = await auth_service.create_activation_token(db, request.user_id)
    await bounded(db.commit())
    return TokenResponse(token=token, scope=SCOPE_ACTIVATION, expiry=record.expiry)


@router.delete(
    "/authentication",
    response_model=MessageResponse,
    summary="Log out",
)
async def delete_authentication_tokens(
    user: User = Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    """Revoke every authentication token of the caller, on every device."""
    await auth_service.logout(db, user)
    await bounded(db.commit())
    return MessageResponse(message="logged out")


@router.delete(
    "/user/{user_id}",
    response_model=MessageResponse,
    summary="[Admin] Revoke all tokens of a user",
)
async def delete_all_tokens_for_user(
    user_id: int,
    scope: str = Query(SCOPE_AUTHENTICATION),
    admin: User = Depends(require_role(ROLE_ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """
    Delete all of a user's tokens of one scope (default: authentication).

    Succeeds even when the user holds no such tokens.
    """
    if scope not in TOKEN_SCOPES:
        raise FailedValidationError({"scope": "must be 'activation' or 'authentication'"})

    await token_service.revoke_all_for_user(db, user_id, scope)
    await bounded(db.commit())
    return MessageResponse(message="tokens successfully deleted")
