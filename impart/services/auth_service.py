"""
Authentication service — registration, activation, login and logout.

This module contains the account lifecycle logic, separated from HTTP
concerns. The routers call these functions and translate the results into
HTTP responses.

Registration flow:
  1. Reject an email that is already registered
  2. Hash the password with Argon2id
  3. Create the User (inactive, default role)
  4. Issue an activation token (ACTIVATION_TOKEN_TTL_HOURS)

Activation flow:
  1. Resolve the activation-scope token to its user
  2. Set is_active on that user
  3. Delete all of that user's activation tokens so the token cannot be reused

Login flow:
  1. Look up user by email
  2. Verify password against stored hash
  3. Issue an authentication token (AUTH_TOKEN_TTL_HOURS) and stamp last_login

Security notes:
  - Login returns the same error for "wrong password" and "email not found"
    to prevent user enumeration attacks
  - Login does not check is_active: an inactive user gets a token, and
    require_activated_user turns it away at every protected route
"""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from impart.config import settings
from impart.database import bounded
from impart.exceptions import (
    FailedValidationError,
    InvalidCredentialsError,
    NotFoundError,
    RecordNotFoundError,
)
from impart.models.token import Token
from impart.models.user import User
from impart.security import SCOPE_ACTIVATION, SCOPE_AUTHENTICATION
from impart.services import role_service, token_service, user_service

logger = logging.getLogger(__name__)


async def register(
    db: AsyncSession,
    username: str,
    email: str,
    password: str,
) -> tuple[User, str]:
    """
    Register a new, inactive user with the default role.

    Returns:
        Tuple of (User instance, activation token plaintext).

    Raises:
        FailedValidationError: If the email is already registered.
    """
    if await user_service.email_in_use(db, email):
        raise FailedValidationError({"email": "email address already in use"})

    default_role = await role_service.get_role_by_name(db, settings.DEFAULT_ROLE_NAME)

    user = User(
        username=username,
        email=email,
        role=default_role,
        is_active=False,
        is_activated=False,
    )
    user.set_password(password)
    user.validate()

    db.add(user)
    try:
        await bounded(db.flush())
    except IntegrityError:
        # A concurrent registration took the email after the check above
        raise FailedValidationError({"email": "email address already in use"}) from None
    await bounded(db.refresh(user))

    token, _ = await token_service.issue_token(
        db,
        user.id,
        token_service.ttl_for_scope(SCOPE_ACTIVATION),
        SCOPE_ACTIVATION,
    )
    logger.info("registered user_id=%s", user.id)
    return user, token


async def create_activation_token(db: AsyncSession, user_id: int) -> tuple[str, Token]:
    """
    Issue a fresh activation token for an existing user.

    Raises:
        NotFoundError: If no user has this ID.
    """
    try:
        user = await user_service.get_user(db, user_id)
    except RecordNotFoundError:
        raise NotFoundError() from None

    return await token_service.issue_token(
        db,
        user.id,
        token_service.ttl_for_scope(SCOPE_ACTIVATION),
        SCOPE_ACTIVATION,
    )


async def activate(db: AsyncSession, token_plaintext: str) -> User:
    """
    Redeem an activation token.

    Raises:
        FailedValidationError: If the token is unknown, expired, or was not
            issued for activation, or its user disappeared meanwhile.
    """
    try:
        user = await token_service.resolve_token(db, token_plaintext, SCOPE_ACTIVATION)
    except RecordNotFoundError:
        raise FailedValidationError({"token": "invalid or expired activation token"}) from None

    logger.info("activating user_id=%s", user.id)
    try:
        await user_service.update_activation(db, user.id, True)
    except RecordNotFoundError:
        raise FailedValidationError({"token": "user not found"}) from None
    user.is_active = True

    await token_service.revoke_all_for_user(db, user.id, SCOPE_ACTIVATION)
    return user


async def login(db: AsyncSession, email: str, password: str) -> tuple[User, str, Token]:
    """
    Authenticate a user and issue an authentication token.

    Returns:
        Tuple of (User, token plaintext, persisted Token record).

    Raises:
        InvalidCredentialsError: If email doesn't exist or password is wrong.
    """
    try:
        user = await user_service.get_user_by_email(db, email)
    except RecordNotFoundError:
        raise InvalidCredentialsError() from None

    if not user.password_matches(password):
        raise InvalidCredentialsError()

    token, record = await token_service.issue_token(
        db,
        user.id,
        token_service.ttl_for_scope(SCOPE_AUTHENTICATION),
        SCOPE_AUTHENTICATION,
    )
    await user_service.record_login(db, user)
    return user, token, record


async def logout(db: AsyncSession, user: User) -> int:
    """Revoke every authentication token the user holds."""
    return await token_service.revoke_all_for_user(db, user.id, SCOPE_AUTHENTICATION)
