"""
FastAPI dependencies for authentication and authorization.

Dependencies are reusable functions that FastAPI injects into route handlers.
Principal resolution is installed as an application-wide dependency (see
main.py), so it runs on every route before any route-specific guard. The
guards then form a chain, each one building on the previous:

  resolve_principal (Authorization header -> Principal, stored on request.state)
      └── get_principal (request.state -> Principal)
            └── require_authenticated_user   401 for anonymous callers
                  └── require_activated_user 403 when is_active is False
                        ├── require_role(name)        403 unless role matches
                        └── require_any_role(names)   403 unless role in set

Every protected endpoint declares one of these as a parameter. If a check
fails, the request is rejected before the route handler runs.

Only the deliberate policy checks produce 401/403. A failed role lookup or a
database timeout propagates unchanged and becomes a 500; it is never turned
into a permission denial.

Ownership checks (self-or-role) need the target resource, so they are plain
functions the handler calls after loading it: ensure_self_or_role() for user
records and can_access_teacher() for teacher profiles.
"""

from collections.abc import Iterable

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from impart.database import get_db
from impart.exceptions import (
    AuthenticationRequiredError,
    InactiveAccountError,
    InvalidAuthenticationTokenError,
    NotPermittedError,
    PrincipalNotResolvedError,
    RecordNotFoundError,
)
from impart.models.role import ROLE_ADMIN, ROLE_CEO, ROLE_DEC, ROLE_TSC
from impart.models.teacher import Teacher
from impart.models.user import User
from impart.principal import ANONYMOUS, AuthenticatedPrincipal, Principal
from impart.security import SCOPE_AUTHENTICATION, is_valid_token_plaintext
from impart.services import role_service, token_service

# Roles that may read and edit any user's record
USER_DATA_ROLES = (ROLE_ADMIN, ROLE_CEO, ROLE_DEC, ROLE_TSC)

# Roles that may read any teacher profile
TEACHER_DATA_ROLES = (ROLE_ADMIN, ROLE_CEO, ROLE_DEC, ROLE_TSC)


# ---------------------------------------------------------------------------
# Principal resolution
# ---------------------------------------------------------------------------

async def resolve_principal(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Principal:
    """
    Turn the request's Authorization header into a principal.

      - No header: the anonymous principal.
      - Anything other than "Bearer <token>" with a well-formed token: 401,
        without touching the database.
      - A well-formed token with no live authentication-scope row: 401.

    The result is stored on request.state for get_principal().

    Raises:
        InvalidAuthenticationTokenError: For malformed or unresolvable tokens.
    """
    header = request.headers.get("Authorization")

    if not header:
        principal: Principal = ANONYMOUS
    else:
        parts = header.split(" ")
        if len(parts) != 2 or parts[0] != "Bearer":
            raise InvalidAuthenticationTokenError()

        token = parts[1]
        if not is_valid_token_plaintext(token):
            raise InvalidAuthenticationTokenError()

        try:
            user = await token_service.resolve_token(db, token, SCOPE_AUTHENTICATION)
        except RecordNotFoundError:
            raise InvalidAuthenticationTokenError() from None

        principal = AuthenticatedPrincipal(user)

    request.state.principal = principal
    return principal


async def get_principal(request: Request) -> Principal:
    """
    Return the principal resolved for this request.

    Raises:
        PrincipalNotResolvedError: If resolve_principal never ran for this
            request, which means the application was wired incorrectly.
    """
    principal = getattr(request.state, "principal", None)
    if principal is None:
        raise PrincipalNotResolvedError()
    return principal


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------

async def require_authenticated_user(
    principal: Principal = Depends(get_principal),
) -> User:
    """
    Raises:
        AuthenticationRequiredError: If the caller is anonymous.
    """
    if principal.is_anonymous:
        raise AuthenticationRequiredError()
    return principal.user


async def require_activated_user(
    user: User = Depends(require_authenticated_user),
) -> User:
    """
    Require an authenticated user whose account is active.

    This reads is_active (set by redeeming an activation token, cleared by
    an administrator to suspend) and not is_activated.

    Raises:
        InactiveAccountError: If user.is_active is False.
    """
    if not user.is_active:
        raise InactiveAccountError()
    return user


def require_role(role_name: str):
    """
    Build a guard admitting only active users whose role is exactly role_name.

    Usage:
        @router.delete("/{id}")
        async def delete_thing(admin: User = Depends(require_role("Admin"))):
            ...
    """

    async def role_guard(
        user: User = Depends(require_activated_user),
        db: AsyncSession = Depends(get_db),
    ) -> User:
        role = await role_service.get_role(db, user.role_id)
        if role.role_name != role_name:
            raise NotPermittedError()
        return user

    return role_guard


def require_any_role(role_names: Iterable[str]):
    """Build a guard admitting only active users whose role is in role_names."""
    allowed = frozenset(role_names)

    async def any_role_guard(
        user: User = Depends(require_activated_user),
        db: AsyncSession = Depends(get_db),
    ) -> User:
        role = await role_service.get_role(db, user.role_id)
        if role.role_name not in allowed:
            raise NotPermittedError()
        return user

    return any_role_guard


# ---------------------------------------------------------------------------
# Ownership checks
# ---------------------------------------------------------------------------

async def has_any_role(db: AsyncSession, user: User, role_names: Iterable[str]) -> bool:
    role = await role_service.get_role(db, user.role_id)
    return role.role_name in role_names


async def can_access_user_data(
    db: AsyncSession,
    user: User,
    target_user_id: int,
    role_names: Iterable[str] = USER_DATA_ROLES,
) -> bool:
    """True if user is the target user or holds one of role_names."""
    if user.id == target_user_id:
        return True
    return await has_any_role(db, user, role_names)


async def ensure_self_or_role(
    db: AsyncSession,
    user: User,
    target_user_id: int,
    role_names: Iterable[str] = USER_DATA_ROLES,
) -> None:
    """
    Raises:
        NotPermittedError: If user is neither the target nor privileged.
    """
    if not await can_access_user_data(db, user, target_user_id, role_names):
        raise NotPermittedError()


async def can_access_teacher(
    db: AsyncSession,
    user: User,
    teacher: Teacher,
    role_names: Iterable[str] = TEACHER_DATA_ROLES,
) -> bool:
    """True if user owns the teacher profile or holds one of role_names."""
    if teacher.user_id is not None and teacher.user_id == user.id:
        return True
    return await has_any_role(db, user, role_names)
