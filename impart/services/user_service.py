"""
User service — user lookups and administration.

Lookups raise RecordNotFoundError rather than returning None so that callers
must decide explicitly what a missing user means: a 404 for an admin reading
a user, a generic credentials failure at login, a 500 in a guard.

Admin-only fields:
  role_id, is_active and is_activated can only be changed by a caller whose
  role is Admin. Anyone else who includes them gets a validation error naming
  each offending field, and nothing is written.
"""

from datetime import datetime, timezone

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from impart.database import bounded
from impart.exceptions import FailedValidationError, RecordNotFoundError
from impart.models.role import ROLE_ADMIN
from impart.models.teacher import Teacher
from impart.models.token import Token
from impart.models.user import User
from impart.services import role_service

ADMIN_ONLY_FIELDS = {
    "role_id": "only administrators can change user roles",
    "is_active": "only administrators can change user activation status",
    "is_activated": "only administrators can change activation status",
}


async def get_user(db: AsyncSession, user_id: int) -> User:
    """
    Raises:
        RecordNotFoundError: If no user has this ID.
    """
    if user_id < 1:
        raise RecordNotFoundError("user")
    result = await bounded(db.execute(select(User).where(User.id == user_id)))
    user = result.scalar_one_or_none()
    if user is None:
        raise RecordNotFoundError("user")
    return user


async def get_user_by_email(db: AsyncSession, email: str) -> User:
    """
    Raises:
        RecordNotFoundError: If no user has this email.
    """
    result = await bounded(db.execute(select(User).where(User.email == email)))
    user = result.scalar_one_or_none()
    if user is None:
        raise RecordNotFoundError("user")
    return user


async def list_users(db: AsyncSession) -> list[User]:
    result = await bounded(db.execute(select(User).order_by(User.id)))
    return list(result.scalars().all())


async def email_in_use(db: AsyncSession, email: str, exclude_id: int | None = None) -> bool:
    stmt = select(User.id).where(User.email == email)
    if exclude_id is not None:
        stmt = stmt.where(User.id != exclude_id)
    result = await bounded(db.execute(stmt))
    return result.scalar_one_or_none() is not None


async def update_activation(db: AsyncSession, user_id: int, is_active: bool) -> None:
    """
    Set only the is_active flag of a user.

    Raises:
        RecordNotFoundError: If no user has this ID.
    """
    result = await bounded(
        db.execute(
            update(User)
            .where(User.id == user_id)
            .values(is_active=is_active, updated_at=datetime.now(timezone.utc))
        )
    )
    if not result.rowcount:
        raise RecordNotFoundError("user")


async def record_login(db: AsyncSession, user: User) -> None:
    user.last_login = datetime.now(timezone.utc)
    await bounded(db.flush())


async def is_admin(db: AsyncSession, user: User) -> bool:
    role = await role_service.get_role(db, user.role_id)
    return role.role_name == ROLE_ADMIN


async def update_user(
    db: AsyncSession,
    actor: User,
    user: User,
    changes: dict,
) -> User:
    """
    Apply a partial update to a user.

    Args:
        db: Database session.
        actor: The authenticated user making the change.
        user: The user being changed.
        changes: Field name to new value, containing only the fields the
            client actually sent.

    Raises:
        FailedValidationError: If a non-admin touches an admin-only field,
            the email is already taken, the role does not exist, or the
            resulting user is invalid.
    """
    restricted = {name: msg for name, msg in ADMIN_ONLY_FIELDS.items() if name in changes}
    if restricted and not await is_admin(db, actor):
        raise FailedValidationError(restricted)

    if "email" in changes and await email_in_use(db, changes["email"], exclude_id=user.id):
        raise FailedValidationError({"email": "email address already in use"})

    if "role_id" in changes:
        try:
            await role_service.get_role(db, changes["role_id"])
        except RecordNotFoundError:
            raise FailedValidationError({"role_id": "role does not exist"}) from None

    for name in ("username", "email", "role_id", "is_active", "is_activated"):
        if name in changes:
            setattr(user, name, changes[name])

    if "password" in changes:
        user.set_password(changes["password"])

    user.updated_by = actor.id
    user.validate()

    try:
        await bounded(db.flush())
    except IntegrityError:
        if "email" not in changes:
            raise
        raise FailedValidationError({"email": "email address already in use"}) from None
    # Pick up the new role row when role_id changed
    await bounded(db.refresh(user))
    return user


async def delete_user(db: AsyncSession, user_id: int) -> None:
    """
    Hard-delete a user together with their tokens.

    Raises:
        RecordNotFoundError: If no user has this ID.
    """
    user = await get_user(db, user_id)
    await bounded(db.execute(delete(Token).where(Token.user_id == user.id)))
    await bounded(
        db.execute(update(Teacher).where(Teacher.user_id == user.id).values(user_id=None))
    )
    await bounded(db.delete(user))
    await bounded(db.flush())


async def promote_to_admin(db: AsyncSession, email: str) -> User:
    """
    Give an existing user the Admin role and activate the account.

    Used to bootstrap the first administrator of a fresh deployment.

    Raises:
        RecordNotFoundError: If no user has this email, or the Admin role
            has not been seeded.
    """
    user = await get_user_by_email(db, email)
    admin_role = await role_service.get_role_by_name(db, ROLE_ADMIN)

    user.role_id = admin_role.id
    user.is_active = True
    await bounded(db.flush())
    await bounded(db.refresh(user))
    return user
