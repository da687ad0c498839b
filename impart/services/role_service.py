"""
Role service — role lookups and administration.

get_role() is on the hot path: role guards call it on every request they
protect, so a role rename or a reassigned role_id takes effect immediately.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from impart.database import bounded
from impart.exceptions import FailedValidationError, RecordNotFoundError
from impart.models.role import DEFAULT_ROLES, ROLE_NAME_MAX_LENGTH, Role
from impart.models.user import User


def validate_role_name(role_name: str) -> None:
    if not role_name:
        raise FailedValidationError({"role_name": "must be provided"})
    if len(role_name) > ROLE_NAME_MAX_LENGTH:
        raise FailedValidationError(
            {"role_name": f"must not be more than {ROLE_NAME_MAX_LENGTH} characters long"}
        )


async def get_role(db: AsyncSession, role_id: int) -> Role:
    """
    Raises:
        RecordNotFoundError: If no role has this ID.
    """
    if role_id < 1:
        raise RecordNotFoundError("role")
    result = await bounded(db.execute(select(Role).where(Role.id == role_id)))
    role = result.scalar_one_or_none()
    if role is None:
        raise RecordNotFoundError("role")
    return role


async def get_role_by_name(db: AsyncSession, role_name: str) -> Role:
    """
    Raises:
        RecordNotFoundError: If no role has this name.
    """
    result = await bounded(db.execute(select(Role).where(Role.role_name == role_name)))
    role = result.scalar_one_or_none()
    if role is None:
        raise RecordNotFoundError("role")
    return role


async def list_roles(db: AsyncSession) -> list[Role]:
    result = await bounded(db.execute(select(Role).order_by(Role.role_name)))
    return list(result.scalars().all())


async def _ensure_name_free(db: AsyncSession, role_name: str, exclude_id: int | None = None) -> None:
    stmt = select(Role).where(Role.role_name == role_name)
    if exclude_id is not None:
        stmt = stmt.where(Role.id != exclude_id)
    result = await bounded(db.execute(stmt))
    if result.scalar_one_or_none() is not None:
        raise FailedValidationError({"role_name": "a role with this name already exists"})


async def _flush_role(db: AsyncSession) -> None:
    # role_name is UNIQUE: a concurrent writer can win after _ensure_name_free
    try:
        await bounded(db.flush())
    except IntegrityError:
        raise FailedValidationError({"role_name": "a role with this name already exists"}) from None


async def create_role(db: AsyncSession, role_name: str) -> Role:
    """
    Raises:
        FailedValidationError: If the name is empty, too long, or taken.
    """
    validate_role_name(role_name)
    await _ensure_name_free(db, role_name)

    role = Role(role_name=role_name)
    db.add(role)
    await _flush_role(db)
    return role


async def rename_role(db: AsyncSession, role_id: int, role_name: str) -> Role:
    """
    Raises:
        RecordNotFoundError: If no role has this ID.
        FailedValidationError: If the new name is empty, too long, or taken.
    """
    role = await get_role(db, role_id)
    validate_role_name(role_name)
    await _ensure_name_free(db, role_name, exclude_id=role.id)

    role.role_name = role_name
    await _flush_role(db)
    return role


async def delete_role(db: AsyncSession, role_id: int) -> None:
    """
    Raises:
        RecordNotFoundError: If no role has this ID.
        FailedValidationError: If any user still holds the role.
    """
    role = await get_role(db, role_id)
    in_use = await bounded(db.execute(select(User.id).where(User.role_id == role.id).limit(1)))
    if in_use.scalar_one_or_none() is not None:
        raise FailedValidationError({"role_name": "role is still assigned to users"})
    await bounded(db.delete(role))
    await bounded(db.flush())


async def seed_roles(db: AsyncSession) -> None:
    """Create any missing role from the default catalogue."""
    result = await bounded(db.execute(select(Role.role_name)))
    existing = set(result.scalars().all())
    for role_name in DEFAULT_ROLES:
        if role_name not in existing:
            db.add(Role(role_name=role_name))
    await bounded(db.flush())
