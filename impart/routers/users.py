"""
Users router — registration, activation and user administration.

Endpoints:
  POST   /v1/users            — Register (public)
  PUT    /v1/users/activated  — Redeem an activation token (public)
  GET    /v1/users            — List users, or ?email= lookup [Admin, CEO, DEC, TSC]
  GET    /v1/users/{id}       — Read a user [activated; self or privileged role]
  PATCH  /v1/users/{id}       — Update a user [activated; self or privileged role]
  DELETE /v1/users/{id}       — Delete a user [Admin]

Read and update use an ownership check inside the handler rather than a
role guard: a Teacher may read and edit their own record, while the
privileged roles may reach anyone's. The check runs before the target is
loaded, so an unprivileged caller cannot probe which IDs exist.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from impart.database import bounded, get_db
from impart.dependencies import (
    USER_DATA_ROLES,
    ensure_self_or_role,
    require_activated_user,
    require_any_role,
    require_role,
)
from impart.exceptions import FailedValidationError, NotFoundError, RecordNotFoundError
from impart.mailer import send_activation_email
from impart.models.role import ROLE_ADMIN
from impart.models.user import User
from impart.schemas.auth import MessageResponse
from impart.schemas.user import (
    UserActivateRequest,
    UserEnvelope,
    UserListEnvelope,
    UserRegisterRequest,
    UserResponse,
    UserUpdateRequest,
)
from impart.security import is_valid_token_plaintext, TOKEN_LENGTH
from impart.services import auth_service, user_service

router = APIRouter()


def _envelope(user: User) -> UserEnvelope:
    return UserEnvelope(user=UserResponse.model_validate(user))


@router.post(
    "",
    response_model=UserEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
)
async def register_user(
    request: UserRegisterRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
):
    """
    Register a new user with the default role.

    The account starts inactive. An activation token valid for
    ACTIVATION_TOKEN_TTL_HOURS is emailed to the given address once the
    response has been sent.
    """
    user, token = await auth_service.register(
        db=db,
        username=request.username,
        email=request.email,
        password=request.password,
    )
    await bounded(db.commit())
    background_tasks.add_task(send_activation_email, user.email, user.id, token)
    return _envelope(user)


@router.put(
    "/activated",
    response_model=UserEnvelope,
    summary="Activate a user account",
)
async def activate_user(
    request: UserActivateRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Redeem an activation token: the owner becomes active and every
    outstanding activation token of theirs is deleted.
    """
    if not is_valid_token_plaintext(request.token):
        raise FailedValidationError(
            {"token": f"must be {TOKEN_LENGTH} characters of base32 text"}
        )
    user = await auth_service.activate(db, request.token)
    await bounded(db.commit())
    return _envelope(user)


@router.get(
    "",
    response_model=UserListEnvelope,
    summary="List users",
)
async def list_users(
    email: str | None = Query(None, description="Look up a single user by email"),
    staff: User = Depends(require_any_role(USER_DATA_ROLES)),
    db: AsyncSession = Depends(get_db),
):
    if email:
        try:
            user = await user_service.get_user_by_email(db, email)
        except RecordNotFoundError:
            raise NotFoundError() from None
        users = [user]
    else:
        users = await user_service.list_users(db)
    return UserListEnvelope(users=[UserResponse.model_validate(u) for u in users])


@router.get(
    "/{user_id}",
    response_model=UserEnvelope,
    summary="Get a user",
)
async def get_user(
    user_id: int,
    current_user: User = Depends(require_activated_user),
    db: AsyncSession = Depends(get_db),
):
    await ensure_self_or_role(db, current_user, user_id)
    try:
        user = await user_service.get_user(db, user_id)
    except RecordNotFoundError:
        raise NotFoundError() from None
    return _envelope(user)


@router.patch(
    "/{user_id}",
    response_model=UserEnvelope,
    summary="Update a user",
)
async def update_user(
    user_id: int,
    request: UserUpdateRequest,
    current_user: User = Depends(require_activated_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Partially update a user. Only the fields present in the body change.

    role_id, is_active and is_activated may only be changed by an Admin;
    anyone else receives 422 naming those fields.
    """
    await ensure_self_or_role(db, current_user, user_id)
    try:
        user = await user_service.get_user(db, user_id)
    except RecordNotFoundError:
        raise NotFoundError() from None

    changes = {
        name: value
        for name, value in request.model_dump(exclude_unset=True).items()
        if value is not None
    }
    user = await user_service.update_user(db, actor=current_user, user=user, changes=changes)
    await bounded(db.commit())
    return _envelope(user)


@router.delete(
    "/{user_id}",
    response_model=MessageResponse,
    summary="[Admin] Delete a user",
)
async def delete_user(
    user_id: int,
    admin: User = Depends(require_role(ROLE_ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    try:
        await user_service.delete_user(db, user_id)
    except RecordNotFoundError:
        raise NotFoundError() from None
    await bounded(db.commit())
    return MessageResponse(message="user successfully deleted")
