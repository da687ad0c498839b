"""
Roles router — the role catalogue.

Endpoints:
  POST   /v1/roles       — Create a role [Admin]
  GET    /v1/roles       — List roles (public, used by sign-up forms)
  GET    /v1/roles/{id}  — Get a role [activated]
  PATCH  /v1/roles/{id}  — Rename a role [Admin]
  DELETE /v1/roles/{id}  — Delete a role [Admin]
"""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from impart.database import bounded, get_db
from impart.dependencies import require_activated_user, require_role
from impart.exceptions import NotFoundError, RecordNotFoundError
from impart.models.role import ROLE_ADMIN
from impart.models.user import User
from impart.schemas.auth import MessageResponse
from impart.schemas.role import RoleEnvelope, RoleListEnvelope, RoleRequest, RoleResponse
from impart.services import role_service

router = APIRouter()


@router.post(
    "",
    response_model=RoleEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="[Admin] Create a role",
)
async def create_role(
    request: RoleRequest,
    response: Response,
    admin: User = Depends(require_role(ROLE_ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    role = await role_service.create_role(db, request.role_name)
    await bounded(db.commit())
    response.headers["Location"] = f"/v1/roles/{role.id}"
    return RoleEnvelope(role=RoleResponse.model_validate(role))


@router.get(
    "",
    response_model=RoleListEnvelope,
    summary="List roles",
)
async def list_roles(db: AsyncSession = Depends(get_db)):
    roles = await role_service.list_roles(db)
    return RoleListEnvelope(roles=[RoleResponse.model_validate(r) for r in roles])


@router.get(
    "/{role_id}",
    response_model=RoleEnvelope,
    summary="Get a role",
)
async def get_role(
    role_id: int,
    user: User = Depends(require_activated_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        role = await role_service.get_role(db, role_id)
    except RecordNotFoundError:
        raise NotFoundError() from None
    return RoleEnvelope(role=RoleResponse.model_validate(role))


@router.patch(
    "/{role_id}",
    response_model=RoleEnvelope,
    summary="[Admin] Rename a role",
)
async def update_role(
    role_id: int,
    request: RoleRequest,
    admin: User = Depends(require_role(ROLE_ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    try:
        role = await role_service.rename_role(db, role_id, request.role_name)
    except RecordNotFoundError:
        raise NotFoundError() from None
    await bounded(db.commit())
    return RoleEnvelope(role=RoleResponse.model_validate(role))


@router.delete(
    "/{role_id}",
    response_model=MessageResponse,
    summary="[Admin] Delete a role",
)
async def delete_role(
    role_id: int,
    admin: User = Depends(require_role(ROLE_ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    try:
        await role_service.delete_role(db, role_id)
    except RecordNotFoundError:
        raise NotFoundError() from None
    await bounded(db.commit())
    return MessageResponse(message="role successfully deleted")
