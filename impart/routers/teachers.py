"""
Teachers router — teacher profile access.

Endpoints:
  GET /v1/teachers/{id} — Read a profile [activated; owner or privileged role]

A teacher may read the profile linked to their own user account; staff in
TEACHER_DATA_ROLES may read any profile.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from impart.database import get_db
from impart.dependencies import can_access_teacher, require_activated_user
from impart.exceptions import NotFoundError, NotPermittedError, RecordNotFoundError
from impart.models.user import User
from impart.schemas.teacher import TeacherEnvelope, TeacherResponse
from impart.services import teacher_service

router = APIRouter()


@router.get(
    "/{teacher_id}",
    response_model=TeacherEnvelope,
    summary="Get a teacher profile",
)
async def get_teacher(
    teacher_id: int,
    user: User = Depends(require_activated_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        teacher = await teacher_service.get_teacher(db, teacher_id)
    except RecordNotFoundError:
        raise NotFoundError() from None

    if not await can_access_teacher(db, user, teacher):
        raise NotPermittedError()
    return TeacherEnvelope(teacher=TeacherResponse.model_validate(teacher))
