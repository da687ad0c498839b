"""
Teacher service — profile lookups used by ownership checks.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from impart.database import bounded
from impart.exceptions import RecordNotFoundError
from impart.models.teacher import Teacher


async def get_teacher(db: AsyncSession, teacher_id: int) -> Teacher:
    """
    Raises:
        RecordNotFoundError: If no teacher profile has this ID.
    """
    if teacher_id < 1:
        raise RecordNotFoundError("teacher")
    result = await bounded(db.execute(select(Teacher).where(Teacher.id == teacher_id)))
    teacher = result.scalar_one_or_none()
    if teacher is None:
        raise RecordNotFoundError("teacher")
    return teacher
