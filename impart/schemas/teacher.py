"""
Pydantic schemas for teacher profile responses.
"""

from datetime import datetime

from pydantic import BaseModel


class TeacherResponse(BaseModel):
    id: int
    user_id: int | None = None
    first_name: str
    last_name: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TeacherEnvelope(BaseModel):
    teacher: TeacherResponse
