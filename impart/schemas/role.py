"""
Pydantic schemas for role endpoints.
"""

from pydantic import BaseModel, Field


class RoleRequest(BaseModel):
    """Request body for POST /v1/roles and PATCH /v1/roles/{id}."""
    role_name: str = Field(min_length=1, max_length=50)


class RoleResponse(BaseModel):
    id: int
    role_name: str

    model_config = {"from_attributes": True}


class RoleEnvelope(BaseModel):
    role: RoleResponse


class RoleListEnvelope(BaseModel):
    roles: list[RoleResponse]
