"""
Role model — a named permission tier.

Roles are looked up by ID on every guarded request, so renaming a role takes
effect immediately for every user holding it. Route guards compare against
the role *name*; the names below are the catalogue seeded at startup:

  - Admin:     full administrative access, including user and role management
  - CEO:       chief education officer
  - DEC:       district education centre staff
  - TSC:       teaching service commission staff
  - Secretary: clerical staff (notifications)
  - Teacher:   default low-privilege role given to self-registered users
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from impart.database import Base

ROLE_ADMIN = "Admin"
ROLE_CEO = "CEO"
ROLE_DEC = "DEC"
ROLE_TSC = "TSC"
ROLE_SECRETARY = "Secretary"
ROLE_TEACHER = "Teacher"

DEFAULT_ROLES = (
    ROLE_ADMIN,
    ROLE_CEO,
    ROLE_DEC,
    ROLE_TSC,
    ROLE_SECRETARY,
    ROLE_TEACHER,
)

ROLE_NAME_MAX_LENGTH = 50


class Role(Base):
    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(primary_key=True)

    role_name: Mapped[str] = mapped_column(
        String(ROLE_NAME_MAX_LENGTH),
        unique=True,
        nullable=False,
    )
