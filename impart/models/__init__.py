"""
SQLAlchemy ORM models package.

All models are imported here so that:
  1. Base.metadata knows every table before create_all() runs
  2. String relationship targets (e.g. "Role") resolve
"""

from impart.models.role import Role  # noqa: F401
from impart.models.user import User  # noqa: F401
from impart.models.token import Token  # noqa: F401
from impart.models.teacher import Teacher  # noqa: F401
