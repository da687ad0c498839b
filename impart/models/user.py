"""
User model — the authentication identity.

Each User is a login credential (email + hashed password) bound to exactly
one Role. Two independent flags describe the account's state:

  - is_active:    gates access to every route guarded by
                  require_activated_user. Set when the user redeems an
                  activation token; an administrator may clear it to
                  suspend the account.
  - is_activated: the email-verified marker. Only administrators change it;
                  no guard reads it.

Both start out False at registration. Deletion is a hard delete performed by
an administrator.

The password is stored as an Argon2id hash — never in plaintext. While a
request is setting a new password, the plaintext is kept on the instance
(not mapped, never serialized) so that validate() can check its length.
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from impart.database import Base
from impart.exceptions import FailedValidationError, MissingPasswordHashError
from impart.security import (
    PASSWORD_MAX_LENGTH,
    PASSWORD_MIN_LENGTH,
    hash_password,
    verify_password,
)

USERNAME_MAX_LENGTH = 100
EMAIL_MAX_LENGTH = 255


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)

    username: Mapped[str] = mapped_column(
        String(USERNAME_MAX_LENGTH),
        nullable=False,
    )

    # Email is the login identifier — unique and indexed for fast lookups
    email: Mapped[str] = mapped_column(
        String(EMAIL_MAX_LENGTH),
        unique=True,
        nullable=False,
        index=True,
    )

    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    role_id: Mapped[int] = mapped_column(
        ForeignKey("roles.id"),
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    is_activated: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    last_login: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Audit fields
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    created_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_by: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Joined eagerly: lazy loads are not available under AsyncSession
    role: Mapped["Role"] = relationship(lazy="joined")

    # Transient plaintext, only present on instances whose password was set
    # during this request
    _password_plaintext = None

    @property
    def role_name(self) -> str | None:
        return self.role.role_name if self.role is not None else None

    def set_password(self, plaintext: str) -> None:
        """Hash and store a new password, keeping the plaintext for validate()."""
        self.password_hash = hash_password(plaintext)
        self._password_plaintext = plaintext

    def password_matches(self, plaintext: str) -> bool:
        return verify_password(plaintext, self.password_hash)

    def validate(self) -> None:
        """
        Check the user's fields before it is written.

        Raises:
            FailedValidationError: If a field breaks a length or presence rule.
            MissingPasswordHashError: If no password hash was ever set. This
                is a bug in the calling code, not bad input.
        """
        errors: dict[str, str] = {}

        if not self.username:
            errors["username"] = "must be provided"
        elif len(self.username) > USERNAME_MAX_LENGTH:
            errors["username"] = f"must not be more than {USERNAME_MAX_LENGTH} bytes long"

        if not self.email:
            errors["email"] = "must be provided"
        elif len(self.email) > EMAIL_MAX_LENGTH:
            errors["email"] = f"must not be more than {EMAIL_MAX_LENGTH} bytes long"

        plaintext = self._password_plaintext
        if plaintext is not None:
            if len(plaintext) < PASSWORD_MIN_LENGTH:
                errors["password"] = f"must be at least {PASSWORD_MIN_LENGTH} bytes long"
            elif len(plaintext) > PASSWORD_MAX_LENGTH:
                errors["password"] = f"must not be more than {PASSWORD_MAX_LENGTH} bytes long"

        if not self.password_hash:
            raise MissingPasswordHashError()

        if errors:
            raise FailedValidationError(errors)
