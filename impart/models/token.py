"""
Token model — the persisted half of an opaque bearer token.

Only the SHA-256 fingerprint of the plaintext is stored, and it doubles as
the primary key, so a lookup is a single indexed equality match. A token is
valid while its scope matches the one being redeemed and its expiry lies in
the future; there is no separate "revoked" flag — revocation deletes rows.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, LargeBinary, String
from sqlalchemy.orm import Mapped, mapped_column

from impart.database import Base


class Token(Base):
    __tablename__ = "tokens"

    # SHA-256 digest of the plaintext token
    hash: Mapped[bytes] = mapped_column(
        LargeBinary(32),
        primary_key=True,
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # "authentication" or "activation"
    scope: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    expiry: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
