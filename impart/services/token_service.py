"""
Token service — issuing, resolving and revoking opaque bearer tokens.

Tokens carry a scope that restricts where they may be redeemed:

  - authentication: a login session, presented as "Authorization: Bearer ..."
  - activation:     a one-time proof sent to a new user, redeemed once at
                    PUT /v1/users/activated

Issue flow:
  1. Draw a random plaintext (see impart.security)
  2. Store {fingerprint, user_id, scope, expiry = now + ttl}
  3. Hand the plaintext back to the caller; it is never stored

Resolve flow:
  1. Re-derive the fingerprint from the presented plaintext
  2. Look up a row with that fingerprint AND the expected scope AND an expiry
     in the future, joined to its user
  3. Any miss raises RecordNotFoundError. Absent, expired and wrong-scope
     tokens are indistinguishable to the caller on purpose.

Revocation deletes every token of one scope for one user. Revoking when
nothing matches is not an error.
"""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from impart.config import settings
from impart.database import bounded
from impart.exceptions import RecordNotFoundError
from impart.models.token import Token
from impart.models.user import User
from impart.security import (
    SCOPE_ACTIVATION,
    SCOPE_AUTHENTICATION,
    generate_token_plaintext,
    token_fingerprint,
)

logger = logging.getLogger(__name__)


def ttl_for_scope(scope: str) -> timedelta:
    """Return the configured lifetime for tokens of the given scope."""
    if scope == SCOPE_AUTHENTICATION:
        return timedelta(hours=settings.AUTH_TOKEN_TTL_HOURS)
    if scope == SCOPE_ACTIVATION:
        return timedelta(hours=settings.ACTIVATION_TOKEN_TTL_HOURS)
    raise ValueError(f"unknown token scope: {scope!r}")


async def issue_token(
    db: AsyncSession,
    user_id: int,
    ttl: timedelta,
    scope: str,
) -> tuple[str, Token]:
    """
    Create and persist a new token for a user.

    Args:
        db: Database session.
        user_id: Owner of the token.
        ttl: How long the token stays redeemable.
        scope: SCOPE_AUTHENTICATION or SCOPE_ACTIVATION.

    Returns:
        Tuple of (plaintext token, persisted Token record). The plaintext is
        the only copy that will ever exist.
    """
    plaintext = generate_token_plaintext()
    record = Token(
        hash=token_fingerprint(plaintext),
        user_id=user_id,
        scope=scope,
        expiry=datetime.now(timezone.utc) + ttl,
    )
    db.add(record)
    await bounded(db.flush())

    logger.debug("issued %s token for user_id=%s", scope, user_id)
    return plaintext, record


async def resolve_token(
    db: AsyncSession,
    plaintext: str,
    scope: str,
    now: datetime | None = None,
) -> User:
    """
    Return the user owning a live token of the given scope.

    Args:
        db: Database session.
        plaintext: The token as presented by the client.
        scope: Scope the token must have been issued with.
        now: Reference time for the expiry check. Defaults to the current time.

    Raises:
        RecordNotFoundError: If no unexpired token with that fingerprint and
            scope exists.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    stmt = (
        select(User)
        .join(Token, Token.user_id == User.id)
        .where(
            Token.hash == token_fingerprint(plaintext),
            Token.scope == scope,
            Token.expiry > now,
        )
    )
    result = await bounded(db.execute(stmt))
    user = result.scalar_one_or_none()

    if user is None:
        raise RecordNotFoundError("token")
    return user


async def revoke_all_for_user(db: AsyncSession, user_id: int, scope: str) -> int:
    """
    Delete every token of one scope belonging to a user.

    Returns:
        The number of tokens removed (0 when there were none).
    """
    result = await bounded(
        db.execute(
            delete(Token).where(Token.user_id == user_id, Token.scope == scope)
        )
    )
    count = result.rowcount or 0
    logger.info("revoked %d %s token(s) for user_id=%s", count, scope, user_id)
    return count
