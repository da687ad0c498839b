"""
Security utilities: password hashing and opaque bearer-token primitives.

This module centralizes all cryptographic operations so they're easy to
audit and update. Two concerns are handled here:

1. PASSWORD HASHING (Argon2)
   - Passwords are never stored in plaintext
   - Argon2id is memory-hard and time-hard, with a per-hash random salt
   - We use passlib's CryptContext for safe, high-level Argon2 operations

2. OPAQUE TOKENS
   - A token is 16 bytes from the OS CSPRNG, base32-encoded without padding,
     which always yields 26 characters from the alphabet A-Z and 2-7
   - Only the SHA-256 fingerprint of the plaintext is persisted; the
     plaintext is handed to the caller once and cannot be recovered
   - Because the secret carries 128 bits of entropy, a fast unsalted digest
     is sufficient for the fingerprint (unlike passwords)
   - Format validation happens before any storage lookup, so garbage in the
     Authorization header never reaches the database
"""

import base64
import hashlib
import re
import secrets

from passlib.context import CryptContext


# ---------------------------------------------------------------------------
# 1. Password Hashing (Argon2)
# ---------------------------------------------------------------------------

# "deprecated='auto'" lets passlib verify hashes from a retired scheme while
# producing new hashes with the active one.
pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 72


def hash_password(plain_password: str) -> str:
    """
    Hash a plaintext password using Argon2id.

    Args:
        plain_password: The user's raw password input.

    Returns:
        An Argon2 hash string (e.g., "$argon2id$v=19$m=65536,t=3,p=4$...").
    """
    return pwd_context.hash(plain_password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plaintext password against a stored Argon2 hash.

    The comparison is constant-time.

    Args:
        plain_password: The password the user just typed.
        hashed_password: The hash stored in the database.

    Returns:
        True if the password matches, False otherwise.

    Raises:
        ValueError: If the stored hash is malformed or of an unknown scheme.
    """
    return pwd_context.verify(plain_password, hashed_password)


# ---------------------------------------------------------------------------
# 2. Opaque Tokens
# ---------------------------------------------------------------------------

SCOPE_AUTHENTICATION = "authentication"
SCOPE_ACTIVATION = "activation"
TOKEN_SCOPES = (SCOPE_AUTHENTICATION, SCOPE_ACTIVATION)

TOKEN_BYTES = 16
TOKEN_LENGTH = 26

_TOKEN_RE = re.compile(r"[A-Z2-7]{%d}" % TOKEN_LENGTH)


def generate_token_plaintext() -> str:
    """Return a fresh 26-character base32 token."""
    raw = secrets.token_bytes(TOKEN_BYTES)
    return base64.b32encode(raw).decode("ascii").rstrip("=")


def token_fingerprint(plaintext: str) -> bytes:
    """Return the 32-byte SHA-256 digest stored in place of the token."""
    return hashlib.sha256(plaintext.encode("utf-8")).digest()


def is_valid_token_plaintext(plaintext: str) -> bool:
    """Check a presented token's length and alphabet without touching storage."""
    return _TOKEN_RE.fullmatch(plaintext) is not None
