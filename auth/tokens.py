"""
auth/tokens.py -- Password hashing and bearer-token parsing.

Security design decisions:
  Passwords: bcrypt with a fixed cost factor. Bcrypt is the right choice for
       low-entropy secrets because its cost factor makes brute force
       expensive. The _DUMMY_HASH constant enables timing equalization in
       AuthService.login() so response time does not reveal whether a
       username exists.

  CPU isolation: hash_password / verify_password are deliberately slow and
       synchronous. They must only be called through run_in_threadpool (see
       auth/service.py), never directly from a coroutine.

  Session tokens: opaque UUIDv4 strings issued by the credential store
       (auth/store.py new_session). They carry no claims; every request
       re-reads the store, so logout and expiry take effect immediately.

Layer rule: no imports from api/ or game/.
"""

from __future__ import annotations

import logging

import bcrypt

logger = logging.getLogger("geekcraft.auth")

BCRYPT_ROUNDS = 12

# bcrypt only looks at the first 72 bytes of input; newer releases reject
# longer input outright. The service rejects such passwords up front.
BCRYPT_MAX_BYTES = 72

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password."""
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed stored hash is treated as a mismatch, not an error: the
    caller answers "invalid credentials" either way.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash could not be parsed")
        return False


# Timing equalization dummy hash.
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("geekcraft_timing_dummy")


def dummy_verify(plain: str) -> None:
    """Burn one bcrypt verification for a username that does not exist."""
    verify_password(plain, _DUMMY_HASH)


# ---------------------------------------------------------------------------
# Authorization header parsing
# ---------------------------------------------------------------------------


def parse_bearer(header: str | None) -> str | None:
    """Extract the token from an "Authorization: Bearer <token>" header value.

    Returns None for a missing header, a different scheme, an empty token, or
    a token containing whitespace. The scheme is matched case-insensitively
    (RFC 7235); the token is returned verbatim.
    """
    if not header:
        return None
    scheme, _, token = header.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    if not token or any(ch.isspace() for ch in token):
        return None
    return token
