"""
auth/tokens.py -- Session tokens and password hashing.

Security design decisions:
  JWT: python-jose with HS256. SessionTokens is built once at startup with the
       signing key from core.config and stored on app.state.tokens. Tokens
       carry user_id, email, role, iat and exp. Verification returns None on
       any failure -- the auth dependency turns that into a 401.

       The role claim is a snapshot taken at issue time. Authorization never
       reads it; auth/dependencies.py re-fetches the user on every request.

  Passwords: bcrypt used directly. Bcrypt's cost factor makes brute-force of
       low-entropy secrets expensive. The _DUMMY_HASH constant enables timing
       equalization in authenticate_user() so response time does not reveal
       whether an email is registered.

Layer rule: no imports from api/ or org/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("credvault.auth")

_ALGORITHM = "HS256"
_REQUIRED_CLAIMS = ("user_id", "email", "role")

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    bcrypt only accepts up to 72 bytes of input. api/models.py rejects longer
    passwords at the request boundary so this limit is never reached here.
    """
    rounds = get_settings().bcrypt_rounds
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Corrupt or non-bcrypt hash in the DB
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("credvault_timing_dummy")


def authenticate_user(store: UserStore, email: str, password: str) -> User | None:
    """Authenticate an email/password login with timing equalization.

    Always runs bcrypt whether or not the user exists:
    - Unknown email: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash (same cost)

    Returns the User on success, None on any failure.
    """
    user = store.get_by_email(email)
    if user is None or not user.hashed_password:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


# ---------------------------------------------------------------------------
# Session tokens
# ---------------------------------------------------------------------------


class SessionTokens:
    """Issue and verify signed, time-limited session tokens.

    One instance per process, constructed from Settings in the app lifespan:

        tokens = SessionTokens(settings.secret_key, settings.token_expire_seconds)
        token = tokens.issue(user)
        claims = tokens.verify(token)   # dict or None
    """

    def __init__(self, secret_key: str, expire_seconds: int = 3600) -> None:
        self._secret_key = secret_key
        self.expire_seconds = expire_seconds

    def issue(self, user: User) -> str:
        """Encode a signed JWT for user. Expiry is issue time + expire_seconds."""
        issued_at = datetime.now(timezone.utc)
        payload = {
            "sub": str(user.id),
            "user_id": user.id,
            "email": user.email,
            "role": user.role,
            "iat": issued_at,
            "exp": issued_at + timedelta(seconds=self.expire_seconds),
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str) -> dict | None:
        """Decode and verify a JWT. Returns the claims dict or None on any failure.

        Fails on a bad signature, an expired token, a malformed token, or a
        payload missing any of user_id / email / role.
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM])
        except JWTError as exc:
            logger.debug("Session token rejected: %s", exc)
            return None
        if any(claim not in payload for claim in _REQUIRED_CLAIMS):
            logger.debug("Session token missing required claims")
            return None
        if not isinstance(payload["user_id"], int):
            return None
        return payload
