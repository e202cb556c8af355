"""Password hashing and session token signing.

Passwords are hashed with bcrypt. Session tokens are HS256 JWTs carrying the
user id as ``sub``; a token is only honoured while it is also present in the
user's stored token list, so signing alone never grants access.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt

from .errors import AuthenticationFailed

ALGORITHM = "HS256"


def hash_password(password: str, rounds: int = 8) -> str:
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # stored value is not a bcrypt hash
        return False


def create_token(user_id: int, secret: str, expires_in: Optional[int] = None) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "iat": now,
        # two tokens issued within the same second must still differ
        "jti": secrets.token_hex(8),
    }
    if expires_in:
        claims["exp"] = now + timedelta(seconds=expires_in)
    return jwt.encode(claims, secret, algorithm=ALGORITHM)


def decode_token(token: str, secret: str) -> dict:
    try:
        return jwt.decode(
            token, secret, algorithms=[ALGORITHM], options={"require": ["sub"]}
        )
    except jwt.PyJWTError as exc:
        raise AuthenticationFailed() from exc
