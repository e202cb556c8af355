import logging
from dataclasses import dataclass

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from . import crud, models
from .db import get_db
from .errors import AuthenticationFailed
from .security import decode_token

logger = logging.getLogger(__name__)


@dataclass
class AuthContext:
    user: models.User
    token: str


def _bearer_token(request: Request) -> str:
    header = request.headers.get("Authorization")
    if not header:
        raise AuthenticationFailed()
    scheme, _, token = header.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise AuthenticationFailed()
    return token


def require_auth(request: Request, db: Session = Depends(get_db)) -> AuthContext:
    """Resolve the bearer token to a user holding that exact token.

    Every failure is the same opaque 401.
    """
    token = _bearer_token(request)
    claims = decode_token(token, request.app.state.settings.jwt_secret)
    try:
        user_id = int(claims["sub"])
    except (TypeError, ValueError):
        raise AuthenticationFailed()
    user = crud.get_user_for_token(db, user_id, token)
    if user is None:
        logger.debug("Rejected token for user %s: no such session", user_id)
        raise AuthenticationFailed()
    return AuthContext(user=user, token=token)
