"""Dependency helpers.

Provides authentication and role-gating dependencies for FastAPI routes. The
principal is always re-fetched from the database; the role claim inside the
session token is never trusted as an authorization grant.
"""

import logging

from fastapi import Cookie, Depends, Header
from sqlalchemy.orm import Session

from sideledger.database import get_db
from sideledger.errors import AuthenticationError, AuthorizationError
from sideledger.models import Role, User, WorkerStatus
from sideledger.security import read_session_token

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "session_token"


def bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an `Authorization: Bearer <token>` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_current_user(
    authorization: str | None = Header(default=None),
    session_token: str | None = Cookie(default=None),
    db: Session = Depends(get_db),
) -> User:
    token = bearer_token(authorization) or session_token
    if not token:
        raise AuthenticationError("Not authenticated")
    claims = read_session_token(token)
    if claims is None:
        raise AuthenticationError("Session expired")
    user = db.get(User, claims.user_id)
    if not user or user.status != WorkerStatus.ACTIVE:
        raise AuthenticationError("Invalid user")
    return user


def require_roles(*roles: Role):
    def _checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            logger.warning(
                "Denied %s access for user_id=%s role=%s",
                "/".join(role.value for role in roles),
                current_user.id,
                current_user.role.value,
            )
            raise AuthorizationError(f"Access denied. Role '{current_user.role.value}' is not authorized.")
        return current_user

    return _checker


require_admin = require_roles(Role.ADMIN)
