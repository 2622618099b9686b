"""Security helpers.

Contains password hashing/verification and signed session-token utilities.
The token is an identity claim only: callers re-load the principal from the
database before making any authorization decision.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from itsdangerous import BadData, URLSafeSerializer
from passlib.context import CryptContext
from passlib.exc import MissingBackendError

from sideledger.config import settings

# Argon2 is memory-hard and resilient against GPU/ASIC cracking.
pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto",
)
# Signed serializer protects session payload integrity.
serializer = URLSafeSerializer(settings.secret_key, salt="sideledger-session")


@dataclass(frozen=True)
class SessionClaims:
    """Identity read from a session token. `role` is informational only; authorization uses the stored role."""

    user_id: int
    role: str


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2."""
    return pwd_context.hash(password)


def ensure_password_backend() -> None:
    """Validate Argon2 backend availability with a lightweight hash."""
    try:
        pwd_context.hash("argon2-backend-check")
    except MissingBackendError as exc:
        raise RuntimeError(
            "Argon2 backend unavailable. Install argon2-cffi in the active virtual environment."
        ) from exc


def verify_password(password: str, hashed_password: str) -> bool:
    """Verify a plaintext password against a stored hash."""
    return pwd_context.verify(password, hashed_password)


def create_session_token(user_id: int, role: str) -> str:
    payload = {
        "sub": user_id,
        "role": role,
        "exp": (datetime.now(timezone.utc) + timedelta(hours=settings.session_hours)).timestamp(),
    }
    return serializer.dumps(payload)


def read_session_token(token: str) -> SessionClaims | None:
    try:
        payload = serializer.loads(token)
    except BadData:
        return None
    if not isinstance(payload, dict):
        return None
    if payload.get("exp", 0) < datetime.now(timezone.utc).timestamp():
        return None
    user_id = payload.get("sub")
    if not isinstance(user_id, int):
        return None
    return SessionClaims(user_id=user_id, role=str(payload.get("role", "")))
