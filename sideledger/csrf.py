"""CSRF protection helpers.

Signed double-submit CSRF protection for cookie-authenticated requests. API
clients that send `Authorization: Bearer` carry no ambient credential and are
exempt; browser sessions relying on the `session_token` cookie must echo the
`csrf_token` cookie in the `x-csrf-token` header on every mutating request.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from urllib.parse import urlsplit

from fastapi import Request

from sideledger.config import settings
from sideledger.dependencies import SESSION_COOKIE_NAME, bearer_token

CSRF_COOKIE_NAME = "csrf_token"
CSRF_HEADER_NAME = "x-csrf-token"
_MUTATING_METHODS = {"POST", "PUT", "PATCH", "DELETE"}


def _session_binding(request: Request) -> str:
    """Bind CSRF signatures to the authenticated session token when present."""
    return request.cookies.get(SESSION_COOKIE_NAME) or "anonymous-session"


def _sign_nonce(nonce: str, session_binding: str) -> str:
    payload = f"{nonce}:{session_binding}".encode("utf-8")
    return hmac.new(settings.secret_key.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def build_csrf_token(request: Request) -> str:
    """Generate a fresh signed CSRF token bound to the current session cookie."""
    nonce = secrets.token_urlsafe(32)
    signature = _sign_nonce(nonce, _session_binding(request))
    return f"{nonce}.{signature}"


def is_csrf_token_valid(request: Request, token: str | None) -> bool:
    """Validate signed double-submit token against cookie and session binding."""
    cookie_token = request.cookies.get(CSRF_COOKIE_NAME)
    if not token or not cookie_token:
        return False
    if not hmac.compare_digest(token, cookie_token):
        return False
    if "." not in token:
        return False

    nonce, signature = token.rsplit(".", 1)
    expected = _sign_nonce(nonce, _session_binding(request))
    return hmac.compare_digest(signature, expected)


def should_enforce_csrf(request: Request) -> bool:
    """Return True for mutating requests authenticated only by the session cookie."""
    if request.method.upper() not in _MUTATING_METHODS:
        return False
    if bearer_token(request.headers.get("authorization")):
        return False
    return SESSION_COOKIE_NAME in request.cookies


def is_allowed_origin(request: Request) -> bool:
    """Allow requests with no Origin, same-origin requests and configured frontends."""
    origin = request.headers.get("origin")
    if not origin:
        return True
    if origin.rstrip("/") in {allowed.rstrip("/") for allowed in settings.cors_origins}:
        return True
    origin_parts = urlsplit(origin)
    request_parts = urlsplit(str(request.url))
    return (
        origin_parts.scheme.lower(),
        origin_parts.netloc.lower(),
    ) == (
        request_parts.scheme.lower(),
        request_parts.netloc.lower(),
    )
