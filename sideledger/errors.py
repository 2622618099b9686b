"""SideLedger exception hierarchy.

Every error a handler or service raises on purpose derives from
`SideLedgerError` and carries the HTTP status it maps to, so the API layer can
render them with one exception handler.
"""

from __future__ import annotations


class SideLedgerError(Exception):
    """Base exception for all SideLedger errors."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(SideLedgerError):
    """Missing or invalid input detected before any write."""

    status_code = 400


class AuthenticationError(SideLedgerError):
    """No usable identity: missing/expired token or inactive principal."""

    status_code = 401


class AuthorizationError(SideLedgerError):
    """The principal's role does not permit the requested operation."""

    status_code = 403


class NotFoundError(SideLedgerError):
    """A referenced entity does not exist (or is not visible to the actor)."""

    status_code = 404

    def __init__(self, entity: str, entity_id: object | None = None) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found")


class ConflictError(SideLedgerError):
    """A uniqueness rule rejected the write."""

    status_code = 409


class ExternalServiceError(SideLedgerError):
    """OCR or LLM call failed. Always converted to a fallback value."""

    status_code = 502

    def __init__(self, service: str, message: str) -> None:
        self.service = service
        super().__init__(f"{service}: {message}")
