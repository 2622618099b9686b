"""Shared HTTP plumbing for the OCR and narrative collaborators.

Every transport, status and decoding failure is converted into
`ExternalServiceError` so callers only have one thing to catch before they
substitute their fallback value.
"""

from __future__ import annotations

from typing import Any

import httpx

from sideledger.errors import ExternalServiceError


def post_json(
    url: str,
    *,
    service: str,
    payload: dict[str, Any],
    timeout: float,
    headers: dict[str, str] | None = None,
    client: httpx.Client | None = None,
) -> Any:
    """POST `payload` as JSON and return the decoded JSON response body."""
    try:
        if client is None:
            with httpx.Client(timeout=timeout) as owned_client:
                response = owned_client.post(url, json=payload, headers=headers)
        else:
            response = client.post(url, json=payload, headers=headers, timeout=timeout)
        response.raise_for_status()
        return response.json()
    except httpx.HTTPError as exc:
        raise ExternalServiceError(service, f"{type(exc).__name__}: {exc}") from exc
    except ValueError as exc:
        raise ExternalServiceError(service, "response body is not valid JSON") from exc
