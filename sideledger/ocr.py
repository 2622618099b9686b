"""Invoice OCR.

Extracts vendor, number, date, line items and totals from an invoice image via
an OpenAI-compatible vision chat completion. Without credentials, or on any
failure, a fixed mock payload is returned instead.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime

import httpx
from pydantic import ValidationError as PydanticValidationError

from sideledger.config import settings
from sideledger.errors import ExternalServiceError, ValidationError
from sideledger.external import post_json
from sideledger.schemas import ScannedInvoice, ScannedItem

logger = logging.getLogger(__name__)

EXTRACTION_PROMPT = (
    "Extract the following details from this invoice image in JSON format: vendor, invoiceNumber, "
    "date, items (name, quantity, price, gstRate, amount), totalAmount, totalGst. Return ONLY JSON."
)


def mock_invoice_data() -> ScannedInvoice:
    return ScannedInvoice(
        vendor="Demo Vendor",
        invoice_number="INV-000",
        date=datetime.utcnow().isoformat(),
        items=[ScannedItem(name="Material Match", quantity=1, price=1000, amount=1000)],
        total_amount=1000,
        total_gst=180,
    )


def strip_code_fences(content: str) -> str:
    return content.replace("```json", "").replace("```", "").strip()


def _parse_completion(payload: object) -> ScannedInvoice:
    try:
        content = payload["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ExternalServiceError("ocr", "unexpected response shape") from exc
    if content is None:
        content = "{}"
    if not isinstance(content, str):
        raise ExternalServiceError("ocr", f"completion content is {type(content).__name__}, expected text")
    try:
        return ScannedInvoice.model_validate(json.loads(strip_code_fences(content)))
    except (ValueError, PydanticValidationError) as exc:
        raise ExternalServiceError("ocr", "completion is not a valid invoice JSON document") from exc


def parse_invoice(image_url: str, *, client: httpx.Client | None = None) -> ScannedInvoice:
    """Scan one invoice image; never raises for service failures."""
    if not image_url or not image_url.strip():
        raise ValidationError("Image URL required")
    if not settings.ocr_api_key:
        logger.warning("OCR API key missing. Returning mock data.")
        return mock_invoice_data()

    request_body = {
        "model": settings.ocr_model,
        "messages": [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": EXTRACTION_PROMPT},
                    {"type": "image_url", "image_url": {"url": image_url}},
                ],
            }
        ],
        "max_tokens": 1000,
    }
    try:
        payload = post_json(
            f"{settings.ocr_base_url.rstrip('/')}/chat/completions",
            service="ocr",
            payload=request_body,
            headers={"Authorization": f"Bearer {settings.ocr_api_key}"},
            timeout=settings.external_timeout_seconds,
            client=client,
        )
        return _parse_completion(payload)
    except ExternalServiceError as exc:
        logger.warning("OCR failed (%s); returning mock data.", exc)
        return mock_invoice_data()
