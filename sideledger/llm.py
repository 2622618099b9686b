"""Narrative generator.

Turns an insight bundle (admin aggregates or a worker's personal summary) into
a short Markdown executive summary through the Gemini `generateContent` REST
endpoint. The generator never raises: missing credentials and every call
failure yield `FALLBACK_INSIGHTS`.
"""

from __future__ import annotations

import logging
from typing import Union

import httpx

from sideledger.config import settings
from sideledger.errors import ExternalServiceError
from sideledger.external import post_json
from sideledger.schemas import AdminInsightInput, WorkerInsightInput

logger = logging.getLogger(__name__)

FALLBACK_INSIGHTS = "AI Insights are temporarily unavailable. Please check the data below."

PROMPT_TEMPLATE = """You are an AI analyst for a construction management platform called SideLedger.
Analyze the following JSON data and provide a concise, professional executive summary.

Data: {data}

Guidelines:
- If Admin: Focus on financial health (Profit/Loss), project performance, and highlight any workers with excessive leaves.
- If Worker: Focus on their attendance reliability and estimated earnings.
- Use a professional, encouraging but objective tone.
- Format the output in Markdown (use bullet points, bold text for key figures).
- Keep it under 200 words.
"""


def build_prompt(bundle: Union[AdminInsightInput, WorkerInsightInput]) -> str:
    return PROMPT_TEMPLATE.format(data=bundle.model_dump_json())


def _extract_text(payload: object) -> str:
    try:
        parts = payload["candidates"][0]["content"]["parts"]
        text = "".join(part.get("text", "") for part in parts)
    except (KeyError, IndexError, TypeError, AttributeError) as exc:
        raise ExternalServiceError("llm", "unexpected response shape") from exc
    if not text.strip():
        raise ExternalServiceError("llm", "empty completion")
    return text.strip()


class NarrativeGenerator:
    def __init__(
        self,
        *,
        api_key: str | None,
        model: str,
        base_url: str,
        timeout: float,
        client: httpx.Client | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_settings(cls, client: httpx.Client | None = None) -> NarrativeGenerator:
        return cls(
            api_key=settings.llm_api_key,
            model=settings.llm_model,
            base_url=settings.llm_base_url,
            timeout=settings.external_timeout_seconds,
            client=client,
        )

    def generate(self, bundle: Union[AdminInsightInput, WorkerInsightInput]) -> str:
        """Return the summary text, or the fixed fallback on any failure."""
        if not self.api_key:
            logger.warning("LLM API key missing; returning fallback insights.")
            return FALLBACK_INSIGHTS
        try:
            payload = post_json(
                f"{self.base_url}/models/{self.model}:generateContent",
                service="llm",
                payload={"contents": [{"role": "user", "parts": [{"text": build_prompt(bundle)}]}]},
                headers={"x-goog-api-key": self.api_key},
                timeout=self.timeout,
                client=self._client,
            )
            return _extract_text(payload)
        except ExternalServiceError as exc:
            logger.warning("Narrative generation failed (%s); returning fallback insights.", exc)
            return FALLBACK_INSIGHTS
