"""Adapter around the Gemini ``generateContent`` REST endpoint."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

import httpx

from ..errors import ModelCallError, ModelErrorKind

GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta"

_KEY_MARKERS = ("api key", "api_key", "apikey")
_TRANSIENT_MARKERS = (
    "timeout",
    "timed out",
    "deadline",
    "try again",
    "overloaded",
)


@dataclass
class ModelResponse:
    """The parts of a ``generateContent`` response the engine inspects."""

    text: str
    finish_reason: Optional[str]
    candidate_count: int
    block_reason: Optional[str] = None
    raw: Optional[Dict[str, Any]] = None


def classify_error_payload(status_code: Optional[int], payload: Any) -> ModelCallError:
    """Turn an upstream error body into a tagged :class:`ModelCallError`."""
    error = payload.get("error") if isinstance(payload, dict) else None
    if not isinstance(error, dict):
        error = {}
    code = error.get("code") if isinstance(error.get("code"), int) else status_code
    message = str(error.get("message") or (payload if isinstance(payload, str) else "") or "")
    status = str(error.get("status") or "").upper()
    reasons = set(_detail_reasons(error.get("details")))
    lowered = message.lower()
    if not message:
        message = f"HTTP {code}" if code else "Unknown model error"

    if (
        "API_KEY_INVALID" in reasons
        or status == "UNAUTHENTICATED"
        or code == 401
        or (code in (400, 403) and any(marker in lowered for marker in _KEY_MARKERS))
    ):
        kind = ModelErrorKind.INVALID_CREDENTIAL
    elif (
        code == 404
        or status == "NOT_FOUND"
        or "not found" in lowered
        or "not supported" in lowered
        or (
            "unavailable" in lowered
            and status != "UNAVAILABLE"
            and not (code is not None and code >= 500)
        )
    ):
        kind = ModelErrorKind.MODEL_UNAVAILABLE
    elif (
        code == 429
        or status == "RESOURCE_EXHAUSTED"
        or "quota" in lowered
        or "rate limit" in lowered
    ):
        kind = ModelErrorKind.RATE_LIMITED
    elif (
        (code is not None and code >= 500)
        or status == "UNAVAILABLE"
        or any(marker in lowered for marker in _TRANSIENT_MARKERS)
    ):
        kind = ModelErrorKind.TRANSIENT
    else:
        kind = ModelErrorKind.UNCLASSIFIED

    return ModelCallError(kind=kind, message=message, status_code=code, payload=payload)


def classify_transport_error(exc: httpx.HTTPError) -> ModelCallError:
    if isinstance(exc, httpx.TimeoutException):
        return ModelCallError(ModelErrorKind.TIMEOUT, f"Request timed out: {exc}")
    return ModelCallError(ModelErrorKind.TRANSIENT, f"Network error: {exc}")


def parse_generate_response(payload: Dict[str, Any]) -> ModelResponse:
    candidates = payload.get("candidates")
    if not isinstance(candidates, list):
        candidates = []
    feedback = payload.get("promptFeedback")
    block_reason = feedback.get("blockReason") if isinstance(feedback, dict) else None

    if not candidates:
        return ModelResponse(
            text="",
            finish_reason=None,
            candidate_count=0,
            block_reason=block_reason,
            raw=payload,
        )

    first = candidates[0] if isinstance(candidates[0], dict) else {}
    content = first.get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    texts = []
    if isinstance(parts, list):
        for part in parts:
            if isinstance(part, dict) and isinstance(part.get("text"), str):
                texts.append(part["text"])
    finish_reason = first.get("finishReason")
    return ModelResponse(
        text="".join(texts),
        finish_reason=finish_reason if isinstance(finish_reason, str) else None,
        candidate_count=len(candidates),
        block_reason=block_reason,
        raw=payload,
    )


class GeminiClient:
    """Issues a single ``generateContent`` call; retries live in the engine."""

    def __init__(
        self,
        *,
        temperature: Optional[float] = 0.3,
        max_output_tokens: Optional[int] = 8192,
        request_timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
        base_url: str = GEMINI_API_URL,
    ) -> None:
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.request_timeout = request_timeout
        self.base_url = base_url.rstrip("/")
        self._http = http_client
        self._owns_http = http_client is None

    async def __aenter__(self) -> "GeminiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    async def generate(self, model: str, api_key: str, prompt: str) -> ModelResponse:
        endpoint = f"{self.base_url}/models/{model}:generateContent"
        headers = {"Content-Type": "application/json", "x-goog-api-key": api_key}
        try:
            response = await self._client().post(
                endpoint, json=self._build_payload(prompt), headers=headers
            )
        except httpx.HTTPError as exc:
            raise classify_transport_error(exc) from exc

        try:
            payload = response.json()
        except ValueError:
            payload = response.text

        if not response.is_success:
            raise classify_error_payload(response.status_code, payload)
        if not isinstance(payload, dict):
            raise ModelCallError(
                ModelErrorKind.TRANSIENT,
                "Model returned a non-JSON response",
                status_code=response.status_code,
                payload=payload,
            )
        return parse_generate_response(payload)

    def _build_payload(self, prompt: str) -> Dict[str, Any]:
        generation_config: Dict[str, Any] = {}
        if self.temperature is not None:
            generation_config["temperature"] = self.temperature
        if self.max_output_tokens is not None:
            generation_config["maxOutputTokens"] = self.max_output_tokens
        payload: Dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
        if generation_config:
            payload["generationConfig"] = generation_config
        return payload

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(
                timeout=httpx.Timeout(self.request_timeout, connect=10.0)
            )
        return self._http


def _detail_reasons(details: Any) -> Iterable[str]:
    if not isinstance(details, list):
        return
    for detail in details:
        if isinstance(detail, dict) and isinstance(detail.get("reason"), str):
            yield detail["reason"]


__all__ = [
    "GEMINI_API_URL",
    "GeminiClient",
    "ModelResponse",
    "classify_error_payload",
    "classify_transport_error",
    "parse_generate_response",
]
