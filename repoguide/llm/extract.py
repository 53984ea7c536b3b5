"""Pull a JSON object out of free-form model output."""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Optional

from ..errors import ResponseParseError
from ..models import AnalysisResult

_FENCED_JSON_RE = re.compile(r"```json\s*([\s\S]*?)\s*```", re.IGNORECASE)
_FENCED_ANY_RE = re.compile(r"```[a-zA-Z0-9_-]*\s*(\{[\s\S]*?\})\s*```")


def find_json_span(text: str) -> Optional[str]:
    """Return the fenced JSON block, else the widest ``{...}`` span, else ``None``."""
    match = _FENCED_JSON_RE.search(text) or _FENCED_ANY_RE.search(text)
    if match:
        return match.group(1)
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return text[start : end + 1]


def extract_json(text: str) -> Dict[str, Any]:
    if not isinstance(text, str):
        raise ResponseParseError(f"Expected model output text, received {type(text).__name__}")
    span = find_json_span(text)
    if span is None:
        raise ResponseParseError("No JSON found in model response", payload=text[:500])
    try:
        parsed = json.loads(span)
    except json.JSONDecodeError as exc:
        raise ResponseParseError(
            f"Failed to parse JSON from model response: {exc.msg}", payload=span[:500]
        ) from exc
    if not isinstance(parsed, dict):
        raise ResponseParseError(
            "Model response JSON is not an object", payload=span[:500]
        )
    return parsed


def build_analysis_result(parsed: Dict[str, Any], *, model: Optional[str] = None) -> AnalysisResult:
    """Map parsed fields onto :class:`AnalysisResult`, filling placeholders."""
    result = AnalysisResult.from_dict(parsed)
    result.model = model
    return result


def parse_analysis(text: str, *, model: Optional[str] = None) -> AnalysisResult:
    return build_analysis_result(extract_json(text), model=model)


__all__ = ["build_analysis_result", "extract_json", "find_json_span", "parse_analysis"]
