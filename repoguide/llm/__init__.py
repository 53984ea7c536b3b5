"""Model access: Gemini adapter, invocation engine and output extraction."""

from .engine import InvocationResult, ModelInvocationEngine
from .extract import extract_json, parse_analysis
from .gemini import GeminiClient, ModelResponse

__all__ = [
    "GeminiClient",
    "InvocationResult",
    "ModelInvocationEngine",
    "ModelResponse",
    "extract_json",
    "parse_analysis",
]
