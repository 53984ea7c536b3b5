"""Scripted stand-ins for the model client."""

from __future__ import annotations

import json
from typing import Dict, List, Sequence, Union

from repoguide.errors import ModelCallError, ModelErrorKind
from repoguide.llm.gemini import ModelResponse

GUIDE = {
    "projectOverview": "Demo is a small Vite application.",
    "prerequisites": ["Node.js 18+", "npm"],
    "setupSteps": ["git clone https://github.com/octo/demo", "npm install"],
    "runningInstructions": "npm run dev",
    "configuration": "No environment variables are required.",
    "troubleshooting": "Delete node_modules and reinstall if the dev server fails.",
}

GUIDE_TEXT = "Here is the guide:\n```json\n" + json.dumps(GUIDE, indent=2) + "\n```\n"

Outcome = Union[str, ModelResponse, ModelCallError]


def fail(kind: ModelErrorKind, message: str = "scripted failure", status_code: int | None = None) -> ModelCallError:
    return ModelCallError(kind=kind, message=message, status_code=status_code)


def stopped(text: str) -> ModelResponse:
    return ModelResponse(text=text, finish_reason="STOP", candidate_count=1)


class ScriptedModelClient:
    """Replays a per-model script of responses and failures.

    The last entry of a script repeats once the others are used up; a
    model with no script reports itself as unavailable.
    """

    def __init__(self, script: Dict[str, Sequence[Outcome]] | None = None) -> None:
        self.script: Dict[str, List[Outcome]] = {
            model: list(outcomes) for model, outcomes in (script or {}).items()
        }
        self.calls: List[str] = []
        self.prompts: List[str] = []
        self.keys: List[str] = []
        self.closed = False

    async def __aenter__(self) -> "ScriptedModelClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.closed = True

    async def generate(self, model: str, api_key: str, prompt: str) -> ModelResponse:
        self.calls.append(model)
        self.prompts.append(prompt)
        self.keys.append(api_key)
        outcomes = self.script.get(model)
        if not outcomes:
            raise fail(ModelErrorKind.MODEL_UNAVAILABLE, f"models/{model} is not found", 404)
        outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        if isinstance(outcome, ModelCallError):
            raise outcome
        if isinstance(outcome, ModelResponse):
            return outcome
        return stopped(outcome)


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


__all__ = [
    "GUIDE",
    "GUIDE_TEXT",
    "RecordingSleep",
    "ScriptedModelClient",
    "fail",
    "stopped",
]
