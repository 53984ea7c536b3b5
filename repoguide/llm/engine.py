"""Model invocation with per-model retry, ranked fallback and a model memo.

The engine walks a queue of candidate models. Each model gets up to
``max_attempts`` calls; after every failed call the error kind picks one
of three transitions:

* ``RETRY``      - call the same model again after ``backoff_base * attempt`` seconds
* ``NEXT_MODEL`` - give up on this model and move to the next candidate
* ``ABORT``      - stop immediately; no further models are tried

Calls are strictly sequential. The winning model is remembered per
credential so later requests try it first.
"""

from __future__ import annotations

import asyncio
import hashlib
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Deque, Dict, List, Optional, Protocol

from ..config import LLMConfig
from ..errors import (
    AnalysisErrorKind,
    ModelCallError,
    ModelErrorKind,
    ModelInvocationError,
)
from ..logging import get_logger
from ..models import AttemptOutcome, ModelCallAttempt
from ..stores.kv import KeyValueStore
from .gemini import ModelResponse


class ModelClient(Protocol):
    async def generate(self, model: str, api_key: str, prompt: str) -> ModelResponse: ...


class Action(str, Enum):
    RETRY = "retry"
    NEXT_MODEL = "next-model"
    ABORT = "abort"


def _on_invalid_credential(attempt: int, max_attempts: int) -> Action:
    return Action.ABORT


def _on_model_unavailable(attempt: int, max_attempts: int) -> Action:
    return Action.NEXT_MODEL


def _on_rate_limited(attempt: int, max_attempts: int) -> Action:
    return Action.NEXT_MODEL


def _on_timeout(attempt: int, max_attempts: int) -> Action:
    return Action.NEXT_MODEL


def _on_blocked(attempt: int, max_attempts: int) -> Action:
    return Action.NEXT_MODEL


def _on_transient(attempt: int, max_attempts: int) -> Action:
    return Action.RETRY if attempt < max_attempts else Action.NEXT_MODEL


def _on_unclassified(attempt: int, max_attempts: int) -> Action:
    return Action.ABORT


_TRANSITIONS: Dict[ModelErrorKind, Callable[[int, int], Action]] = {
    ModelErrorKind.INVALID_CREDENTIAL: _on_invalid_credential,
    ModelErrorKind.MODEL_UNAVAILABLE: _on_model_unavailable,
    ModelErrorKind.RATE_LIMITED: _on_rate_limited,
    ModelErrorKind.TIMEOUT: _on_timeout,
    ModelErrorKind.BLOCKED: _on_blocked,
    ModelErrorKind.TRANSIENT: _on_transient,
    ModelErrorKind.UNCLASSIFIED: _on_unclassified,
}

_OUTCOMES: Dict[ModelErrorKind, AttemptOutcome] = {
    ModelErrorKind.INVALID_CREDENTIAL: AttemptOutcome.FATAL_ERROR,
    ModelErrorKind.MODEL_UNAVAILABLE: AttemptOutcome.MODEL_UNAVAILABLE,
    ModelErrorKind.RATE_LIMITED: AttemptOutcome.MODEL_UNAVAILABLE,
    ModelErrorKind.TIMEOUT: AttemptOutcome.RETRYABLE_ERROR,
    ModelErrorKind.BLOCKED: AttemptOutcome.FATAL_ERROR,
    ModelErrorKind.TRANSIENT: AttemptOutcome.RETRYABLE_ERROR,
    ModelErrorKind.UNCLASSIFIED: AttemptOutcome.FATAL_ERROR,
}


def next_action(kind: ModelErrorKind, attempt: int, max_attempts: int) -> Action:
    """Pick the transition for a failed call (``attempt`` is 1-based)."""
    return _TRANSITIONS[kind](attempt, max_attempts)


@dataclass
class InvocationResult:
    text: str
    model: str
    attempts: List[ModelCallAttempt] = field(default_factory=list)


@dataclass
class InvocationState:
    """Model queue x attempt counter for one invocation."""

    queue: Deque[str]
    model: Optional[str] = None
    attempt: int = 0
    tried: List[str] = field(default_factory=list)
    attempts: List[ModelCallAttempt] = field(default_factory=list)

    def advance(self) -> bool:
        """Move to the next candidate model; ``False`` when none remain."""
        if not self.queue:
            self.model = None
            return False
        self.model = self.queue.popleft()
        self.attempt = 0
        self.tried.append(self.model)
        return True


def model_cache_key(api_key: str) -> str:
    fingerprint = hashlib.sha256(api_key.encode("utf-8")).hexdigest()[:16]
    return f"gemini:model:{fingerprint}"


class ModelInvocationEngine:
    """Drives a prompt through ranked candidate models until one succeeds."""

    def __init__(
        self,
        client: ModelClient,
        *,
        config: LLMConfig | None = None,
        store: KeyValueStore | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client = client
        self.config = config or LLMConfig()
        self.store = store
        self._sleep = sleep
        self._clock = clock
        self.logger = get_logger("llm.engine")

    def candidate_models(self, api_key: str, requested: Optional[str] = None) -> List[str]:
        """Requested model, then the remembered model, then the fallback order."""
        ordered: List[str] = []
        for model in (requested, self._remembered(api_key), *self.config.fallback_models):
            if model and model not in ordered:
                ordered.append(model)
        return ordered

    async def invoke(
        self, prompt: str, api_key: str, *, model: Optional[str] = None
    ) -> InvocationResult:
        state = InvocationState(queue=deque(self.candidate_models(api_key, model)))
        max_attempts = max(1, self.config.max_attempts)

        while (current := state.model if state.advance() else None) is not None:
            while True:
                state.attempt += 1
                started = self._clock()
                try:
                    text = await self._call(current, api_key, prompt)
                except ModelCallError as exc:
                    elapsed = self._clock() - started
                    action = next_action(exc.kind, state.attempt, max_attempts)
                    state.attempts.append(
                        ModelCallAttempt(
                            model=current,
                            attempt=state.attempt,
                            outcome=_OUTCOMES[exc.kind],
                            elapsed=elapsed,
                            error_kind=exc.kind.value,
                            message=exc.message,
                        )
                    )
                    self.logger.warning(
                        "Model %s attempt %d/%d failed (%s): %s -> %s",
                        current,
                        state.attempt,
                        max_attempts,
                        exc.kind.value,
                        exc.message,
                        action.value,
                    )
                    if action is Action.RETRY:
                        await self._sleep(self.config.backoff_base * state.attempt)
                        continue
                    if action is Action.NEXT_MODEL:
                        break
                    self._forget(api_key)
                    raise self._abort_error(exc, state) from exc

                elapsed = self._clock() - started
                state.attempts.append(
                    ModelCallAttempt(
                        model=current,
                        attempt=state.attempt,
                        outcome=AttemptOutcome.SUCCESS,
                        elapsed=elapsed,
                    )
                )
                self.logger.info(
                    "Model %s succeeded on attempt %d (%.2fs)", current, state.attempt, elapsed
                )
                self._remember(api_key, current)
                return InvocationResult(text=text, model=current, attempts=state.attempts)

        self._forget(api_key)
        tried = ", ".join(state.tried) or "none"
        self.logger.error("All candidate models failed: %s", tried)
        raise ModelInvocationError(
            AnalysisErrorKind.ALL_MODELS_EXHAUSTED,
            f"All models failed. Attempted: {tried}",
            models=state.tried,
            attempts=state.attempts,
        )

    # ------------------------------------------------------------------
    # Internal helpers

    async def _call(self, model: str, api_key: str, prompt: str) -> str:
        timeout = self.config.request_timeout
        try:
            async with asyncio.timeout(timeout):
                response = await self.client.generate(model, api_key, prompt)
        except TimeoutError as exc:
            raise ModelCallError(
                ModelErrorKind.TIMEOUT, f"No response within {timeout:g}s"
            ) from exc
        return _require_text(response)

    def _abort_error(self, exc: ModelCallError, state: InvocationState) -> ModelInvocationError:
        tried = ", ".join(state.tried)
        if exc.kind is ModelErrorKind.INVALID_CREDENTIAL:
            kind = AnalysisErrorKind.INVALID_CREDENTIAL
            message = f"Model API key was rejected: {exc.message} (attempted: {tried})"
        else:
            kind = AnalysisErrorKind.UPSTREAM_ERROR
            message = f"Model call failed: {exc.message} (attempted: {tried})"
        self.logger.error("%s", message)
        return ModelInvocationError(
            kind,
            message,
            models=state.tried,
            attempts=state.attempts,
            status_code=exc.status_code,
            payload=exc.payload,
        )

    def _remembered(self, api_key: str) -> Optional[str]:
        if self.store is None or not api_key:
            return None
        return self.store.get(model_cache_key(api_key))

    def _remember(self, api_key: str, model: str) -> None:
        if self.store is None or not api_key:
            return
        self.store.set(model_cache_key(api_key), model, ttl=self.config.model_cache_ttl)

    def _forget(self, api_key: str) -> None:
        if self.store is None or not api_key:
            return
        self.store.delete(model_cache_key(api_key))


def _require_text(response: ModelResponse) -> str:
    if response.candidate_count == 0:
        reason = f" (blocked: {response.block_reason})" if response.block_reason else ""
        raise ModelCallError(
            ModelErrorKind.BLOCKED, f"No candidates in response{reason}", payload=response.raw
        )
    reason = (response.finish_reason or "").upper()
    if reason != "STOP":
        raise ModelCallError(
            ModelErrorKind.BLOCKED,
            f"Response finished with {response.finish_reason or 'no finish reason'}",
            payload=response.raw,
        )
    if not response.text.strip():
        raise ModelCallError(ModelErrorKind.BLOCKED, "Response text was empty", payload=response.raw)
    return response.text


__all__ = [
    "Action",
    "InvocationResult",
    "InvocationState",
    "ModelClient",
    "ModelInvocationEngine",
    "model_cache_key",
    "next_action",
]
