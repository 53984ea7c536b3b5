"""Pipeline orchestration: repository reference to structured setup guide."""

from __future__ import annotations

import asyncio
from contextlib import AsyncExitStack
from typing import Any, Awaitable, Callable, Optional

from .config import RepoGuideConfig, load_config
from .errors import AnalysisError, AnalysisErrorKind
from .github.client import GitHubClient, parse_repo_url
from .llm.engine import ModelInvocationEngine
from .llm.extract import parse_analysis
from .llm.gemini import GeminiClient
from .logging import describe_credential, get_logger
from .models import AnalysisResult, RepoMetadata
from .prompting.builder import PromptBuilder
from .prompting.constants import SUPPORTED_OS
from .selection.selector import FileSelector
from .stores.kv import KeyValueStore, MemoryStore

GitHubFactory = Callable[[], GitHubClient]
ModelClientFactory = Callable[[], Any]


def normalise_os(target_os: Optional[str]) -> Optional[str]:
    """Map user input to a supported OS key; ``all``/unknown means every platform."""
    if not target_os:
        return None
    lowered = target_os.strip().lower()
    return lowered if lowered in SUPPORTED_OS else None


class Orchestrator:
    """Coordinates selection, fetching, prompting and model invocation."""

    def __init__(
        self,
        config: RepoGuideConfig | None = None,
        *,
        store: KeyValueStore | None = None,
        github_factory: GitHubFactory | None = None,
        model_client_factory: ModelClientFactory | None = None,
        selector: FileSelector | None = None,
        prompt_builder: PromptBuilder | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config or load_config()
        self.store = store if store is not None else MemoryStore()
        self.selector = selector or FileSelector(self.config.selection)
        self.prompt_builder = prompt_builder or PromptBuilder()
        self._github_factory = github_factory or self._default_github
        self._model_client_factory = model_client_factory or self._default_model_client
        self._sleep = sleep
        self.logger = get_logger("orchestrator")

    async def inspect(self, repo_url: str, *, github_token: Optional[str] = None) -> RepoMetadata:
        """Resolve repository metadata and enforce the accessibility/size rules."""
        ref = parse_repo_url(repo_url)
        async with self._github_factory() as github:
            metadata = await github.get_repo_metadata(ref, token=github_token)
        self._check_metadata(metadata)
        return metadata

    def should_queue(self, metadata: RepoMetadata) -> bool:
        """Large repositories are answered through the job queue."""
        return metadata.size_mb >= self.config.limits.queue_threshold_mb

    async def analyze(
        self,
        repo_url: str,
        *,
        gemini_key: Optional[str],
        github_token: Optional[str] = None,
        target_os: Optional[str] = None,
        model: Optional[str] = None,
    ) -> AnalysisResult:
        """Produce a setup guide for ``repo_url``."""
        if not gemini_key:
            raise AnalysisError(
                AnalysisErrorKind.INVALID_CREDENTIAL, "Gemini API key is required"
            )
        ref = parse_repo_url(repo_url)
        os_key = normalise_os(target_os)
        self.logger.info(
            "Starting analysis for %s (os=%s, model key %s, github token %s)",
            ref.full_name,
            os_key or "all",
            describe_credential(gemini_key),
            describe_credential(github_token),
        )

        async with AsyncExitStack() as stack:
            github = await stack.enter_async_context(self._github_factory())
            metadata = await github.get_repo_metadata(ref, token=github_token)
            self._check_metadata(metadata)

            tree = await github.get_repo_tree(ref, token=github_token)
            selected = self.selector.select(tree)
            self.logger.info(
                "Selected %d files for analysis out of %d total files",
                len(selected),
                len(tree),
            )
            files = await github.fetch_file_contents(ref, selected, token=github_token)
            if not files:
                raise AnalysisError(
                    AnalysisErrorKind.NO_FETCHABLE_CONTENT,
                    "No files could be fetched from the repository",
                )

            prompt = self.prompt_builder.build(metadata.full_name, files, os_key)
            self.logger.info(
                "Sending %d files (%d chars) to the model", len(files), len(prompt)
            )

            model_client = await stack.enter_async_context(self._model_client_factory())
            engine = ModelInvocationEngine(
                model_client,
                config=self.config.llm,
                store=self.store,
                sleep=self._sleep,
            )
            invocation = await engine.invoke(
                prompt, gemini_key, model=model or self.config.llm.model
            )

        result = parse_analysis(invocation.text, model=invocation.model)
        self.logger.info("Analysis of %s completed with %s", ref.full_name, invocation.model)
        return result

    # ------------------------------------------------------------------
    # Internal helpers

    def _check_metadata(self, metadata: RepoMetadata) -> None:
        if metadata.private:
            raise AnalysisError(
                AnalysisErrorKind.NOT_FOUND_OR_PRIVATE,
                "Cannot analyze private repositories",
            )
        limit = self.config.limits.max_repo_mb
        if metadata.size_mb > limit:
            raise AnalysisError(
                AnalysisErrorKind.TOO_LARGE,
                f"Repository exceeds {limit:g}MB limit",
            )

    def _default_github(self) -> GitHubClient:
        return GitHubClient(config=self.config.fetch, store=self.store)

    def _default_model_client(self) -> GeminiClient:
        llm = self.config.llm
        return GeminiClient(
            temperature=llm.temperature,
            max_output_tokens=llm.max_output_tokens,
            request_timeout=llm.request_timeout,
        )


__all__ = ["Orchestrator", "normalise_os"]
