"""Drains queued analysis jobs."""

from __future__ import annotations

from typing import Optional, Tuple

from .errors import AnalysisError
from .logging import get_logger
from .orchestrator import Orchestrator
from .stores.jobs import Job, JobStore
from .stores.sessions import SessionStore

logger = get_logger("worker")


class JobProcessor:
    """Runs the oldest queued jobs through the orchestrator, one at a time."""

    def __init__(
        self,
        orchestrator: Orchestrator,
        jobs: JobStore,
        sessions: SessionStore | None = None,
        *,
        default_gemini_key: Optional[str] = None,
        default_github_token: Optional[str] = None,
        batch_size: int = 5,
    ) -> None:
        self.orchestrator = orchestrator
        self.jobs = jobs
        self.sessions = sessions
        self.default_gemini_key = default_gemini_key
        self.default_github_token = default_github_token
        self.batch_size = batch_size

    async def process_queued(self) -> int:
        """Process up to ``batch_size`` queued jobs and return how many were handled."""
        queued = self.jobs.list_queued(self.batch_size)
        logger.info("Processing %d queued jobs", len(queued))
        for job in queued:
            await self.process(job)
        return len(queued)

    async def process(self, job: Job) -> None:
        self.jobs.mark_processing(job.id)
        gemini_key, github_token = self._credentials_for(job)
        try:
            result = await self.orchestrator.analyze(
                job.repo_url,
                gemini_key=gemini_key,
                github_token=github_token,
                target_os=job.target_os,
            )
        except AnalysisError as exc:
            logger.warning("Job %s failed (%s): %s", job.id, exc.kind.value, exc.message)
            self.jobs.mark_failed(job.id, exc.message)
            return
        except Exception as exc:  # job rows must never stay in "processing"
            logger.exception("Job %s failed unexpectedly", job.id)
            self.jobs.mark_failed(job.id, str(exc) or exc.__class__.__name__)
            return
        self.jobs.mark_complete(job.id, result.to_dict())
        logger.info("Job %s completed successfully", job.id)

    def _credentials_for(self, job: Job) -> Tuple[Optional[str], Optional[str]]:
        if job.session_id and self.sessions is not None:
            keys = self.sessions.get_keys(job.session_id)
            if keys and keys.gemini_key:
                return keys.gemini_key, keys.github_token or self.default_github_token
        return self.default_gemini_key, self.default_github_token


__all__ = ["JobProcessor"]
