"""Queue of analysis jobs for repositories too large to answer synchronously."""

from __future__ import annotations

import json
import secrets
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

_STORE_VERSION = 1


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class Job:
    """A queued or finished analysis request."""

    id: str
    repo_url: str
    session_id: Optional[str] = None
    target_os: Optional[str] = None
    status: JobStatus = JobStatus.QUEUED
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class JobStore:
    """Stores jobs in memory, optionally mirrored to a JSON file."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.Lock()
        if self._path is not None:
            self._load(self._path)

    def create(
        self,
        repo_url: str,
        *,
        session_id: Optional[str] = None,
        target_os: Optional[str] = None,
    ) -> Job:
        job = Job(
            id=secrets.token_urlsafe(12),
            repo_url=repo_url,
            session_id=session_id,
            target_os=target_os,
        )
        with self._lock:
            self._jobs[job.id] = job
        self.persist()
        return job

    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            return self._jobs.get(job_id)

    def list_queued(self, limit: int) -> List[Job]:
        """Return up to ``limit`` queued jobs, oldest first."""
        with self._lock:
            queued = [job for job in self._jobs.values() if job.status is JobStatus.QUEUED]
        queued.sort(key=lambda job: job.created_at)
        return queued[: max(limit, 0)]

    def mark_processing(self, job_id: str) -> Job:
        return self.update(
            job_id, status=JobStatus.PROCESSING, started_at=datetime.now(UTC)
        )

    def mark_complete(self, job_id: str, result: Dict[str, Any]) -> Job:
        return self.update(
            job_id,
            status=JobStatus.COMPLETE,
            result=result,
            completed_at=datetime.now(UTC),
        )

    def mark_failed(self, job_id: str, error: str) -> Job:
        return self.update(
            job_id,
            status=JobStatus.FAILED,
            error=error,
            completed_at=datetime.now(UTC),
        )

    def persist(self) -> None:
        if self._path is None:
            return
        with self._lock:
            payload = {
                "version": _STORE_VERSION,
                "jobs": {job_id: _job_to_dict(job) for job_id, job in self._jobs.items()},
            }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")

    def update(self, job_id: str, **changes: Any) -> Job:
        """Apply field changes to a job and persist; unknown ids raise ``KeyError``."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise KeyError(f"Unknown job: {job_id}")
            for name, value in changes.items():
                setattr(job, name, value)
        self.persist()
        return job

    # ------------------------------------------------------------------
    # Internal helpers

    def _load(self, path: Path) -> None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return
        except (OSError, json.JSONDecodeError):
            return
        if not isinstance(data, dict) or data.get("version") != _STORE_VERSION:
            return
        jobs = data.get("jobs")
        if not isinstance(jobs, dict):
            return
        for raw in jobs.values():
            job = _job_from_dict(raw)
            if job is not None:
                self._jobs[job.id] = job


def _job_to_dict(job: Job) -> Dict[str, Any]:
    return {
        "id": job.id,
        "repo_url": job.repo_url,
        "session_id": job.session_id,
        "target_os": job.target_os,
        "status": job.status.value,
        "result": job.result,
        "error": job.error,
        "created_at": _format_time(job.created_at),
        "started_at": _format_time(job.started_at),
        "completed_at": _format_time(job.completed_at),
    }


def _job_from_dict(payload: object) -> Optional[Job]:
    if not isinstance(payload, dict):
        return None
    job_id = payload.get("id")
    repo_url = payload.get("repo_url")
    if not isinstance(job_id, str) or not isinstance(repo_url, str):
        return None
    try:
        status = JobStatus(payload.get("status", JobStatus.QUEUED.value))
    except ValueError:
        return None
    result = payload.get("result")
    created_at = _parse_time(payload.get("created_at")) or datetime.now(UTC)
    return Job(
        id=job_id,
        repo_url=repo_url,
        session_id=_optional_str(payload.get("session_id")),
        target_os=_optional_str(payload.get("target_os")),
        status=status,
        result=result if isinstance(result, dict) else None,
        error=_optional_str(payload.get("error")),
        created_at=created_at,
        started_at=_parse_time(payload.get("started_at")),
        completed_at=_parse_time(payload.get("completed_at")),
    )


def _optional_str(value: object) -> Optional[str]:
    return value if isinstance(value, str) else None


def _format_time(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")


def _parse_time(value: object) -> Optional[datetime]:
    if not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


__all__ = ["Job", "JobStatus", "JobStore"]
