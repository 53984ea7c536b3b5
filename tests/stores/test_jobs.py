"""Tests for the job queue store."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from repoguide.stores.jobs import JobStatus, JobStore


def test_create_and_transition() -> None:
    jobs = JobStore()
    job = jobs.create("https://github.com/octo/demo", target_os="linux")
    assert job.status is JobStatus.QUEUED
    assert jobs.get(job.id) is job

    jobs.mark_processing(job.id)
    assert job.status is JobStatus.PROCESSING
    assert job.started_at is not None

    jobs.mark_complete(job.id, {"projectOverview": "X"})
    assert job.status is JobStatus.COMPLETE
    assert job.result == {"projectOverview": "X"}
    assert job.completed_at is not None


def test_mark_failed_records_error() -> None:
    jobs = JobStore()
    job = jobs.create("https://github.com/octo/demo")
    jobs.mark_failed(job.id, "boom")
    assert job.status is JobStatus.FAILED
    assert job.error == "boom"


def test_unknown_job_raises() -> None:
    with pytest.raises(KeyError):
        JobStore().mark_processing("nope")


def test_list_queued_is_oldest_first_and_limited() -> None:
    jobs = JobStore()
    created = [jobs.create(f"https://github.com/octo/repo{i}") for i in range(4)]
    jobs.mark_processing(created[0].id)
    queued = jobs.list_queued(2)
    assert [job.id for job in queued] == [created[1].id, created[2].id]
    assert jobs.list_queued(0) == []


def test_jobs_persist_to_json(tmp_path: Path) -> None:
    path = tmp_path / "state" / "jobs.json"
    jobs = JobStore(path)
    job = jobs.create("https://github.com/octo/demo", session_id="s1")
    jobs.mark_failed(job.id, "too slow")

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["version"] == 1
    assert data["jobs"][job.id]["status"] == "failed"

    reloaded = JobStore(path).get(job.id)
    assert reloaded is not None
    assert reloaded.status is JobStatus.FAILED
    assert reloaded.error == "too slow"
    assert reloaded.session_id == "s1"


def test_corrupt_file_is_ignored(tmp_path: Path) -> None:
    path = tmp_path / "jobs.json"
    path.write_text("{not json", encoding="utf-8")
    assert JobStore(path).list_queued(5) == []


def test_update_applies_arbitrary_fields() -> None:
    jobs = JobStore()
    job = jobs.create("https://github.com/octo/demo")
    jobs.update(job.id, target_os="windows")
    assert job.target_os == "windows"
