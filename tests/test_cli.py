"""CLI parser and command tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from repoguide import cli
from repoguide.cli import _build_parser, main
from repoguide.errors import AnalysisError, AnalysisErrorKind
from repoguide.models import AnalysisResult
from repoguide.stores.jobs import JobStatus, JobStore


class StubOrchestrator:
    calls: list[dict[str, object]] = []
    error: AnalysisError | None = None

    def __init__(self, config) -> None:
        self.config = config

    async def analyze(self, repo_url: str, **kwargs: object) -> AnalysisResult:
        type(self).calls.append({"repo_url": repo_url, **kwargs})
        if type(self).error is not None:
            raise type(self).error
        return AnalysisResult(
            project_overview="Demo app",
            prerequisites=["Python 3.11"],
            setup_steps=["pip install -e ."],
            model="gemini-2.5-flash",
        )


@pytest.fixture(autouse=True)
def stub_orchestrator(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> type[StubOrchestrator]:
    StubOrchestrator.calls = []
    StubOrchestrator.error = None
    monkeypatch.setattr(cli, "Orchestrator", StubOrchestrator)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("GEMINI_API_KEY", "env-key")
    monkeypatch.delenv("REPOGUIDE_MODEL", raising=False)
    return StubOrchestrator


def test_cli_accepts_verbose_before_command() -> None:
    args = _build_parser().parse_args(["--verbose", "analyze", "https://github.com/octo/demo"])
    assert args.verbose is True
    assert args.command == "analyze"


def test_cli_accepts_verbose_after_command() -> None:
    args = _build_parser().parse_args(["drain", "--verbose"])
    assert args.verbose is True
    assert args.command == "drain"


def test_cli_analyze_defaults() -> None:
    args = _build_parser().parse_args(["analyze", "https://github.com/octo/demo"])
    assert args.target_os == "all"
    assert args.model is None
    assert args.as_json is False


def test_cli_rejects_unknown_os() -> None:
    with pytest.raises(SystemExit):
        _build_parser().parse_args(["analyze", "https://github.com/octo/demo", "--os", "beos"])


def test_analyze_prints_markdown(capsys: pytest.CaptureFixture[str]) -> None:
    main(["analyze", "https://github.com/octo/demo.git", "--os", "macos"])
    out = capsys.readouterr().out
    assert out.startswith("# Setup guide: octo/demo (macOS)")
    assert "## Prerequisites\n\n- Python 3.11" in out
    call = StubOrchestrator.calls[0]
    assert call["gemini_key"] == "env-key"
    assert call["target_os"] == "macos"


def test_analyze_prints_json(capsys: pytest.CaptureFixture[str]) -> None:
    main(["analyze", "https://github.com/octo/demo", "--json", "--model", "gemini-x"])
    payload = json.loads(capsys.readouterr().out)
    assert payload["projectOverview"] == "Demo app"
    assert StubOrchestrator.calls[0]["model"] == "gemini-x"


def test_analyze_failure_exits_nonzero(capsys: pytest.CaptureFixture[str]) -> None:
    StubOrchestrator.error = AnalysisError(AnalysisErrorKind.TOO_LARGE, "Repository exceeds 100MB limit")
    with pytest.raises(SystemExit) as excinfo:
        main(["analyze", "https://github.com/octo/huge"])
    assert excinfo.value.code == 1
    assert "too-large" in capsys.readouterr().err


def test_invalid_config_exits_nonzero(tmp_path: Path) -> None:
    (tmp_path / ".repoguide.yml").write_text("- not a mapping\n", encoding="utf-8")
    with pytest.raises(SystemExit) as excinfo:
        main(["analyze", "https://github.com/octo/demo"])
    assert excinfo.value.code == 1


def test_drain_processes_persisted_jobs(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    jobs_file = tmp_path / "jobs.json"
    job = JobStore(jobs_file).create("https://github.com/octo/demo", target_os="linux")

    main(["drain", "--jobs-file", str(jobs_file)])

    assert "Processed 1 queued job(s)" in capsys.readouterr().out
    reloaded = JobStore(jobs_file).get(job.id)
    assert reloaded is not None
    assert reloaded.status is JobStatus.COMPLETE
    assert StubOrchestrator.calls[0]["target_os"] == "linux"
