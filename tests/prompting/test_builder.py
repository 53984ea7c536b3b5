"""Tests for prompt assembly."""

from __future__ import annotations

from repoguide.models import FetchedFile, RepositoryFileEntry
from repoguide.prompting import PromptBuilder
from repoguide.prompting.constants import TRUNCATION_MARKER


def _fetched(path: str, content: str, truncated: bool = False) -> FetchedFile:
    entry = RepositoryFileEntry(path=path, size=len(content), sha=path, url=path)
    return FetchedFile(entry=entry, content=content, truncated=truncated)


def test_system_prompt_names_repository_and_os() -> None:
    prompt = PromptBuilder().system_prompt("octo/demo", "macos")
    assert "Repository: octo/demo" in prompt
    assert "User OS: macOS" in prompt
    assert "OS-specific commands for macOS" in prompt
    assert "osSpecificNotes for macOS" in prompt
    assert "projectOverview, prerequisites (array of strings)" in prompt


def test_system_prompt_for_all_platforms_omits_os_lines() -> None:
    prompt = PromptBuilder().system_prompt("octo/demo", None)
    assert "User OS: all platforms" in prompt
    assert "osSpecificNotes" not in prompt
    assert "OS-specific commands" not in prompt


def test_files_context_marks_truncated_files() -> None:
    context = PromptBuilder.files_context(
        [_fetched("README.md", "hello"), _fetched("big.txt", "abc", truncated=True)]
    )
    assert "=== FILE: README.md ===\nhello" in context
    assert "=== FILE: big.txt ===\nabc" + TRUNCATION_MARKER in context


def test_build_places_files_after_instructions() -> None:
    prompt = PromptBuilder().build("octo/demo", [_fetched("main.py", "print(1)")], "linux")
    instructions, _, files = prompt.partition("=== REPOSITORY FILES ===")
    assert "User OS: Linux" in instructions
    assert "=== FILE: main.py ===\nprint(1)" in files
