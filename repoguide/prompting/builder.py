"""Builds the setup-guide prompt from a template and fetched repository files."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional, Sequence

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from ..models import FetchedFile
from .constants import OS_LABELS, TRUNCATION_MARKER

JSON_KEYS = (
    "projectOverview, prerequisites (array of strings), setupSteps (array of strings), "
    "runningInstructions, configuration, troubleshooting"
)


class PromptBuilder:
    """Assembles the system prompt and the repository file context."""

    TEMPLATE_NAME = "system_prompt.j2"

    def __init__(self, templates_dir: Path | None = None) -> None:
        self.templates_dir = templates_dir or Path(__file__).with_name("templates")
        self._env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            autoescape=False,
            undefined=StrictUndefined,
            keep_trailing_newline=False,
        )

    def system_prompt(self, repo_name: str, target_os: Optional[str] = None) -> str:
        template = self._env.get_template(self.TEMPLATE_NAME)
        os_label = OS_LABELS.get((target_os or "").lower(), "all platforms")
        return template.render(
            repo_name=repo_name,
            os_label=os_label,
            json_keys=JSON_KEYS,
        ).strip()

    @staticmethod
    def files_context(files: Iterable[FetchedFile]) -> str:
        blocks = []
        for fetched in files:
            content = fetched.content
            if fetched.truncated:
                content += TRUNCATION_MARKER
            blocks.append(f"\n\n=== FILE: {fetched.path} ===\n{content}")
        return "\n".join(blocks)

    def build(
        self,
        repo_name: str,
        files: Sequence[FetchedFile],
        target_os: Optional[str] = None,
    ) -> str:
        """Return the complete prompt sent to the model."""
        return (
            self.system_prompt(repo_name, target_os)
            + "\n\n=== REPOSITORY FILES ==="
            + self.files_context(files)
        )


__all__ = ["JSON_KEYS", "PromptBuilder"]
