"""Render an :class:`AnalysisResult` as a Markdown setup guide."""

from __future__ import annotations

from typing import List, Optional

from .models import AnalysisResult
from .prompting.constants import OS_LABELS, SECTION_TITLES


def render_markdown(
    result: AnalysisResult, *, repo_name: Optional[str] = None, target_os: Optional[str] = None
) -> str:
    """Return a Markdown document with one section per guide field."""
    lines: List[str] = []
    title = f"Setup guide: {repo_name}" if repo_name else "Setup guide"
    if target_os and target_os in OS_LABELS:
        title += f" ({OS_LABELS[target_os]})"
    lines.append(f"# {title}")

    _section(lines, SECTION_TITLES["projectOverview"], result.project_overview)
    _list_section(lines, SECTION_TITLES["prerequisites"], result.prerequisites, ordered=False)
    _list_section(lines, SECTION_TITLES["setupSteps"], result.setup_steps, ordered=True)
    _section(lines, SECTION_TITLES["runningInstructions"], result.running_instructions)
    _section(lines, SECTION_TITLES["configuration"], result.configuration)
    _section(lines, SECTION_TITLES["troubleshooting"], result.troubleshooting)
    if result.os_specific_notes:
        _section(lines, SECTION_TITLES["osSpecificNotes"], result.os_specific_notes)
    if result.model:
        lines.extend(["", f"_Generated with {result.model}_"])
    return "\n".join(lines) + "\n"


def _section(lines: List[str], title: str, body: str) -> None:
    lines.extend(["", f"## {title}", "", body.strip()])


def _list_section(lines: List[str], title: str, items: List[str], *, ordered: bool) -> None:
    lines.extend(["", f"## {title}", ""])
    if not items:
        lines.append("_None listed._")
        return
    for index, item in enumerate(items, start=1):
        bullet = f"{index}." if ordered else "-"
        lines.append(f"{bullet} {item.strip()}")


__all__ = ["render_markdown"]
