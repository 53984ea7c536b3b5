"""Shared constants for setup-guide prompting and rendering."""

from __future__ import annotations

SUPPORTED_OS: tuple[str, ...] = ("windows", "macos", "linux")

OS_LABELS: dict[str, str] = {
    "windows": "Windows",
    "macos": "macOS",
    "linux": "Linux",
}

SECTION_TITLES: dict[str, str] = {
    "projectOverview": "Project Overview",
    "prerequisites": "Prerequisites",
    "setupSteps": "Setup Steps",
    "runningInstructions": "Running the Project",
    "configuration": "Configuration",
    "troubleshooting": "Troubleshooting",
    "osSpecificNotes": "OS-Specific Notes",
}

TRUNCATION_MARKER = "\n... (truncated for brevity)"


__all__ = ["OS_LABELS", "SECTION_TITLES", "SUPPORTED_OS", "TRUNCATION_MARKER"]
