"""Core data models shared across repoguide components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

OVERVIEW_PLACEHOLDER = "No overview provided"
RUNNING_PLACEHOLDER = "No running instructions provided"
CONFIGURATION_PLACEHOLDER = "No configuration details provided"
TROUBLESHOOTING_PLACEHOLDER = "No troubleshooting information provided"


@dataclass(frozen=True)
class RepoReference:
    """Owner/name pair parsed from a repository URL."""

    owner: str
    repo: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass
class RepoMetadata:
    """Subset of the repository metadata the pipeline relies on."""

    name: str
    full_name: str
    size_kb: int
    private: bool
    default_branch: str = "main"
    language: Optional[str] = None

    @property
    def size_mb(self) -> float:
        return self.size_kb / 1024


@dataclass(frozen=True)
class RepositoryFileEntry:
    """One blob in a repository's flat tree listing."""

    path: str
    size: Optional[int]
    sha: str
    url: str
    type: str = "blob"
    mode: str = "100644"

    @classmethod
    def from_tree_item(cls, item: Dict[str, Any]) -> "RepositoryFileEntry":
        size = item.get("size")
        return cls(
            path=str(item.get("path", "")),
            size=size if isinstance(size, int) and not isinstance(size, bool) else None,
            sha=str(item.get("sha", "")),
            url=str(item.get("url", "")),
            type=str(item.get("type", "blob")),
            mode=str(item.get("mode", "100644")),
        )

    def to_tree_item(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "size": self.size,
            "sha": self.sha,
            "url": self.url,
            "type": self.type,
            "mode": self.mode,
        }


@dataclass(frozen=True)
class ScoredFile:
    """A tree entry paired with its relevance score and estimated token cost."""

    entry: RepositoryFileEntry
    score: float
    estimated_tokens: int


@dataclass(frozen=True)
class FetchedFile:
    """A tree entry with its decoded text content, capped at the per-file ceiling."""

    entry: RepositoryFileEntry
    content: str
    truncated: bool = False

    @property
    def path(self) -> str:
        return self.entry.path


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    RETRYABLE_ERROR = "retryable-error"
    FATAL_ERROR = "fatal-error"
    MODEL_UNAVAILABLE = "model-unavailable"


@dataclass
class ModelCallAttempt:
    """One call against one candidate model; kept as an in-memory log."""

    model: str
    attempt: int
    outcome: AttemptOutcome
    elapsed: float
    error_kind: Optional[str] = None
    message: Optional[str] = None


@dataclass
class AnalysisResult:
    """Structured setup guide produced for a repository."""

    project_overview: str = OVERVIEW_PLACEHOLDER
    prerequisites: List[str] = field(default_factory=list)
    setup_steps: List[str] = field(default_factory=list)
    running_instructions: str = RUNNING_PLACEHOLDER
    configuration: str = CONFIGURATION_PLACEHOLDER
    troubleshooting: str = TROUBLESHOOTING_PLACEHOLDER
    os_specific_notes: Optional[str] = None
    model: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialise using the camelCase keys the model and API clients use."""
        payload: Dict[str, Any] = {
            "projectOverview": self.project_overview,
            "prerequisites": list(self.prerequisites),
            "setupSteps": list(self.setup_steps),
            "runningInstructions": self.running_instructions,
            "configuration": self.configuration,
            "troubleshooting": self.troubleshooting,
        }
        if self.os_specific_notes:
            payload["osSpecificNotes"] = self.os_specific_notes
        if self.model:
            payload["model"] = self.model
        return payload

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "AnalysisResult":
        return cls(
            project_overview=_text_or(payload.get("projectOverview"), OVERVIEW_PLACEHOLDER),
            prerequisites=_string_list(payload.get("prerequisites")),
            setup_steps=_string_list(payload.get("setupSteps")),
            running_instructions=_text_or(
                payload.get("runningInstructions"), RUNNING_PLACEHOLDER
            ),
            configuration=_text_or(payload.get("configuration"), CONFIGURATION_PLACEHOLDER),
            troubleshooting=_text_or(
                payload.get("troubleshooting"), TROUBLESHOOTING_PLACEHOLDER
            ),
            os_specific_notes=_optional_text(payload.get("osSpecificNotes")),
            model=_optional_text(payload.get("model")),
        )


def _text_or(value: Any, placeholder: str) -> str:
    if not value:
        return placeholder
    if isinstance(value, str):
        return value.strip() or placeholder
    if isinstance(value, (list, tuple)):
        joined = "\n".join(str(item) for item in value if item)
        return joined or placeholder
    return str(value)


def _optional_text(value: Any) -> Optional[str]:
    if not value:
        return None
    text = value if isinstance(value, str) else str(value)
    return text.strip() or None


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item if isinstance(item, str) else str(item) for item in value if item is not None]


__all__ = [
    "AnalysisResult",
    "AttemptOutcome",
    "CONFIGURATION_PLACEHOLDER",
    "FetchedFile",
    "ModelCallAttempt",
    "OVERVIEW_PLACEHOLDER",
    "RUNNING_PLACEHOLDER",
    "RepoMetadata",
    "RepoReference",
    "RepositoryFileEntry",
    "ScoredFile",
    "TROUBLESHOOTING_PLACEHOLDER",
]
