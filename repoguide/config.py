"""Configuration loading for repoguide (.repoguide.yml plus environment)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

CONFIG_FILENAME = ".repoguide.yml"

DEFAULT_FALLBACK_MODELS: tuple[str, ...] = (
    "gemini-2.5-flash",
    "gemini-2.0-flash",
    "gemini-1.5-flash",
)


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class SelectionConfig:
    """Scoring weights and token budget for file selection."""

    token_budget: int = 950_000
    root_weight: float = 100.0
    entry_point_weight: float = 90.0
    config_weight: float = 80.0
    documentation_weight: float = 70.0
    source_weight: float = 60.0
    depth_penalty: float = 10.0
    size_penalty: float = 5.0
    bytes_per_token: float = 3.5
    binary_size_limit: int = 1024 * 1024


@dataclass
class FetchConfig:
    """Repository host access settings."""

    batch_size: int = 50
    max_file_chars: int = 10_000
    request_timeout: float = 30.0
    tree_cache_ttl: int = 3600


@dataclass
class LLMConfig:
    """Model selection, retry and timeout settings."""

    model: Optional[str] = None
    fallback_models: List[str] = field(default_factory=lambda: list(DEFAULT_FALLBACK_MODELS))
    max_attempts: int = 3
    request_timeout: float = 60.0
    backoff_base: float = 1.0
    model_cache_ttl: int = 86_400
    temperature: float = 0.3
    max_output_tokens: int = 8192


@dataclass
class LimitsConfig:
    """Size ceilings, queue routing and pooled quota."""

    max_repo_mb: float = 100.0
    queue_threshold_mb: float = 20.0
    requests_per_minute: int = 5
    requests_per_day: int = 20
    session_ttl: int = 86_400
    session_max_idle_days: int = 7
    job_batch_size: int = 5


@dataclass
class SecretsConfig:
    """Credentials resolved from the environment only."""

    gemini_api_key: Optional[str] = None
    github_token: Optional[str] = None
    cron_secret: Optional[str] = None
    session_key: Optional[str] = None


@dataclass
class RepoGuideConfig:
    """Represents the settings defined in .repoguide.yml and the environment."""

    root: Path
    selection: SelectionConfig = field(default_factory=SelectionConfig)
    fetch: FetchConfig = field(default_factory=FetchConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    secrets: SecretsConfig = field(default_factory=SecretsConfig)


ENV_GEMINI_KEY = "GEMINI_API_KEY"
ENV_MODEL = "REPOGUIDE_MODEL"
ENV_GITHUB_TOKEN = "GITHUB_TOKEN"
ENV_CRON_SECRET = "CRON_SECRET"
ENV_SESSION_KEY = "REPOGUIDE_SESSION_KEY"


def load_config(
    config_path: Path | None = None, *, environ: Mapping[str, str] | None = None
) -> RepoGuideConfig:
    """Load configuration from disk and overlay environment settings."""
    env = os.environ if environ is None else environ
    config_file = _resolve_config_path(config_path or Path.cwd())
    root = config_file.parent.resolve()

    data: Dict[str, Any] = {}
    if config_file.exists():
        data = _read_config(config_file)

    selection = _build_selection(_as_dict(data.get("selection")))
    fetch = _build_fetch(_as_dict(data.get("fetch")))
    llm = _build_llm(_as_dict(data.get("llm")))
    limits = _build_limits(_as_dict(data.get("limits")))

    env_model = env.get(ENV_MODEL)
    if env_model:
        llm.model = env_model

    secrets = SecretsConfig(
        gemini_api_key=env.get(ENV_GEMINI_KEY) or None,
        github_token=env.get(ENV_GITHUB_TOKEN) or None,
        cron_secret=env.get(ENV_CRON_SECRET) or None,
        session_key=env.get(ENV_SESSION_KEY) or None,
    )

    return RepoGuideConfig(
        root=root,
        selection=selection,
        fetch=fetch,
        llm=llm,
        limits=limits,
        secrets=secrets,
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the root")
    return loaded


def _build_selection(data: Dict[str, Any]) -> SelectionConfig:
    defaults = SelectionConfig()
    return SelectionConfig(
        token_budget=_as_int(data.get("token_budget"), defaults.token_budget),
        root_weight=_as_float(data.get("root_weight"), defaults.root_weight),
        entry_point_weight=_as_float(
            data.get("entry_point_weight"), defaults.entry_point_weight
        ),
        config_weight=_as_float(data.get("config_weight"), defaults.config_weight),
        documentation_weight=_as_float(
            data.get("documentation_weight"), defaults.documentation_weight
        ),
        source_weight=_as_float(data.get("source_weight"), defaults.source_weight),
        depth_penalty=_as_float(data.get("depth_penalty"), defaults.depth_penalty),
        size_penalty=_as_float(data.get("size_penalty"), defaults.size_penalty),
        bytes_per_token=_as_float(data.get("bytes_per_token"), defaults.bytes_per_token),
        binary_size_limit=_as_int(data.get("binary_size_limit"), defaults.binary_size_limit),
    )


def _build_fetch(data: Dict[str, Any]) -> FetchConfig:
    defaults = FetchConfig()
    return FetchConfig(
        batch_size=max(1, _as_int(data.get("batch_size"), defaults.batch_size)),
        max_file_chars=_as_int(data.get("max_file_chars"), defaults.max_file_chars),
        request_timeout=_as_float(data.get("request_timeout"), defaults.request_timeout),
        tree_cache_ttl=_as_int(data.get("tree_cache_ttl"), defaults.tree_cache_ttl),
    )


def _build_llm(data: Dict[str, Any]) -> LLMConfig:
    defaults = LLMConfig()
    fallback_models = _as_str_list(data.get("fallback_models")) or defaults.fallback_models
    return LLMConfig(
        model=_as_str(data.get("model")),
        fallback_models=fallback_models,
        max_attempts=max(1, _as_int(data.get("max_attempts"), defaults.max_attempts)),
        request_timeout=_as_float(data.get("request_timeout"), defaults.request_timeout),
        backoff_base=_as_float(data.get("backoff_base"), defaults.backoff_base),
        model_cache_ttl=_as_int(data.get("model_cache_ttl"), defaults.model_cache_ttl),
        temperature=_as_float(data.get("temperature"), defaults.temperature),
        max_output_tokens=_as_int(data.get("max_output_tokens"), defaults.max_output_tokens),
    )


def _build_limits(data: Dict[str, Any]) -> LimitsConfig:
    defaults = LimitsConfig()
    return LimitsConfig(
        max_repo_mb=_as_float(data.get("max_repo_mb"), defaults.max_repo_mb),
        queue_threshold_mb=_as_float(
            data.get("queue_threshold_mb"), defaults.queue_threshold_mb
        ),
        requests_per_minute=_as_int(
            data.get("requests_per_minute"), defaults.requests_per_minute
        ),
        requests_per_day=_as_int(data.get("requests_per_day"), defaults.requests_per_day),
        session_ttl=_as_int(data.get("session_ttl"), defaults.session_ttl),
        session_max_idle_days=_as_int(
            data.get("session_max_idle_days"), defaults.session_max_idle_days
        ),
        job_batch_size=_as_int(data.get("job_batch_size"), defaults.job_batch_size),
    )


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    return str(value) if isinstance(value, (str, int, float)) and str(value) else None


def _as_float(value: Any, default: float) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return default
    return default


def _as_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return default
    return default


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "DEFAULT_FALLBACK_MODELS",
    "FetchConfig",
    "LLMConfig",
    "LimitsConfig",
    "RepoGuideConfig",
    "SecretsConfig",
    "SelectionConfig",
    "load_config",
]
