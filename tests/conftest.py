from __future__ import annotations

from pathlib import Path

import pytest

from repoguide.config import RepoGuideConfig, load_config
from repoguide.stores.kv import MemoryStore
from tests._fixtures.github_stub import FakeGitHub, FakeRepository, sample_repository
from tests._fixtures.model_stub import RecordingSleep


@pytest.fixture
def config(tmp_path: Path) -> RepoGuideConfig:
    """Default configuration isolated from the caller's environment."""
    return load_config(tmp_path, environ={})


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def repository() -> FakeRepository:
    return sample_repository()


@pytest.fixture
def github(repository: FakeRepository) -> FakeGitHub:
    return FakeGitHub(repository)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()
