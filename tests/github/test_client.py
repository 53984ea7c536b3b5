"""Tests for the GitHub API client."""

from __future__ import annotations

import asyncio
import base64

import httpx
import pytest

from repoguide.config import FetchConfig
from repoguide.errors import AnalysisError, AnalysisErrorKind
from repoguide.github import GitHubClient, parse_repo_url
from repoguide.models import RepoReference, RepositoryFileEntry
from repoguide.stores.kv import MemoryStore
from tests._fixtures.github_stub import FakeGitHub, FakeRepository

REF = RepoReference(owner="octo", repo="demo")


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("https://github.com/octo/demo", ("octo", "demo")),
        ("https://github.com/octo/demo/", ("octo", "demo")),
        ("https://github.com/octo/demo.git", ("octo", "demo")),
        ("http://github.com/some-org/some.repo", ("some-org", "some.repo")),
    ],
)
def test_parse_repo_url(url: str, expected: tuple[str, str]) -> None:
    ref = parse_repo_url(url)
    assert (ref.owner, ref.repo) == expected


@pytest.mark.parametrize(
    "url",
    [
        "",
        "https://gitlab.com/octo/demo",
        "https://github.com/octo",
        "https://github.com/octo/demo/tree/main",
        "not a url",
    ],
)
def test_parse_repo_url_rejects_invalid(url: str) -> None:
    with pytest.raises(AnalysisError) as excinfo:
        parse_repo_url(url)
    assert excinfo.value.kind is AnalysisErrorKind.INVALID_REFERENCE


@pytest.mark.asyncio
async def test_metadata_reports_size_in_megabytes(github: FakeGitHub, repository: FakeRepository) -> None:
    repository.size_kb = 30 * 1024
    metadata = await github.client().get_repo_metadata(REF)
    assert metadata.full_name == "octo/demo"
    assert metadata.size_mb == pytest.approx(30.0)
    assert metadata.private is False


@pytest.mark.asyncio
async def test_missing_repository_maps_to_not_found(github: FakeGitHub) -> None:
    with pytest.raises(AnalysisError) as excinfo:
        await github.client().get_repo_metadata(RepoReference(owner="octo", repo="missing"))
    assert excinfo.value.kind is AnalysisErrorKind.NOT_FOUND_OR_PRIVATE
    assert excinfo.value.status_code == 404


@pytest.mark.asyncio
async def test_auth_failure_maps_to_upstream_error(github: FakeGitHub) -> None:
    github.status_override = 403
    with pytest.raises(AnalysisError) as excinfo:
        await github.client().get_repo_metadata(REF)
    assert excinfo.value.kind is AnalysisErrorKind.UPSTREAM_ERROR
    assert "authentication failed" in excinfo.value.message


@pytest.mark.asyncio
async def test_token_is_sent_as_bearer(github: FakeGitHub) -> None:
    await github.client().get_repo_metadata(REF, token="ghp_secret")
    request = github.requests[-1]
    assert request.headers["Authorization"] == "Bearer ghp_secret"
    assert request.headers["Accept"] == "application/vnd.github.v3+json"


@pytest.mark.asyncio
async def test_tree_lists_blobs_only(github: FakeGitHub, repository: FakeRepository) -> None:
    tree = await github.client().get_repo_tree(REF)
    assert {entry.path for entry in tree} == set(repository.files)
    assert all(entry.type == "blob" for entry in tree)
    assert github.requests[-1].url.params["recursive"] == "1"


@pytest.mark.asyncio
async def test_tree_is_cached_in_store(github: FakeGitHub) -> None:
    store = MemoryStore()
    first = await github.client(store=store).get_repo_tree(REF)
    second = await github.client(store=store).get_repo_tree(REF)
    assert first == second
    assert len(github.requests_to("/git/trees/HEAD")) == 1
    assert store.get("github:tree:octo:demo") is not None


@pytest.mark.asyncio
async def test_fetch_drops_failed_files(github: FakeGitHub, repository: FakeRepository) -> None:
    repository.failing.add("package.json")
    client = github.client()
    tree = await client.get_repo_tree(REF)
    fetched = await client.fetch_file_contents(REF, tree)
    paths = {item.path for item in fetched}
    assert "package.json" not in paths
    assert "README.md" in paths
    readme = next(item for item in fetched if item.path == "README.md")
    assert readme.content == repository.files["README.md"]


@pytest.mark.asyncio
async def test_fetch_truncates_long_files(github: FakeGitHub, repository: FakeRepository) -> None:
    repository.add_file("big.txt", "x" * 50)
    client = github.client(config=FetchConfig(max_file_chars=10))
    tree = [entry for entry in await client.get_repo_tree(REF) if entry.path == "big.txt"]
    (fetched,) = await client.fetch_file_contents(REF, tree)
    assert fetched.content == "x" * 10
    assert fetched.truncated is True


@pytest.mark.asyncio
async def test_fetch_runs_in_batches(github: FakeGitHub) -> None:
    repo = FakeRepository(name="wide")
    for index in range(7):
        repo.add_file(f"file{index}.txt", f"content {index}")
    github.repositories[repo.full_name] = repo
    ref = RepoReference(owner="octo", repo="wide")
    client = github.client(config=FetchConfig(batch_size=3))
    tree = await client.get_repo_tree(ref)
    fetched = await client.fetch_file_contents(ref, tree)
    assert len(fetched) == 7
    assert [item.path for item in fetched] == [entry.path for entry in tree]


@pytest.mark.asyncio
async def test_fetch_bounds_concurrency_and_keeps_successes() -> None:
    entries = [
        RepositoryFileEntry(
            path=f"src/file{index}.py",
            size=10,
            sha=f"sha{index}",
            url=f"https://api.github.com/repos/octo/demo/git/blobs/{index}",
        )
        for index in range(12)
    ]
    in_flight = 0
    peak = 0

    async def handler(request: httpx.Request) -> httpx.Response:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        index = int(request.url.path.rsplit("/", 1)[-1])
        if index % 4 == 3:
            return httpx.Response(404, json={"message": "Not Found"})
        content = base64.b64encode(f"print({index})".encode()).decode()
        return httpx.Response(200, json={"content": content, "encoding": "base64"})

    client = GitHubClient(
        config=FetchConfig(batch_size=5),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    fetched = await client.fetch_file_contents(REF, entries)

    assert 1 < peak <= 5
    assert len(fetched) == 9
    paths = [item.path for item in fetched]
    assert paths == [entry.path for entry in entries if int(entry.sha[3:]) % 4 != 3]
    assert "src/file3.py" not in paths
    assert fetched[0].content == "print(0)"


@pytest.mark.asyncio
async def test_network_errors_map_to_upstream_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = GitHubClient(http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    with pytest.raises(AnalysisError) as excinfo:
        await client.get_repo_metadata(REF)
    assert excinfo.value.kind is AnalysisErrorKind.UPSTREAM_ERROR
