"""In-memory GitHub API served through ``httpx.MockTransport``."""

from __future__ import annotations

import base64
import hashlib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

import httpx

from repoguide.config import FetchConfig
from repoguide.github.client import GITHUB_API_URL, GitHubClient
from repoguide.stores.kv import KeyValueStore


@dataclass
class FakeRepository:
    """A public repository with a flat set of text files."""

    owner: str = "octo"
    name: str = "demo"
    size_kb: int = 120
    private: bool = False
    files: Dict[str, str] = field(default_factory=dict)
    sizes: Dict[str, Optional[int]] = field(default_factory=dict)
    failing: Set[str] = field(default_factory=set)
    truncated: bool = False

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    def add_file(self, path: str, content: str, *, size: Optional[int] = None) -> None:
        self.files[path] = content
        if size is not None:
            self.sizes[path] = size

    def sha(self, path: str) -> str:
        return hashlib.sha1(path.encode("utf-8")).hexdigest()

    def tree_items(self) -> List[Dict[str, Any]]:
        items = []
        for path, content in self.files.items():
            items.append(
                {
                    "path": path,
                    "mode": "100644",
                    "type": "blob",
                    "sha": self.sha(path),
                    "size": self.sizes.get(path, len(content.encode("utf-8"))),
                    "url": f"{GITHUB_API_URL}/repos/{self.full_name}/git/blobs/{self.sha(path)}",
                }
            )
        items.append(
            {
                "path": "src",
                "mode": "040000",
                "type": "tree",
                "sha": "0" * 40,
                "url": f"{GITHUB_API_URL}/repos/{self.full_name}/git/trees/{'0' * 40}",
            }
        )
        return items


class FakeGitHub:
    """Routes GitHub REST requests to :class:`FakeRepository` instances."""

    def __init__(self, *repositories: FakeRepository) -> None:
        self.repositories = {repo.full_name: repo for repo in repositories}
        self.requests: List[httpx.Request] = []
        self.status_override: Optional[int] = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status_override is not None:
            return httpx.Response(self.status_override, json={"message": "overridden"})

        parts = request.url.path.strip("/").split("/")
        if len(parts) < 3 or parts[0] != "repos":
            return httpx.Response(404, json={"message": "Not Found"})
        repo = self.repositories.get(f"{parts[1]}/{parts[2]}")
        if repo is None:
            return httpx.Response(404, json={"message": "Not Found"})

        rest = parts[3:]
        if not rest:
            return httpx.Response(
                200,
                json={
                    "name": repo.name,
                    "full_name": repo.full_name,
                    "size": repo.size_kb,
                    "private": repo.private,
                    "default_branch": "main",
                    "language": "Python",
                },
            )
        if rest[:2] == ["git", "trees"]:
            return httpx.Response(
                200, json={"sha": "HEAD", "tree": repo.tree_items(), "truncated": repo.truncated}
            )
        if rest[:2] == ["git", "blobs"] and len(rest) == 3:
            for path, content in repo.files.items():
                if repo.sha(path) != rest[2]:
                    continue
                if path in repo.failing:
                    return httpx.Response(500, json={"message": "Server Error"})
                encoded = base64.b64encode(content.encode("utf-8")).decode("ascii")
                return httpx.Response(
                    200, json={"sha": rest[2], "encoding": "base64", "content": encoded}
                )
        return httpx.Response(404, json={"message": "Not Found"})

    def requests_to(self, suffix: str) -> List[httpx.Request]:
        return [request for request in self.requests if request.url.path.endswith(suffix)]

    def client(
        self, *, config: FetchConfig | None = None, store: KeyValueStore | None = None
    ) -> GitHubClient:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        return GitHubClient(config=config, store=store, http_client=http_client)


def sample_repository() -> FakeRepository:
    repo = FakeRepository()
    repo.add_file("README.md", "# Demo\n\nRun `make dev` to start.\n")
    repo.add_file("package.json", '{"name": "demo", "scripts": {"dev": "vite"}}\n')
    repo.add_file("src/index.ts", "export const main = () => console.log('hi');\n")
    repo.add_file("src/utils/format.ts", "export const fmt = (v: string) => v.trim();\n")
    repo.add_file("assets/logo.png", "not really a png")
    repo.add_file("dist/app.min.js", "var a=1;")
    return repo


__all__ = ["FakeGitHub", "FakeRepository", "sample_repository"]
