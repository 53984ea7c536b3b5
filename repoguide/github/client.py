"""Async client for the GitHub REST endpoints the pipeline consumes."""

from __future__ import annotations

import asyncio
import base64
import json
import re
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..config import FetchConfig
from ..errors import AnalysisError, AnalysisErrorKind
from ..logging import get_logger
from ..models import FetchedFile, RepoMetadata, RepoReference, RepositoryFileEntry
from ..stores.kv import KeyValueStore

GITHUB_API_URL = "https://api.github.com"

_REPO_URL_RE = re.compile(r"^https?://github\.com/([^/\s]+)/([^/\s]+?)/?$")


def parse_repo_url(url: str) -> RepoReference:
    """Parse ``https://github.com/<owner>/<repo>`` into a reference."""
    match = _REPO_URL_RE.match((url or "").strip())
    if not match:
        raise AnalysisError(
            AnalysisErrorKind.INVALID_REFERENCE, "Invalid GitHub URL format"
        )
    owner, repo = match.group(1), match.group(2)
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    if not repo:
        raise AnalysisError(
            AnalysisErrorKind.INVALID_REFERENCE, "Invalid GitHub URL format"
        )
    return RepoReference(owner=owner, repo=repo)


class GitHubClient:
    """Lists and reads repository files through the GitHub API.

    The client owns its ``httpx.AsyncClient`` unless one is injected, in
    which case the caller is responsible for closing it.
    """

    def __init__(
        self,
        *,
        config: FetchConfig | None = None,
        store: KeyValueStore | None = None,
        http_client: httpx.AsyncClient | None = None,
        base_url: str = GITHUB_API_URL,
    ) -> None:
        self.config = config or FetchConfig()
        self.store = store
        self.base_url = base_url.rstrip("/")
        self._http = http_client
        self._owns_http = http_client is None
        self.logger = get_logger("github")

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    async def get_repo_metadata(
        self, ref: RepoReference, *, token: Optional[str] = None
    ) -> RepoMetadata:
        url = f"{self.base_url}/repos/{ref.owner}/{ref.repo}"
        data = await self._get_json(url, token=token)
        self.logger.debug(
            "Repository metadata for %s: size=%skB private=%s",
            ref.full_name,
            data.get("size"),
            data.get("private"),
        )
        size = data.get("size")
        return RepoMetadata(
            name=str(data.get("name") or ref.repo),
            full_name=str(data.get("full_name") or ref.full_name),
            size_kb=size if isinstance(size, int) else 0,
            private=bool(data.get("private", False)),
            default_branch=str(data.get("default_branch") or "main"),
            language=data.get("language") if isinstance(data.get("language"), str) else None,
        )

    async def get_repo_tree(
        self, ref: RepoReference, *, token: Optional[str] = None
    ) -> List[RepositoryFileEntry]:
        """Return every blob in the repository at HEAD."""
        cache_key = f"github:tree:{ref.owner}:{ref.repo}"
        cached = self._read_cached_tree(cache_key)
        if cached is not None:
            self.logger.debug("Tree cache hit for %s (%d blobs)", ref.full_name, len(cached))
            return cached

        url = f"{self.base_url}/repos/{ref.owner}/{ref.repo}/git/trees/HEAD"
        data = await self._get_json(url, token=token, params={"recursive": "1"})
        if data.get("truncated"):
            self.logger.warning("Repository tree for %s was truncated by the GitHub API", ref.full_name)

        items = data.get("tree")
        if not isinstance(items, list):
            items = []
        tree = [
            RepositoryFileEntry.from_tree_item(item)
            for item in items
            if isinstance(item, dict) and item.get("type") == "blob"
        ]
        self.logger.info("Listed %d blobs in %s", len(tree), ref.full_name)

        if self.store is not None and self.config.tree_cache_ttl > 0:
            self.store.set(
                cache_key,
                json.dumps([entry.to_tree_item() for entry in tree]),
                ttl=self.config.tree_cache_ttl,
            )
        return tree

    async def fetch_file_contents(
        self,
        ref: RepoReference,
        files: Sequence[RepositoryFileEntry],
        *,
        token: Optional[str] = None,
    ) -> List[FetchedFile]:
        """Fetch blobs in sequential batches; individual failures are dropped."""
        headers = self._headers(token)
        client = self._client()
        batch_size = max(1, self.config.batch_size)
        total_batches = (len(files) + batch_size - 1) // batch_size
        results: List[FetchedFile] = []

        for index in range(0, len(files), batch_size):
            batch = files[index : index + batch_size]
            fetched = await asyncio.gather(
                *(self._fetch_one(client, entry, headers) for entry in batch)
            )
            valid = [item for item in fetched if item is not None]
            self.logger.debug(
                "Batch %d/%d for %s: %d/%d files fetched",
                index // batch_size + 1,
                total_batches,
                ref.full_name,
                len(valid),
                len(batch),
            )
            results.extend(valid)

        self.logger.info(
            "Fetched %d of %d selected files from %s", len(results), len(files), ref.full_name
        )
        return results

    # ------------------------------------------------------------------
    # Internal helpers

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.request_timeout, connect=10.0),
                follow_redirects=True,
            )
        return self._http

    @staticmethod
    def _headers(token: Optional[str]) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": "repoguide",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _get_json(
        self,
        url: str,
        *,
        token: Optional[str],
        params: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        try:
            response = await self._client().get(url, headers=self._headers(token), params=params)
        except httpx.HTTPError as exc:
            raise AnalysisError(
                AnalysisErrorKind.UPSTREAM_ERROR, f"GitHub API request failed: {exc}"
            ) from exc

        if response.status_code == 404:
            raise AnalysisError(
                AnalysisErrorKind.NOT_FOUND_OR_PRIVATE,
                "Repository not found or is private",
                status_code=404,
            )
        if response.status_code in (401, 403):
            raise AnalysisError(
                AnalysisErrorKind.UPSTREAM_ERROR,
                "GitHub API authentication failed. Please check your token.",
                status_code=response.status_code,
                payload=_safe_json(response),
            )
        if not response.is_success:
            raise AnalysisError(
                AnalysisErrorKind.UPSTREAM_ERROR,
                f"GitHub API error: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
                payload=_safe_json(response),
            )

        data = _safe_json(response)
        if not isinstance(data, dict):
            raise AnalysisError(
                AnalysisErrorKind.UPSTREAM_ERROR,
                "GitHub API returned an unexpected payload",
                status_code=response.status_code,
            )
        return data

    async def _fetch_one(
        self,
        client: httpx.AsyncClient,
        entry: RepositoryFileEntry,
        headers: Dict[str, str],
    ) -> Optional[FetchedFile]:
        try:
            response = await client.get(entry.url, headers=headers)
            if not response.is_success:
                self.logger.warning(
                    "Failed to fetch %s: %d %s",
                    entry.path,
                    response.status_code,
                    response.reason_phrase,
                )
                return None
            data = response.json()
            text = base64.b64decode(data["content"]).decode("utf-8")
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
            self.logger.warning("Error fetching %s: %s", entry.path, exc)
            return None

        limit = self.config.max_file_chars
        if len(text) > limit:
            return FetchedFile(entry=entry, content=text[:limit], truncated=True)
        return FetchedFile(entry=entry, content=text)

    def _read_cached_tree(self, key: str) -> Optional[List[RepositoryFileEntry]]:
        if self.store is None:
            return None
        raw = self.store.get(key)
        if not raw:
            return None
        try:
            items = json.loads(raw)
        except json.JSONDecodeError:
            self.logger.warning("Ignoring unreadable cached tree at %s", key)
            return None
        if not isinstance(items, list):
            return None
        return [RepositoryFileEntry.from_tree_item(item) for item in items if isinstance(item, dict)]


def _safe_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


__all__ = ["GITHUB_API_URL", "GitHubClient", "parse_repo_url"]
