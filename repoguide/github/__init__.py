"""GitHub repository access."""

from .client import GITHUB_API_URL, GitHubClient, parse_repo_url

__all__ = ["GITHUB_API_URL", "GitHubClient", "parse_repo_url"]
