"""GitHub API client for releases and issue comments.

Also reads the Actions run context (repository and event payload) the
workflow exposes through environment variables.
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"


def _auth_headers(token: str) -> dict[str, str]:
    return {
        "Authorization": f"token {token}",
        "Accept": "application/vnd.github+json",
    }


@dataclass
class GitHubContext:
    """The repository and event that triggered the workflow run."""

    owner: str = ""
    repo: str = ""
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> GitHubContext:
        owner, _, repo = os.environ.get("GITHUB_REPOSITORY", "").partition("/")
        payload: dict[str, Any] = {}
        event_path = os.environ.get("GITHUB_EVENT_PATH")
        if event_path and Path(event_path).exists():
            payload = json.loads(Path(event_path).read_text(encoding="utf-8"))
        return cls(owner=owner, repo=repo, payload=payload)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def issue_number(self) -> int | None:
        for key in ("issue", "pull_request"):
            number = (self.payload.get(key) or {}).get("number")
            if number is not None:
                return number
        return self.payload.get("number")

    @property
    def comment_body(self) -> str | None:
        return (self.payload.get("comment") or {}).get("body")


class GitHubClient:
    """Token-authenticated GitHub REST client."""

    def __init__(self, token: str, client: httpx.AsyncClient | None = None) -> None:
        self.client = client or httpx.AsyncClient(base_url=GITHUB_API, timeout=60.0)
        self.client.headers.update(_auth_headers(token))

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def list_releases(self, owner: str, repo: str) -> list[dict]:
        """List releases, newest first."""
        resp = await self.client.get(f"/repos/{owner}/{repo}/releases")
        resp.raise_for_status()
        return resp.json()

    async def list_issue_comments(
        self, owner: str, repo: str, issue_number: int, max_pages: int = 10
    ) -> list[dict]:
        """Fetch all comments on an issue or PR, following Link headers up to max_pages."""
        all_items: list[dict] = []
        url = f"/repos/{owner}/{repo}/issues/{issue_number}/comments"
        params: dict = {"per_page": "100"}

        for _ in range(max_pages):
            resp = await self.client.get(url, params=params)
            resp.raise_for_status()
            items = resp.json()
            if not isinstance(items, list):
                break
            all_items.extend(items)

            next_match = re.search(r'<([^>]+)>;\s*rel="next"', resp.headers.get("Link", ""))
            if not next_match:
                break
            url = next_match.group(1)
            params = {}  # URL already contains params

        return all_items

    async def create_issue_comment(self, owner: str, repo: str, issue_number: int, body: str) -> dict:
        """Post a comment on an issue or PR."""
        resp = await self.client.post(
            f"/repos/{owner}/{repo}/issues/{issue_number}/comments",
            json={"body": body},
        )
        resp.raise_for_status()
        return resp.json()

    async def download(self, url: str) -> httpx.Response:
        """GET an absolute URL (e.g. a release asset), following redirects."""
        return await self.client.get(
            url,
            headers={"Accept": "application/octet-stream"},
            follow_redirects=True,
        )
