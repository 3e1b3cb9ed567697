"""Shared fixtures for audit agent tests."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from auditor.core.config import Settings
from auditor.github_api import GITHUB_API, GitHubClient, GitHubContext

LLM_REPLY = '```json\n{ "user": "SecureAuditMaster", "text": "## Report\\nAll good.", "action": "NONE" }\n```'


def make_character_data(name: str = "Tester", **overrides: Any) -> dict[str, Any]:
    """Factory helper for a valid character file payload."""
    data: dict[str, Any] = {
        "name": name,
        "system": f"You are {name}.",
        "bio": "",
        "lore": [],
        "messageExamples": [],
        "postExamples": [],
        "topics": [],
        "adjectives": [],
        "clients": [],
        "plugins": [],
        "style": {"all": [], "chat": [], "post": []},
    }
    data.update(overrides)
    return data


def write_json(path: Path, data: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def make_settings(tmp_path: Path, **overrides: Any) -> Settings:
    """Settings rooted at tmp_path, ignoring any .env file."""
    values: dict[str, Any] = {
        "project_path": "project",
        "report_path": "project",
        "sqlite_path": "store",
        "character_path": "",
        "action_type": "audit",
        "mode": "",
        "environment": "development",
        "github_token": "ghp_test",
        "github_workspace": str(tmp_path),
        "openai_api_key": "sk-openai",
        "deepseek_api_key": "sk-deepseek",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_github(handler) -> GitHubClient:
    """GitHubClient whose requests are answered by ``handler(request)``."""
    return GitHubClient(
        "ghp_test",
        client=httpx.AsyncClient(base_url=GITHUB_API, transport=httpx.MockTransport(handler)),
    )


def make_context(comment: str | None = None, number: int = 7) -> GitHubContext:
    payload: dict[str, Any] = {"issue": {"number": number}}
    if comment is not None:
        payload["comment"] = {"body": comment}
    return GitHubContext(owner="octo", repo="move-pkg", payload=payload)


@pytest.fixture
def fake_llm():
    """Replace the model call with a canned JSON reply."""
    with patch("auditor.core.runtime.llm_completion", new=AsyncMock(return_value=LLM_REPLY)) as mock:
        yield mock


@pytest.fixture
def move_project(tmp_path: Path) -> Path:
    """A Move package with two sources, a vendored dependency and test results."""
    project = tmp_path / "project"
    (project / "sources" / "nested").mkdir(parents=True)
    (project / "sources" / "coin.move").write_text("module pkg::coin {}", encoding="utf-8")
    (project / "sources" / "nested" / "vault.move").write_text("module pkg::vault {}", encoding="utf-8")
    (project / "sources" / "README.md").write_text("not move", encoding="utf-8")
    (project / "sources" / "external-repo").mkdir()
    (project / "sources" / "external-repo" / "dep.move").write_text("module dep::x {}", encoding="utf-8")
    (project / "test_results.txt").write_text("Test result: OK. Total tests: 3", encoding="utf-8")
    return project
