"""Tests for auditor/direct_client.py and auditor/agents.py."""

from __future__ import annotations

import json
import logging
from unittest.mock import AsyncMock, patch

import pytest

from auditor.agents import MissingApiKeyError, start_agent
from auditor.characters import get_issue_comment_master, get_secure_audit_master
from auditor.core.runtime import AgentRuntime, string_to_uuid
from auditor.db import SqliteDatabaseAdapter
from auditor.direct_client import REPORT_FILENAME, DirectClient
from auditor.models.schemas import Content, ModelProviderName

API_KEYS = {
    ModelProviderName.OPENAI: "sk-openai",
    ModelProviderName.DEEPSEEK: "sk-deepseek",
}


@pytest.fixture
async def client():
    direct_client = DirectClient()
    yield direct_client
    await direct_client.stop()


# ── start_agent ──────────────────────────────────────────────────────


class TestStartAgent:
    async def test_registers_runtime(self, tmp_path, client):
        runtime = await start_agent(get_secure_audit_master(), client, API_KEYS, tmp_path / "store")

        assert client.agents == {runtime.agent_id: runtime}
        assert runtime.agent_id == string_to_uuid("SecureAuditMaster")
        assert runtime.character.username == "SecureAuditMaster"
        assert runtime.clients == []
        assert (tmp_path / "store" / "db.sqlite").exists()

    async def test_provider_selects_api_key(self, tmp_path, client):
        runtime = await start_agent(
            get_secure_audit_master(ModelProviderName.DEEPSEEK), client, API_KEYS, tmp_path
        )
        assert runtime.token == "sk-deepseek"
        assert runtime.model_provider == ModelProviderName.DEEPSEEK

    async def test_missing_api_key_fails(self, tmp_path, client, caplog):
        keys = {ModelProviderName.OPENAI: "sk-openai", ModelProviderName.DEEPSEEK: None}
        with caplog.at_level(logging.ERROR), pytest.raises(MissingApiKeyError):
            await start_agent(get_secure_audit_master(ModelProviderName.DEEPSEEK), client, keys, tmp_path)

        assert client.agents == {}
        assert "SecureAuditMaster" in caplog.text
        assert not (tmp_path / "db.sqlite").exists()

    async def test_failed_start_closes_store(self, tmp_path, client):
        closed = []
        real_close = SqliteDatabaseAdapter.close

        async def tracking_close(self):
            closed.append(self)
            await real_close(self)

        with (
            patch.object(SqliteDatabaseAdapter, "close", tracking_close),
            patch.object(AgentRuntime, "initialize", new=AsyncMock(side_effect=RuntimeError("disk full"))),
            pytest.raises(RuntimeError, match="disk full"),
        ):
            await start_agent(get_secure_audit_master(), client, API_KEYS, tmp_path)

        assert len(closed) == 1
        assert closed[0].file_path == (tmp_path / "db.sqlite").resolve()
        assert client.agents == {}

    async def test_configured_model_per_provider(self, tmp_path, client):
        runtime = await start_agent(
            get_secure_audit_master(ModelProviderName.DEEPSEEK),
            client,
            API_KEYS,
            tmp_path,
            models={ModelProviderName.DEEPSEEK: "deepseek/deepseek-reasoner"},
        )
        assert runtime.model == "deepseek/deepseek-reasoner"


# ── no agent registered ──────────────────────────────────────────────


class TestNoAgent:
    async def test_comment_returns_none(self, client, caplog):
        with caplog.at_level(logging.ERROR):
            assert await client.comment("hello") is None
        assert "Agent not found." in caplog.text

    async def test_audit_returns_none(self, tmp_path, client, caplog):
        with caplog.at_level(logging.ERROR):
            assert await client.audit(tmp_path, ["module a {}"]) is None
        assert "Agent not found." in caplog.text
        assert not (tmp_path / REPORT_FILENAME).exists()


# ── comment / audit ──────────────────────────────────────────────────


class TestDriver:
    async def test_comment_returns_reply_text(self, tmp_path, client, fake_llm):
        await start_agent(get_issue_comment_master(), client, API_KEYS, tmp_path)
        reply = await client.comment("alice: is this safe?")

        assert reply == "## Report\nAll good."
        prompt = fake_llm.await_args.kwargs["prompt"]
        assert "User: alice: is this safe?" in prompt
        assert '"user": "IssueCommentMaster"' in prompt

    async def test_comment_failure_returns_none(self, tmp_path, client, fake_llm, caplog):
        fake_llm.side_effect = RuntimeError("provider down")
        await start_agent(get_issue_comment_master(), client, API_KEYS, tmp_path)

        with caplog.at_level(logging.ERROR):
            assert await client.comment("hi") is None
        assert "Error processing message" in caplog.text

    async def test_audit_sends_one_combined_message(self, tmp_path, client):
        runtime = await start_agent(get_secure_audit_master(), client, API_KEYS, tmp_path)
        codes = ["// filepath: a.move\nA\n", "// filepath: b.move\nB\n", "tests ok"]

        with patch.object(
            DirectClient, "_process_message", new=AsyncMock(return_value=Content(text="report"))
        ) as process:
            reports = await client.audit(tmp_path, codes)

        assert reports == ["report"]
        process.assert_awaited_once()
        assert process.await_args.args == (runtime, "\n\n".join(codes))

    async def test_audit_writes_report_file(self, tmp_path, client, fake_llm):
        await start_agent(get_secure_audit_master(), client, API_KEYS, tmp_path)
        reports = await client.audit(tmp_path, ["module a {}"])

        assert reports == ["## Report\nAll good."]
        assert (tmp_path / REPORT_FILENAME).read_text(encoding="utf-8") == "## Report\nAll good."

    async def test_audit_report_with_code_blocks(self, tmp_path, client, fake_llm):
        report = "## Report\n```move\npublic fun f() {}\n```\nLooks fine."
        fake_llm.return_value = (
            "```json\n"
            + json.dumps({"user": "SecureAuditMaster", "text": report, "action": "NONE"})
            + "\n```"
        )
        await start_agent(get_secure_audit_master(), client, API_KEYS, tmp_path)

        assert await client.audit(tmp_path, ["module a {}"]) == [report]
        assert (tmp_path / REPORT_FILENAME).read_text(encoding="utf-8") == report

    async def test_audit_report_write_failure_keeps_result(self, tmp_path, client, fake_llm):
        await start_agent(get_secure_audit_master(), client, API_KEYS, tmp_path)
        reports = await client.audit(tmp_path / "missing-dir", ["module a {}"])
        assert reports == ["## Report\nAll good."]

    async def test_audit_failure_returns_empty_list(self, tmp_path, client, fake_llm):
        fake_llm.side_effect = RuntimeError("provider down")
        await start_agent(get_secure_audit_master(), client, API_KEYS, tmp_path)
        assert await client.audit(tmp_path, ["module a {}"]) == []

    async def test_reply_is_remembered(self, tmp_path, client, fake_llm):
        runtime = await start_agent(get_issue_comment_master(), client, API_KEYS, tmp_path)
        await client.comment("first")
        await client.comment("second")

        prompt = fake_llm.await_args.kwargs["prompt"]
        assert "User: first" in prompt
        assert "IssueCommentMaster: ## Report" in prompt
        room = string_to_uuid(f"cli-room-{runtime.agent_id}")
        assert await runtime.database_adapter.count_memories(room, "messages") == 4

    async def test_unregister(self, tmp_path, client):
        runtime = await start_agent(get_secure_audit_master(), client, API_KEYS, tmp_path)
        client.unregister_agent(runtime)
        assert client.agents == {}
        await runtime.database_adapter.close()
