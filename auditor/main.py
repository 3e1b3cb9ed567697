"""Action entry point: audit a Move package or answer an issue thread.

Decision logic, once per run:
    1. In production without SQLITE_PATH, fetch the store snapshot from the
       latest release (soft-fail: a fresh store is used otherwise).
    2. With PROJECT_PATH and GITHUB_TOKEN, run the ACTION_TYPE flow:
       "audit" posts a security report, "comment" replies to the thread.
    3. Otherwise MODE=release starts the learning persona locally.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import re
import sys
from collections.abc import Sequence
from pathlib import Path

from auditor.agents import start_agent
from auditor.assets import download_asset
from auditor.characters import (
    get_issue_comment_master,
    get_learning_audit_master,
    get_secure_audit_master,
    load_characters,
)
from auditor.core.config import Settings, settings as default_settings
from auditor.core.llm import default_model
from auditor.db import DB_FILENAME
from auditor.direct_client import DirectClient
from auditor.github_api import GitHubClient, GitHubContext
from auditor.models.schemas import Character, ModelProviderName

logger = logging.getLogger(__name__)

MOVE_EXTENSIONS = [".move"]
TEST_RESULTS_FILENAME = "test_results.txt"
EXCLUDED_DIRS = {"external-repo", ".git", ".github"}

# e.g. "eliza audit model=deepseek"
TRIGGER_PATTERN = re.compile(r"audit model=(openai|deepseek)")


class FlowOutcome(str, enum.Enum):
    POSTED = "posted"  # reply generated and posted
    STARTED = "started"  # agents running, nothing to post
    SKIPPED = "skipped"  # nothing to do
    FAILED = "failed"  # logged, nothing posted


def read_files_from_directory(
    directory: Path,
    extensions: Sequence[str],
    relative_to: Path | None = None,
) -> list[str]:
    """Read matching files below ``directory``, each prefixed with its path."""
    base = relative_to or Path.cwd()
    code: list[str] = []
    for path in sorted(Path(directory).iterdir()):
        if path.is_dir():
            if path.name not in EXCLUDED_DIRS:
                code.extend(read_files_from_directory(path, extensions, base))
        elif path.suffix in extensions:
            try:
                relative = path.relative_to(base)
            except ValueError:
                relative = path
            code.append(f"// filepath: {relative}\n{path.read_text(encoding='utf-8')}\n")
    return code


def get_model_from_trigger_comment(comment_body: str | None) -> ModelProviderName | None:
    """Pick the model provider named in the triggering comment, if any."""
    if not comment_body:
        logger.error("Trigger comment not found.")
        return None

    match = TRIGGER_PATTERN.search(comment_body.strip().lower())
    return ModelProviderName(match.group(1)) if match else None


async def post_comment(github: GitHubClient, context: GitHubContext, comment: str) -> bool:
    try:
        await github.create_issue_comment(context.owner, context.repo, context.issue_number, comment)
        return True
    except Exception:
        logger.exception("Error posting comment")
        return False


def provider_api_keys(settings: Settings) -> dict[ModelProviderName, str | None]:
    return {
        ModelProviderName.OPENAI: settings.openai_api_key or None,
        ModelProviderName.DEEPSEEK: settings.deepseek_api_key or None,
    }


def provider_models(settings: Settings) -> dict[ModelProviderName, str]:
    return {provider: default_model(provider, settings) for provider in ModelProviderName}


async def load_and_start_agents(
    characters: Sequence[Character],
    direct_client: DirectClient,
    sqlite_dir: Path,
    settings: Settings,
) -> None:
    api_keys = provider_api_keys(settings)
    models = provider_models(settings)
    for character in characters:
        await start_agent(character, direct_client, api_keys, sqlite_dir, models=models)


async def run_audit_flow(
    settings: Settings,
    github: GitHubClient,
    context: GitHubContext,
    direct_client: DirectClient,
    model: ModelProviderName | None,
) -> FlowOutcome:
    provider = model or ModelProviderName.OPENAI
    characters: list[Character] = []
    if settings.character_path:
        characters = load_characters(settings.character_path, provider, base_dir=settings.base_dir)
    if not characters:
        characters = [get_secure_audit_master(provider)]
    await load_and_start_agents(characters, direct_client, settings.sqlite_dir, settings)

    project_dir = settings.project_dir
    try:
        test_results = (project_dir / TEST_RESULTS_FILENAME).read_text(encoding="utf-8")
        codes = read_files_from_directory(project_dir / "sources", MOVE_EXTENSIONS, settings.base_dir)
        report = await direct_client.audit(settings.report_dir, [*codes, test_results])
    except Exception:
        logger.exception("Error processing audit")
        return FlowOutcome.FAILED

    if not report:
        logger.error("No report generated")
        return FlowOutcome.FAILED

    posted = await post_comment(github, context, "\n".join(report))
    return FlowOutcome.POSTED if posted else FlowOutcome.FAILED


async def run_comment_flow(
    settings: Settings,
    github: GitHubClient,
    context: GitHubContext,
    direct_client: DirectClient,
    model: ModelProviderName | None,
) -> FlowOutcome:
    issue_comments = await github.list_issue_comments(context.owner, context.repo, context.issue_number)
    comment_body = "\n\n".join(
        f"{(c.get('user') or {}).get('login')}: {c.get('body')}" for c in issue_comments
    )
    if not comment_body:
        logger.error("No comments found on #%s", context.issue_number)
        return FlowOutcome.SKIPPED

    await load_and_start_agents(
        [get_issue_comment_master(model or ModelProviderName.OPENAI)],
        direct_client,
        settings.sqlite_dir,
        settings,
    )
    response = await direct_client.comment(comment_body)
    if not response:
        logger.error("No comment generated")
        return FlowOutcome.FAILED

    posted = await post_comment(github, context, response)
    return FlowOutcome.POSTED if posted else FlowOutcome.FAILED


async def run_release_flow(settings: Settings, direct_client: DirectClient) -> FlowOutcome:
    """Start the learning persona on the local store, without GitHub."""
    await load_and_start_agents([get_learning_audit_master()], direct_client, Path("./"), settings)
    return FlowOutcome.STARTED


async def start_agents(
    settings: Settings | None = None,
    context: GitHubContext | None = None,
    github: GitHubClient | None = None,
    direct_client: DirectClient | None = None,
) -> FlowOutcome:
    settings = settings or default_settings
    context = context or GitHubContext.from_env()
    direct_client = direct_client or DirectClient()
    owns_client = github is None and bool(settings.github_token)
    if owns_client:
        github = GitHubClient(settings.github_token)

    try:
        if not settings.sqlite_path and settings.is_production and settings.github_token:
            settings.sqlite_dir.mkdir(parents=True, exist_ok=True)
            await download_asset(
                context.full_name,
                DB_FILENAME,
                settings.sqlite_dir / DB_FILENAME,
                settings.github_token,
                github=github,
            )

        if settings.project_dir and settings.github_token:
            model = get_model_from_trigger_comment(context.comment_body)

            if settings.action_type == "audit":
                return await run_audit_flow(settings, github, context, direct_client, model)
            if settings.action_type == "comment":
                return await run_comment_flow(settings, github, context, direct_client, model)

            logger.error("Unknown action type: %s", settings.action_type)
            return FlowOutcome.SKIPPED

        if settings.mode == "release":
            return await run_release_flow(settings, direct_client)

        logger.error("Project path not found")
        return FlowOutcome.SKIPPED
    except Exception:
        logger.exception("Error starting agents")
        return FlowOutcome.FAILED
    finally:
        if owns_client:
            await github.aclose()


async def run() -> FlowOutcome:
    direct_client = DirectClient()
    try:
        return await start_agents(direct_client=direct_client)
    finally:
        await direct_client.stop()


def main() -> None:
    try:
        outcome = asyncio.run(run())
    except Exception:
        logger.exception("Unhandled error in start_agents")
        sys.exit(1)
    logger.info("Run finished: %s", outcome.value)


if __name__ == "__main__":
    main()
