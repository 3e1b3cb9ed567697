"""Start agent runtimes for characters and register them with the direct client."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path

from auditor.core.runtime import AgentRuntime, string_to_uuid
from auditor.db import CacheManager, SqliteDatabaseAdapter, initialize_database, initialize_db_cache
from auditor.direct_client import DirectClient
from auditor.models.schemas import Character, ModelProviderName

logger = logging.getLogger(__name__)


class MissingApiKeyError(Exception):
    """Raised when no API key is configured for a character's model provider."""

    def __init__(self, provider: ModelProviderName):
        self.provider = provider
        self.message = f"No API key found for model provider {ModelProviderName(provider).value}"
        super().__init__(self.message)


def create_agent(
    character: Character,
    db: SqliteDatabaseAdapter,
    cache: CacheManager,
    token: str,
    model: str | None = None,
) -> AgentRuntime:
    logger.info("Creating runtime for character %s", character.name)
    return AgentRuntime(
        character=character,
        token=token,
        database_adapter=db,
        cache_manager=cache,
        model_provider=character.model_provider,
        model=model,
    )


async def start_agent(
    character: Character,
    direct_client: DirectClient,
    api_keys: Mapping[ModelProviderName, str | None],
    data_dir: str | Path,
    models: Mapping[ModelProviderName, str] | None = None,
) -> AgentRuntime:
    """Start a runtime for ``character`` backed by the store in ``data_dir``.

    ``models`` maps providers to configured model names; without an entry the
    runtime falls back to the provider default. Raises MissingApiKeyError when
    the character's provider has no key; any other start-up failure is logged
    and re-raised as well, with the store closed again.
    """
    db: SqliteDatabaseAdapter | None = None
    try:
        character = character.model_copy(
            update={
                "id": character.id or string_to_uuid(character.name),
                "username": character.username or character.name,
            }
        )

        token = api_keys.get(character.model_provider)
        if not token:
            raise MissingApiKeyError(character.model_provider)

        Path(data_dir).mkdir(parents=True, exist_ok=True)

        db = initialize_database(data_dir)
        await db.init()

        cache = initialize_db_cache(character, db)
        model = (models or {}).get(character.model_provider)
        runtime = create_agent(character, db, cache, token, model)

        await runtime.initialize()

        runtime.clients = []

        direct_client.register_agent(runtime)

        logger.debug("Started %s as %s", character.name, runtime.agent_id)
        return runtime
    except Exception:
        logger.exception("Error starting agent for character %s", character.name)
        if db is not None:
            await db.close()
        raise
