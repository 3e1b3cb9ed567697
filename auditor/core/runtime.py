"""Agent runtime: a character, its store, and a model to speak through.

The runtime is the capability the rest of the action relies on: store an
incoming message, compose the character's state around it, and generate a
reply with the character's model provider.
"""

from __future__ import annotations

import datetime
import hashlib
import json
import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import Any

from auditor.core.llm import default_model, llm_completion
from auditor.db import CacheManager, SqliteDatabaseAdapter
from auditor.models.schemas import Character, Content, ModelProviderName

logger = logging.getLogger(__name__)

# Namespace for deterministic ids derived from plain strings
_UUID_NAMESPACE = uuid.UUID("6f1c1b7e-3d5a-4a55-9a43-6a1f1e0c2b9d")

CONVERSATION_LENGTH = 32

MESSAGE_COMPLETION_FOOTER = """
Response format should be formatted in a JSON block like this:
```json
{ "user": "{{agentName}}", "text": "<string>", "action": "<string>" }
```"""

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")
_JSON_FENCE = re.compile(r"```json\s*")
_DECODER = json.JSONDecoder()


def string_to_uuid(text: str) -> uuid.UUID:
    """Deterministic UUID for an arbitrary string."""
    return uuid.uuid5(_UUID_NAMESPACE, text)


def compose_context(state: dict[str, Any], template: str) -> str:
    """Fill ``{{key}}`` placeholders from state. Unknown keys render empty."""
    return _PLACEHOLDER.sub(lambda m: str(state.get(m.group(1), "") or ""), template)


def parse_json_object_from_text(text: str) -> dict[str, Any] | None:
    """Pull the first JSON object out of a model reply, fenced or bare.

    The object is decoded from its opening brace to wherever it ends, so
    fenced code blocks inside string values (a report quoting Move code)
    do not cut it short.
    """
    fence = _JSON_FENCE.search(text)
    if fence:
        start = fence.end() if text.startswith("{", fence.end()) else -1
    else:
        start = text.find("{")

    while start != -1:
        try:
            parsed, _ = _DECODER.raw_decode(text, start)
        except json.JSONDecodeError:
            if fence:
                return None
            start = text.find("{", start + 1)
            continue
        return parsed if isinstance(parsed, dict) else None
    return None


@dataclass
class MessageRecord:
    """A message as handed to the runtime; the store keeps it as a memory."""

    id: uuid.UUID
    agent_id: uuid.UUID
    user_id: uuid.UUID
    room_id: uuid.UUID
    content: Content
    created_at: datetime.datetime = field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc)
    )


class MemoryManager:
    """Reads and writes one memory table (e.g. "messages") of the store."""

    def __init__(self, runtime: AgentRuntime, table_name: str) -> None:
        self.runtime = runtime
        self.table_name = table_name

    async def create_memory(self, memory: MessageRecord) -> None:
        await self.runtime.database_adapter.create_memory(
            memory_id=memory.id,
            table_name=self.table_name,
            agent_id=memory.agent_id,
            user_id=memory.user_id,
            room_id=memory.room_id,
            content=memory.content.model_dump(mode="json", by_alias=True),
            created_at=memory.created_at,
        )

    async def get_memories(self, room_id: uuid.UUID, count: int = CONVERSATION_LENGTH) -> list[MessageRecord]:
        rows = await self.runtime.database_adapter.get_memories(room_id, self.table_name, count)
        return [
            MessageRecord(
                id=uuid.UUID(row.id),
                agent_id=uuid.UUID(row.agent_id),
                user_id=uuid.UUID(row.user_id),
                room_id=uuid.UUID(row.room_id),
                content=Content.model_validate(row.content),
                created_at=row.created_at,
            )
            for row in rows
        ]


def _character_fingerprint(character: Character) -> str:
    dumped = character.model_dump_json(by_alias=True, exclude={"id", "username"})
    return hashlib.sha256(dumped.encode()).hexdigest()


def build_system_prompt(character: Character) -> str:
    """Render the character's identity (system line, bio, lore, topics, examples)."""
    parts: list[str] = []
    if character.system:
        parts.append(character.system)
    if character.bio_text:
        parts.append(f"# About {character.name}\n{character.bio_text}")
    if character.lore:
        parts.append("# Lore\n" + "\n".join(f"- {line}" for line in character.lore))
    if character.topics:
        parts.append(f"{character.name} is interested in: " + ", ".join(character.topics))
    if character.adjectives:
        parts.append(f"{character.name} is " + ", ".join(character.adjectives))
    if character.message_examples:
        examples = []
        for dialogue in character.message_examples:
            examples.append(
                "\n".join(
                    f"{ex.user.replace('{{user1}}', 'User')}: {ex.content.text}"
                    for ex in dialogue
                )
            )
        parts.append("# Example conversations\n" + "\n\n".join(examples))
    return "\n\n".join(parts)


class AgentRuntime:
    """One running agent: character, store, cache and model provider."""

    def __init__(
        self,
        *,
        character: Character,
        token: str,
        database_adapter: SqliteDatabaseAdapter,
        cache_manager: CacheManager,
        model_provider: ModelProviderName | None = None,
        model: str | None = None,
    ) -> None:
        if character.id is None:
            raise ValueError(f"character {character.name} has no id")
        self.agent_id: uuid.UUID = character.id
        self.character = character
        self.token = token
        self.database_adapter = database_adapter
        self.cache_manager = cache_manager
        self.model_provider = model_provider or character.model_provider
        self._model = model
        self.message_manager = MemoryManager(self, "messages")
        self.clients: list[Any] = []

    @property
    def model(self) -> str:
        """Character override, then the configured model, then the provider default."""
        return (
            self.character.settings.get("model")
            or self._model
            or default_model(self.model_provider)
        )

    async def initialize(self) -> None:
        """Register the agent's account and note character changes since the last run."""
        await self.database_adapter.ensure_account(
            self.agent_id, self.character.name, self.character.username
        )
        fingerprint = _character_fingerprint(self.character)
        previous = await self.cache_manager.get(f"{self.character.name}/fingerprint")
        if previous and previous != fingerprint:
            logger.info("Character %s changed since the last run", self.character.name)
        await self.cache_manager.set(f"{self.character.name}/fingerprint", fingerprint)

    async def ensure_connection(self, user_id: uuid.UUID, room_id: uuid.UUID, user_name: str) -> None:
        await self.database_adapter.ensure_account(user_id, user_name)
        await self.database_adapter.ensure_room(room_id)
        await self.database_adapter.ensure_participant(user_id, room_id)
        await self.database_adapter.ensure_participant(self.agent_id, room_id)

    async def compose_state(self, message: MessageRecord, **extra: Any) -> dict[str, Any]:
        """Collect everything a prompt template may reference."""
        character = self.character
        recent = await self.message_manager.get_memories(message.room_id)

        directions = [f"# Message Directions for {character.name}"]
        directions.extend(character.style.all)
        directions.extend(character.style.chat)

        lines = []
        for memory in recent:
            sender = character.name if memory.user_id == self.agent_id else "User"
            lines.append(f"{sender}: {memory.content.text}")

        state: dict[str, Any] = {
            "agentId": str(self.agent_id),
            "agentName": character.name,
            "system": character.system or "",
            "bio": character.bio_text,
            "lore": "\n".join(character.lore),
            "topics": ", ".join(character.topics),
            "adjectives": ", ".join(character.adjectives),
            "messageDirections": "\n".join(directions),
            "recentMessages": "# Conversation Messages\n" + "\n".join(lines),
            "roomId": str(message.room_id),
        }
        state.update(extra)
        return state


async def generate_message_response(runtime: AgentRuntime, context: str) -> Content:
    """Generate the character's reply for a composed context."""
    raw = await llm_completion(
        prompt=context,
        system=build_system_prompt(runtime.character),
        model=runtime.model,
        api_key=runtime.token,
    )
    parsed = parse_json_object_from_text(raw)
    if parsed is None or not isinstance(parsed.get("text"), str):
        logger.debug("Reply had no JSON block, using raw text")
        return Content(text=raw.strip())
    action = parsed.get("action")
    return Content(text=parsed["text"], action=action if isinstance(action, str) and action else None)
