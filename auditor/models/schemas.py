from __future__ import annotations

import enum
import uuid
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ModelProviderName(str, enum.Enum):
    """Model providers an agent can be started with."""

    OPENAI = "openai"
    DEEPSEEK = "deepseek"


class _CamelModel(BaseModel):
    # Character JSON files use camelCase keys (modelProvider, messageExamples, ...)
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
        protected_namespaces=(),
    )


# -- Messages --

class Content(_CamelModel):
    text: str = ""
    action: str | None = None
    source: str | None = None
    attachments: list[dict[str, Any]] = []
    in_reply_to: uuid.UUID | None = None


class MessageExample(_CamelModel):
    user: str  # speaker name, or "{{user1}}" placeholder
    content: Content


# -- Characters --

class Style(_CamelModel):
    all: list[str]
    chat: list[str]
    post: list[str]


class Character(_CamelModel):
    """A persona the agent runtime speaks as.

    Required fields mirror the character file format: every list must be
    present even when empty. ``id`` and ``username`` are filled in from the
    name when an agent is started.
    """

    name: str = Field(min_length=1)
    id: uuid.UUID | None = None
    username: str | None = None
    model_provider: ModelProviderName = ModelProviderName.OPENAI
    system: str | None = None
    bio: str | list[str]
    lore: list[str]
    message_examples: list[list[MessageExample]]
    post_examples: list[str]
    topics: list[str]
    adjectives: list[str]
    clients: list[str]
    plugins: list[str]
    style: Style
    settings: dict[str, Any] = {}

    @property
    def bio_text(self) -> str:
        if isinstance(self.bio, list):
            return " ".join(self.bio)
        return self.bio


def validate_character_config(data: dict[str, Any]) -> Character:
    """Validate a raw character mapping. Raises pydantic.ValidationError."""
    return Character.model_validate(data)
