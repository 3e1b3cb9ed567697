"""Load character files from disk."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from auditor.models.schemas import Character, ModelProviderName, validate_character_config

logger = logging.getLogger(__name__)


def load_characters(
    characters_arg: str,
    model_provider: ModelProviderName = ModelProviderName.OPENAI,
    base_dir: Path | None = None,
) -> list[Character]:
    """Load every character in a comma-separated list of JSON file paths.

    Relative paths resolve against ``base_dir`` (default: the working
    directory). The model provider always overrides whatever the file sets.
    A file that cannot be read, parsed or validated is logged and skipped;
    the remaining characters keep their input order.
    """
    base = base_dir or Path.cwd()
    character_paths = [
        (base / entry.strip()).resolve()
        for entry in (characters_arg or "").split(",")
        if entry.strip()
    ]

    loaded: list[Character] = []
    for file_path in character_paths:
        try:
            data = json.loads(file_path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError("character file must contain a JSON object")
            data["modelProvider"] = ModelProviderName(model_provider).value
            data.pop("model_provider", None)
            loaded.append(validate_character_config(data))
        except (OSError, ValueError, ValidationError) as e:
            # Keep going: one bad file must not block the others
            logger.error("Error loading character from %s: %s", file_path, e)

    return loaded
