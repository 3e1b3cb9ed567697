import logging

import litellm

from auditor.core.config import Settings, settings
from auditor.models.schemas import ModelProviderName

logger = logging.getLogger(__name__)

# Suppress litellm's verbose logging
litellm.suppress_debug_info = True


def default_model(provider: ModelProviderName, config: Settings | None = None) -> str:
    """Return the configured litellm model name for a provider."""
    config = config or settings
    if provider == ModelProviderName.DEEPSEEK:
        return config.deepseek_model
    return config.openai_model


def _extract_usage(response) -> tuple[int, int]:
    """Extract input/output token counts from a litellm response."""
    usage = getattr(response, "usage", None)
    if usage is None:
        return 0, 0
    return getattr(usage, "prompt_tokens", 0) or 0, getattr(usage, "completion_tokens", 0) or 0


async def llm_completion(
    prompt: str,
    system: str = "",
    model: str | None = None,
    api_key: str | None = None,
) -> str:
    """Single-shot LLM completion. Returns the assistant message content."""
    model = model or settings.openai_model

    messages: list[dict] = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})

    kwargs: dict = {"model": model, "messages": messages}
    if api_key:
        kwargs["api_key"] = api_key
    response = await litellm.acompletion(**kwargs)

    input_tokens, output_tokens = _extract_usage(response)
    logger.info("LLM completion with %s: %d input / %d output tokens", model, input_tokens, output_tokens)

    return response.choices[0].message.content or ""
