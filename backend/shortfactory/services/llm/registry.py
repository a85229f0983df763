"""Provider registry for text generation adapters.

Routes model IDs to the correct adapter implementation based on the model
ID prefix: "openai/" and "gpt-" to OpenAI, "openrouter/" to OpenRouter,
everything else to Gemini.
"""

import logging

from shortfactory.config import Settings
from shortfactory.errors import NoCredentials
from shortfactory.services.llm.base import LLMAdapter

logger = logging.getLogger(__name__)


def _is_openai_model(model_id: str) -> bool:
    return model_id.startswith(("openai/", "gpt-"))


def _is_openrouter_model(model_id: str) -> bool:
    return model_id.startswith("openrouter/")


def get_adapter(model_id: str, config: Settings) -> LLMAdapter:
    """Return the appropriate text adapter for the given model ID.

    Args:
        model_id: Model identifier (e.g. "gemini-2.5-flash", "openai/gpt-4o",
                  "openrouter/anthropic/claude-3.5-sonnet").
        config: Settings supplying credentials and retry parameters.

    Returns:
        Configured LLMAdapter instance ready for use.

    Raises:
        NoCredentials: If the routed provider has no API key configured.
    """
    if _is_openai_model(model_id) or _is_openrouter_model(model_id):
        from shortfactory.services.llm.openai_adapter import (
            OPENAI_BASE_URL,
            OPENROUTER_BASE_URL,
            OpenAICompatibleAdapter,
        )

        if _is_openrouter_model(model_id):
            api_key, base_url = config.api_keys.openrouter, OPENROUTER_BASE_URL
        else:
            api_key, base_url = config.api_keys.openai, OPENAI_BASE_URL
        if not api_key:
            raise NoCredentials(f"No API key configured for {model_id}")

        logger.debug("Routing %s to OpenAICompatibleAdapter (%s)", model_id, base_url)
        return OpenAICompatibleAdapter(
            model_id=model_id,
            api_key=api_key,
            base_url=base_url,
            max_attempts=config.pipeline.retry_max_attempts,
            base_delay=config.pipeline.retry_base_delay,
        )

    from shortfactory.services.llm.gemini_adapter import GeminiAdapter

    logger.debug("Routing %s to GeminiAdapter", model_id)
    return GeminiAdapter(model_id=model_id, config=config)


def scripting_model_for(config: Settings) -> str:
    """Model id for scripting given the configured provider."""
    model = config.models.scripting
    provider = config.providers.scripting
    if provider == "openai" and not _is_openai_model(model):
        return "openai/gpt-4o"
    if provider == "openrouter" and not _is_openrouter_model(model):
        return f"openrouter/{model}"
    return model
