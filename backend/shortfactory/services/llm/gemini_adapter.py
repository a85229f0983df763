"""Gemini adapter for the text generation layer.

Wraps the google-genai client with structured JSON output. Calls go through
the credential policy: backoff on a single key, rotation across several.
"""

import logging
from typing import Optional, Type

from google.genai import types as genai_types

from shortfactory.config import Settings
from shortfactory.services.gemini_client import get_gemini_client
from shortfactory.services.llm.base import LLMAdapter, SchemaT
from shortfactory.services.retry import call_with_credentials

logger = logging.getLogger(__name__)


class GeminiAdapter(LLMAdapter):
    """Text adapter backed by the Gemini API (google-genai SDK)."""

    def __init__(self, model_id: str, config: Settings) -> None:
        self.model_id = model_id
        self._config = config

    async def generate_text(
        self,
        prompt: str,
        schema: Type[SchemaT],
        *,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
    ) -> SchemaT:
        gen_config = genai_types.GenerateContentConfig(
            temperature=temperature,
            response_mime_type="application/json",
            response_schema=schema,
            system_instruction=system_prompt or None,
        )

        async def _call(api_key: str) -> SchemaT:
            client = get_gemini_client(api_key)
            response = await client.aio.models.generate_content(
                model=self.model_id,
                contents=prompt,
                config=gen_config,
            )
            if not response.text:
                raise ValueError(f"Empty response from {self.model_id}")
            return schema.model_validate_json(response.text)

        logger.debug(f"Gemini text call model={self.model_id} schema={schema.__name__}")
        return await call_with_credentials(
            self._config.api_keys.gemini,
            _call,
            max_attempts=self._config.pipeline.retry_max_attempts,
            base_delay=self._config.pipeline.retry_base_delay,
        )
