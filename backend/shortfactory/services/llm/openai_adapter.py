"""OpenAI-compatible adapter (OpenAI and OpenRouter) for text generation.

Talks to the chat completions endpoint over httpx with JSON response
format, and appends a compact schema instruction to the system prompt
since neither endpoint enforces an arbitrary JSON schema reliably.
"""

import json
import logging
from typing import Optional, Type

import httpx

from shortfactory.services.llm.base import LLMAdapter, SchemaT
from shortfactory.services.retry import with_backoff

logger = logging.getLogger(__name__)

OPENAI_BASE_URL = "https://api.openai.com/v1"
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


def _schema_instruction(schema: Type[SchemaT]) -> str:
    """Build a concise JSON schema instruction to append to the system prompt."""
    schema_json = json.dumps(schema.model_json_schema(), indent=2)
    return (
        "\n\nRespond with a single JSON object (no markdown, no commentary). "
        "It must conform to this schema:\n"
        f"{schema_json}\n"
    )


class OpenAICompatibleAdapter(LLMAdapter):
    """Text adapter for any OpenAI-compatible chat completions endpoint.

    Strips the routing prefix ("openai/", "openrouter/") from the model id
    before sending it.
    """

    def __init__(
        self,
        model_id: str,
        api_key: str,
        base_url: str = OPENAI_BASE_URL,
        max_attempts: int = 3,
        base_delay: float = 2.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.model_id = model_id
        self._remote_model = model_id.split("/", 1)[1] if model_id.startswith(("openai/", "openrouter/")) else model_id
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._transport = transport

    async def generate_text(
        self,
        prompt: str,
        schema: Type[SchemaT],
        *,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
    ) -> SchemaT:
        body = {
            "model": self._remote_model,
            "temperature": temperature,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": (system_prompt or "You are a JSON generator.") + _schema_instruction(schema)},
                {"role": "user", "content": prompt},
            ],
        }

        async def _call() -> SchemaT:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=httpx.Timeout(120.0, connect=30.0),
                transport=self._transport,
            ) as client:
                response = await client.post("/chat/completions", json=body)
                logger.debug(f"POST {self._base_url}/chat/completions -> HTTP {response.status_code}")
                response.raise_for_status()
                content = response.json()["choices"][0]["message"]["content"]
            return schema.model_validate_json(content)

        return await with_backoff(_call, self._max_attempts, self._base_delay)
