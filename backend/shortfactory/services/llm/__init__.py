"""Text generation provider abstraction layer.

Provides a unified async interface for structured text generation across
Gemini and OpenAI-compatible endpoints.

Usage:
    from shortfactory.services.llm import get_adapter, LLMAdapter

    adapter = get_adapter("gemini-2.5-flash", settings)
    result = await adapter.generate_text(prompt, MySchema)
"""

from shortfactory.services.llm.base import LLMAdapter
from shortfactory.services.llm.registry import get_adapter

__all__ = ["LLMAdapter", "get_adapter"]
