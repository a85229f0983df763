"""Gemini API client cache using the google-genai SDK in API-key mode.

Clients are keyed by API key so rotating across several keys reuses one
client per key.

Usage:
    from shortfactory.services.gemini_client import get_gemini_client

    client = get_gemini_client(api_key)
    response = await client.aio.models.generate_content(...)
"""

from pathlib import Path

from dotenv import load_dotenv
from google import genai

# Load .env from the repo root so SHORTFACTORY_API_KEYS__GEMINI is visible
load_dotenv(Path(__file__).resolve().parent.parent.parent.parent / ".env")

_clients: dict[str, genai.Client] = {}


def get_gemini_client(api_key: str) -> genai.Client:
    """Get or create a Gemini client for the given API key."""
    if api_key not in _clients:
        _clients[api_key] = genai.Client(api_key=api_key)
    return _clients[api_key]
