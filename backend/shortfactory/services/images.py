"""Image generation provider.

One logical call may return several images; each is written to the owner's
``images/`` directory and returned as a file path string.
"""

import logging
import mimetypes
from typing import Protocol

from google.genai import types

from shortfactory.config import Settings
from shortfactory.services.file_manager import FileManager
from shortfactory.services.gemini_client import get_gemini_client
from shortfactory.services.retry import call_with_credentials

logger = logging.getLogger(__name__)


class ImageGenerator(Protocol):
    async def generate(
        self, prompt: str, width: int, height: int, count: int = 1, *, owner_id: str = "library",
    ) -> list[str]:
        ...


def aspect_ratio_for(width: int, height: int) -> str:
    """Closest supported aspect ratio for a pixel size."""
    if height > width:
        return "9:16"
    if width > height:
        return "16:9"
    return "1:1"


class GeminiImageGenerator:
    """Image generation via Gemini generate_content() with image output."""

    def __init__(self, config: Settings, file_manager: FileManager) -> None:
        self._config = config
        self._files = file_manager
        self._counter = 0

    async def _generate_one(self, prompt: str, aspect_ratio: str) -> tuple[bytes, str]:
        async def _call(api_key: str) -> tuple[bytes, str]:
            client = get_gemini_client(api_key)
            response = await client.aio.models.generate_content(
                model=self._config.models.image,
                contents=prompt,
                config=types.GenerateContentConfig(
                    response_modalities=["TEXT", "IMAGE"],
                    image_config=types.ImageConfig(aspect_ratio=aspect_ratio),
                ),
            )
            for part in response.candidates[0].content.parts:
                if part.inline_data:
                    return part.inline_data.data, part.inline_data.mime_type or "image/png"
            raise ValueError("No image generated in response")

        return await call_with_credentials(
            self._config.api_keys.gemini,
            _call,
            max_attempts=self._config.pipeline.retry_max_attempts,
            base_delay=self._config.pipeline.retry_base_delay,
        )

    async def generate(
        self, prompt: str, width: int, height: int, count: int = 1, *, owner_id: str = "library",
    ) -> list[str]:
        aspect_ratio = aspect_ratio_for(width, height)
        paths: list[str] = []
        for i in range(count):
            logger.info(f"Generating image {i + 1}/{count} ({aspect_ratio}) for {owner_id}")
            data, mime_type = await self._generate_one(prompt, aspect_ratio)
            suffix = mimetypes.guess_extension(mime_type) or ".png"
            self._counter += 1
            path = self._files.save_image(owner_id, self._counter, data, suffix=suffix, prefix="img")
            paths.append(str(path))
        return paths
