"""Voice synthesis providers: Gemini TTS and ElevenLabs.

Both return WAV bytes; raw PCM output is wrapped before returning.
"""

import logging
from typing import Optional, Protocol

import httpx
from google.genai import types

from shortfactory.config import Settings
from shortfactory.errors import NoCredentials
from shortfactory.services.audio import PCM_SAMPLE_RATE, pcm_to_wav
from shortfactory.services.gemini_client import get_gemini_client
from shortfactory.services.retry import call_with_credentials, with_backoff

logger = logging.getLogger(__name__)

ELEVENLABS_BASE_URL = "https://api.elevenlabs.io/v1"


class VoiceSynthesizer(Protocol):
    name: str

    async def synthesize(self, text: str, voice_id: str) -> bytes:
        ...


class GeminiVoiceSynthesizer:
    """Gemini TTS with a prebuilt voice (e.g. "Kore")."""

    name = "gemini"

    def __init__(self, config: Settings) -> None:
        self._config = config

    async def synthesize(self, text: str, voice_id: str) -> bytes:
        async def _call(api_key: str) -> bytes:
            client = get_gemini_client(api_key)
            response = await client.aio.models.generate_content(
                model=self._config.models.tts,
                contents=text,
                config=types.GenerateContentConfig(
                    response_modalities=["AUDIO"],
                    speech_config=types.SpeechConfig(
                        voice_config=types.VoiceConfig(
                            prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=voice_id),
                        ),
                    ),
                ),
            )
            for part in response.candidates[0].content.parts:
                if part.inline_data and part.inline_data.data:
                    return part.inline_data.data
            raise ValueError("No audio returned by TTS")

        logger.info(f"Gemini TTS: {len(text)} chars, voice={voice_id}")
        pcm = await call_with_credentials(
            self._config.api_keys.gemini,
            _call,
            max_attempts=self._config.pipeline.retry_max_attempts,
            base_delay=self._config.pipeline.retry_base_delay,
        )
        return pcm_to_wav(pcm)


class ElevenLabsVoiceSynthesizer:
    """ElevenLabs text-to-speech, requested as raw PCM and wrapped to WAV."""

    name = "elevenlabs"

    def __init__(
        self,
        config: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not config.api_keys.elevenlabs:
            raise NoCredentials("ElevenLabs API key not configured")
        self._config = config
        self._transport = transport

    async def synthesize(self, text: str, voice_id: str) -> bytes:
        async def _call() -> bytes:
            async with httpx.AsyncClient(
                base_url=ELEVENLABS_BASE_URL,
                headers={"xi-api-key": self._config.api_keys.elevenlabs},
                timeout=httpx.Timeout(120.0, connect=30.0),
                transport=self._transport,
            ) as client:
                response = await client.post(
                    f"/text-to-speech/{voice_id}",
                    params={"output_format": f"pcm_{PCM_SAMPLE_RATE}"},
                    json={
                        "text": text,
                        "model_id": self._config.models.elevenlabs_tts,
                    },
                )
                response.raise_for_status()
                return response.content

        logger.info(f"ElevenLabs TTS: {len(text)} chars, voice={voice_id}")
        pcm = await with_backoff(
            _call,
            self._config.pipeline.retry_max_attempts,
            self._config.pipeline.retry_base_delay,
        )
        return pcm_to_wav(pcm)


def get_voice_synthesizer(config: Settings) -> VoiceSynthesizer:
    if config.providers.tts == "elevenlabs" and config.api_keys.elevenlabs:
        return ElevenLabsVoiceSynthesizer(config)
    return GeminiVoiceSynthesizer(config)
