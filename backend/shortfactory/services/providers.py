"""Bundle of generation providers handed to the job engine and stage executor."""

import logging
from dataclasses import dataclass
from typing import Optional

from shortfactory.config import Settings
from shortfactory.services.file_manager import FileManager
from shortfactory.services.images import GeminiImageGenerator, ImageGenerator
from shortfactory.services.llm import LLMAdapter, get_adapter
from shortfactory.services.llm.registry import scripting_model_for
from shortfactory.services.renderer import FfmpegRenderer
from shortfactory.services.transcripts import ApifyTranscriptProvider, TranscriptProvider
from shortfactory.services.voice import VoiceSynthesizer, get_voice_synthesizer

logger = logging.getLogger(__name__)


@dataclass
class Providers:
    text: LLMAdapter
    metadata: LLMAdapter
    images: ImageGenerator
    voice: VoiceSynthesizer
    renderer: FfmpegRenderer
    transcripts: Optional[TranscriptProvider] = None


def build_providers(config: Settings, file_manager: FileManager) -> Providers:
    """Construct real providers from settings.

    The transcript provider is left out when no Apify token is configured;
    reference acquisition then fails per project with a clear message.
    """
    transcripts = None
    if config.api_keys.apify:
        transcripts = ApifyTranscriptProvider(config.api_keys.apify, config.transcripts)
    else:
        logger.info("No Apify token configured, transcript acquisition disabled")

    return Providers(
        text=get_adapter(scripting_model_for(config), config),
        metadata=get_adapter(config.models.metadata, config),
        images=GeminiImageGenerator(config, file_manager),
        voice=get_voice_synthesizer(config),
        renderer=FfmpegRenderer(),
        transcripts=transcripts,
    )
