"""Channel profile: the persona and style a project or job is produced for."""

import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class VideoFormat(str, Enum):
    SHORTS = "shorts"
    LONG_FORM = "long_form"


_DIMENSIONS = {
    VideoFormat.SHORTS: (1080, 1920),
    VideoFormat.LONG_FORM: (1920, 1080),
}


class ChannelProfile(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    format: VideoFormat = VideoFormat.SHORTS
    visual_style: str = ""
    voice_profile: str = "Kore"
    llm_persona: str = ""
    scripting_model: Optional[str] = None
    rewrite_prompt: Optional[str] = None
    structure_prompt: Optional[str] = None
    active_prompt_id: Optional[str] = None

    @property
    def aspect_ratio(self) -> str:
        return "9:16" if self.format == VideoFormat.SHORTS else "16:9"

    @property
    def dimensions(self) -> tuple[int, int]:
        """(width, height) in pixels for the profile's format."""
        return _DIMENSIONS[self.format]
