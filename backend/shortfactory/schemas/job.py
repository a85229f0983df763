"""Job entity for the fully automated single-shot generation flow."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from shortfactory.schemas.project import utcnow


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    REVIEW_PENDING = "review_pending"
    COMPLETED = "completed"
    FAILED = "failed"
    PENDING = "pending"


class JobStep(str, Enum):
    INIT = "init"
    SCRIPTING = "scripting"
    IMAGE_GENERATION = "image_generation"
    VOICE_SYNTHESIS = "voice_synthesis"
    METADATA_GENERATION = "metadata_generation"
    REVIEW = "review"
    RENDERING = "rendering"
    DONE = "done"


LogLevel = Literal["INFO", "WARN", "ERROR", "SUCCESS"]


class LogEntry(BaseModel):
    timestamp: datetime = Field(default_factory=utcnow)
    level: LogLevel
    message: str


class SegmentAssets(BaseModel):
    image_url: Optional[str] = None
    audio_url: Optional[str] = None


class StoryboardSegment(BaseModel):
    """One visual beat of the video: script fragment plus image prompt."""

    id: int
    time_range: str
    script_text: str
    visual_prompt: str
    duration: int = 5
    assets: SegmentAssets = Field(default_factory=SegmentAssets)


class JobResult(BaseModel):
    script: str
    storyboard: list[StoryboardSegment] = Field(default_factory=list)
    raw_prompts: list[str] = Field(default_factory=list)
    master_audio_url: Optional[str] = None


class VideoMetadata(BaseModel):
    """Publishing metadata generated from the final script."""

    titles: list[str] = Field(default_factory=list)
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    thumbnail_prompt: str = ""


class Job(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    theme: str
    channel_id: str
    model_channel: Optional[str] = None
    reference_script: Optional[str] = None
    reference_metadata: Optional[dict[str, Any]] = None
    applied_prompt_id: Optional[str] = None
    status: JobStatus = JobStatus.QUEUED
    current_step: JobStep = JobStep.INIT
    progress: int = 0
    logs: list[LogEntry] = Field(default_factory=list)
    result: Optional[JobResult] = None
    metadata: Optional[VideoMetadata] = None
    output_path: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    def warnings(self) -> list[LogEntry]:
        return [entry for entry in self.logs if entry.level == "WARN"]
