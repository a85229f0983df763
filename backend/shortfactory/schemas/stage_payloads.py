"""Per-stage payload models and the registry keyed by stage.

Every payload carries a ``mode`` discriminator: ``auto`` when a generation
provider produced it, ``manual`` when a human pasted text or uploaded a
file. Once stored, both are treated identically.

The registry maps each stage to its payload model and to the kind of
manual input it is collected from (pasted text or an uploaded file), so
the manual path never needs a per-stage branch list.
"""

from dataclasses import dataclass
from pathlib import PurePath
from typing import Any, Callable, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from shortfactory.errors import StageMismatch
from shortfactory.schemas.stage import Stage

PayloadMode = Literal["auto", "manual"]
InputKind = Literal["text", "file"]


class StagePayload(BaseModel):
    """Base for all stage payloads."""

    model_config = ConfigDict(extra="forbid")

    mode: PayloadMode = "manual"

    def has_content(self) -> bool:
        """Whether the payload carries the stage's required content."""
        return True


class TranscriptMetadata(BaseModel):
    """Metadata returned alongside a scraped transcript."""

    title: Optional[str] = None
    description: Optional[str] = None
    view_count: Optional[int] = None
    published_at: Optional[str] = None
    channel_name: Optional[str] = None
    duration: Optional[str] = None


class ReferencePayload(StagePayload):
    video_id: Optional[str] = None
    url: Optional[str] = None
    title: Optional[str] = None
    channel_name: Optional[str] = None
    description: Optional[str] = None
    view_count: Optional[int] = None
    duration: Optional[str] = None
    published_at: Optional[str] = None
    transcript: Optional[str] = None

    def has_content(self) -> bool:
        # A reference only counts once its transcript is present.
        return bool(self.transcript and self.transcript.strip())


class ScriptGenerationSnapshot(BaseModel):
    """What produced an auto-generated script, kept for later comparison."""

    model_id: str
    provider: str
    rewrite_prompt: str
    structure_prompt: str
    prompt_version_id: Optional[str] = None
    generated_at: str


class ScriptPayload(StagePayload):
    text: str = Field(min_length=1)
    word_count: int = 0
    prompt_used: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    thumb_text: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    generation_snapshot: Optional[ScriptGenerationSnapshot] = None

    @model_validator(mode="after")
    def fill_word_count(self):
        if not self.word_count:
            self.word_count = len(self.text.split())
        return self

    def has_content(self) -> bool:
        return bool(self.text.strip())


class AudioPayload(StagePayload):
    file_url: str = Field(min_length=1)
    duration: Optional[float] = None
    provider: Optional[str] = None


class AudioCompressPayload(StagePayload):
    file_url: str = Field(min_length=1)
    original_size: Optional[int] = None
    compressed_size: Optional[int] = None
    compression_ratio: Optional[float] = None
    format: str = "mp3"
    bitrate: Optional[str] = None


class SubtitleCue(BaseModel):
    index: int
    start: float
    end: float
    text: str


class SubtitlesPayload(StagePayload):
    srt_content: str = Field(min_length=1)
    cues: list[SubtitleCue] = Field(default_factory=list)


class ImagesPayload(StagePayload):
    image_urls: list[str] = Field(default_factory=list)
    prompts: list[str] = Field(default_factory=list)
    content: Optional[str] = None

    @model_validator(mode="after")
    def require_images_or_content(self):
        if not self.image_urls and not (self.content and self.content.strip()):
            raise ValueError("images payload needs image_urls or content")
        return self


class VideoPayload(StagePayload):
    file_url: str = Field(min_length=1)
    duration: Optional[float] = None
    resolution: Optional[str] = None


class PublishVideoPayload(StagePayload):
    video_id: Optional[str] = None
    url: Optional[str] = None
    content: Optional[str] = None
    published_at: Optional[str] = None

    @model_validator(mode="after")
    def require_publish_record(self):
        if not (self.video_id or self.url or (self.content and self.content.strip())):
            raise ValueError("publish record needs video_id, url or content")
        return self


class ThumbnailPayload(StagePayload):
    image_url: str = Field(min_length=1)
    prompt: Optional[str] = None
    text: Optional[str] = None


class PublishThumbnailPayload(StagePayload):
    confirmed: bool = False
    content: Optional[str] = None

    @model_validator(mode="after")
    def require_confirmation(self):
        if not (self.confirmed or (self.content and self.content.strip())):
            raise ValueError("publish confirmation needs confirmed=true or content")
        return self


class ManualInput(BaseModel):
    """What a human supplies on the manual path."""

    text: Optional[str] = None
    file_url: Optional[str] = None


@dataclass(frozen=True)
class StagePayloadSpec:
    """Registry entry: payload model, manual input kind and manual builder."""

    model: type[StagePayload]
    input_kind: InputKind
    build: Optional[Callable[[str], StagePayload]] = None


def _audio_compress_from_file(file_url: str) -> AudioCompressPayload:
    suffix = PurePath(file_url).suffix.lstrip(".").lower()
    return AudioCompressPayload(file_url=file_url, format=suffix or "mp3")


STAGE_PAYLOADS: dict[Stage, StagePayloadSpec] = {
    Stage.REFERENCE: StagePayloadSpec(ReferencePayload, "text"),
    Stage.SCRIPT: StagePayloadSpec(
        ScriptPayload, "text", lambda text: ScriptPayload(text=text)
    ),
    Stage.AUDIO: StagePayloadSpec(
        AudioPayload, "file", lambda url: AudioPayload(file_url=url)
    ),
    Stage.AUDIO_COMPRESS: StagePayloadSpec(
        AudioCompressPayload, "file", _audio_compress_from_file
    ),
    Stage.SUBTITLES: StagePayloadSpec(
        SubtitlesPayload, "text", lambda text: SubtitlesPayload(srt_content=text)
    ),
    Stage.IMAGES: StagePayloadSpec(
        ImagesPayload, "text", lambda text: ImagesPayload(content=text)
    ),
    Stage.VIDEO: StagePayloadSpec(
        VideoPayload, "file", lambda url: VideoPayload(file_url=url)
    ),
    Stage.PUBLISH_VIDEO: StagePayloadSpec(
        PublishVideoPayload, "text", lambda text: PublishVideoPayload(content=text)
    ),
    Stage.THUMBNAIL: StagePayloadSpec(
        ThumbnailPayload, "file", lambda url: ThumbnailPayload(image_url=url)
    ),
    Stage.PUBLISH_THUMBNAIL: StagePayloadSpec(
        PublishThumbnailPayload, "text", lambda text: PublishThumbnailPayload(content=text)
    ),
}


def validate_payload(stage: Stage, data: Any) -> StagePayload:
    """Validate ``data`` against the payload model registered for ``stage``.

    Accepts a payload model instance, a plain mapping of payload fields, or
    a single-key mapping wrapping the fields under a stage name.

    Raises:
        StageMismatch: If the data belongs to another stage or fails validation.
    """
    model = STAGE_PAYLOADS[stage].model

    if isinstance(data, StagePayload):
        if type(data) is not model:
            raise StageMismatch(
                stage, f"expected {model.__name__}, got {type(data).__name__}"
            )
        return data

    if not isinstance(data, dict):
        raise StageMismatch(stage, f"expected a mapping, got {type(data).__name__}")

    if len(data) == 1:
        key, inner = next(iter(data.items()))
        if key in {s.value for s in Stage}:
            if key != stage.value:
                raise StageMismatch(stage, f"payload is tagged for stage {key}")
            data = inner
            if isinstance(data, StagePayload):
                return validate_payload(stage, data)

    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise StageMismatch(stage, f"payload does not fit {model.__name__}: {e}") from e


def coerce_payload(stage: Stage, value: Any) -> StagePayload:
    """Load a stored payload. Used when rebuilding projects from persistence."""
    if isinstance(value, StagePayload):
        return value
    return STAGE_PAYLOADS[stage].model.model_validate(value)


def build_manual_payload(stage: Stage, manual: ManualInput) -> StagePayload:
    """Build the manual payload for ``stage`` from pasted text or a file.

    Raises:
        StageMismatch: If the stage cannot be supplied manually or the
            required kind of input is missing.
    """
    spec = STAGE_PAYLOADS[stage]
    if spec.build is None:
        raise StageMismatch(stage, "stage cannot be supplied through manual input")

    if spec.input_kind == "text":
        if not manual.text or not manual.text.strip():
            raise StageMismatch(stage, "expects pasted text")
        return spec.build(manual.text.strip())

    if not manual.file_url:
        raise StageMismatch(stage, "expects an uploaded file")
    return spec.build(manual.file_url)
