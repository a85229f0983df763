"""The ten production stages, in pipeline order."""

from enum import Enum


class Stage(str, Enum):
    """Production stages, declared in pipeline order."""

    REFERENCE = "reference"
    SCRIPT = "script"
    AUDIO = "audio"
    AUDIO_COMPRESS = "audio_compress"
    SUBTITLES = "subtitles"
    IMAGES = "images"
    VIDEO = "video"
    PUBLISH_VIDEO = "publish_video"
    THUMBNAIL = "thumbnail"
    PUBLISH_THUMBNAIL = "publish_thumbnail"


STAGE_ORDER: list[Stage] = list(Stage)
