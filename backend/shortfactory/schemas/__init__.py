"""Pydantic models for projects, stage payloads, jobs and profiles."""

from shortfactory.schemas.job import (
    Job,
    JobResult,
    JobStatus,
    JobStep,
    LogEntry,
    StoryboardSegment,
    VideoMetadata,
)
from shortfactory.schemas.profile import ChannelProfile, VideoFormat
from shortfactory.schemas.project import Project, ProjectFlag, ProjectStatus
from shortfactory.schemas.stage import STAGE_ORDER, Stage
from shortfactory.schemas.stage_payloads import (
    STAGE_PAYLOADS,
    ManualInput,
    StagePayload,
    build_manual_payload,
    validate_payload,
)

__all__ = [
    "ChannelProfile",
    "Job",
    "JobResult",
    "JobStatus",
    "JobStep",
    "LogEntry",
    "ManualInput",
    "Project",
    "ProjectFlag",
    "ProjectStatus",
    "STAGE_ORDER",
    "STAGE_PAYLOADS",
    "Stage",
    "StagePayload",
    "StoryboardSegment",
    "VideoFormat",
    "VideoMetadata",
    "build_manual_payload",
    "validate_payload",
]
