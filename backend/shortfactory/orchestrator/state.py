"""Stage order arithmetic and effective-status derivation.

Stage order is a fixed, totally ordered list; "next stage" and "completed
stages" are computed purely by index over it. Status derivation lives here
so every caller (computed field, batch orchestrator, CLI, API) branches on
the same answer.
"""

from typing import Optional

from shortfactory.schemas.project import Project, ProjectFlag, ProjectStatus
from shortfactory.schemas.stage import STAGE_ORDER, Stage

# Human-readable stage descriptions
STAGE_DESCRIPTIONS = {
    Stage.REFERENCE: "Reference video found and transcribed",
    Stage.SCRIPT: "Script rewritten from the reference",
    Stage.AUDIO: "Narration synthesized",
    Stage.AUDIO_COMPRESS: "Narration compressed for upload",
    Stage.SUBTITLES: "Subtitles timed to the narration",
    Stage.IMAGES: "Storyboard images generated",
    Stage.VIDEO: "Video assembled",
    Stage.PUBLISH_VIDEO: "Video published",
    Stage.THUMBNAIL: "Thumbnail created",
    Stage.PUBLISH_THUMBNAIL: "Thumbnail published",
}

_FLAG_STATUS = {
    ProjectFlag.PROCESSING: ProjectStatus.PROCESSING,
    ProjectFlag.ERROR: ProjectStatus.ERROR,
    ProjectFlag.REVIEW: ProjectStatus.REVIEW,
}


def stage_index(stage: Stage) -> int:
    return STAGE_ORDER.index(stage)


def next_stage(stage: Stage) -> Optional[Stage]:
    """Return the stage after ``stage``, or None at the last stage."""
    idx = stage_index(stage) + 1
    if idx >= len(STAGE_ORDER):
        return None
    return STAGE_ORDER[idx]


def is_terminal(stage: Stage) -> bool:
    return next_stage(stage) is None


def completed_stages(project: Project) -> list[Stage]:
    """Stages strictly before the project's current stage."""
    return STAGE_ORDER[: stage_index(project.current_stage)]


def stage_has_content(project: Project, stage: Stage) -> bool:
    payload = project.stage_data.get(stage)
    return payload is not None and payload.has_content()


def effective_status(project: Project) -> ProjectStatus:
    """Derive the status of a project without touching it.

    Stored flags (processing, error, review) are returned verbatim.
    Otherwise the project is ``ready`` when its current stage holds the
    required content (for the reference stage, a non-blank transcript)
    and ``pending`` when it does not.

    Args:
        project: Project to inspect

    Returns:
        The effective ProjectStatus
    """
    if project.flag is not None:
        return _FLAG_STATUS[project.flag]
    if stage_has_content(project, project.current_stage):
        return ProjectStatus.READY
    return ProjectStatus.PENDING


def populated_prefix_ok(project: Project) -> bool:
    """True when the populated stages form a gap-free prefix of the stage
    order that ends at or before the current stage."""
    populated = [stage for stage in STAGE_ORDER if stage in project.stage_data]
    return (
        populated == STAGE_ORDER[: len(populated)]
        and len(populated) <= stage_index(project.current_stage) + 1
    )
