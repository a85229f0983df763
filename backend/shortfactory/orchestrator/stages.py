"""Pipeline stage transitions.

Every function takes a project and returns an updated copy; the caller
decides when to persist it. ``updated_at`` is bumped on every mutation.
"""

import logging
from typing import Any, Optional

from shortfactory.errors import MissingStageData, StageMismatch, TerminalStage
from shortfactory.orchestrator.state import next_stage, stage_has_content, stage_index
from shortfactory.schemas.project import Project, ProjectFlag, utcnow
from shortfactory.schemas.stage import Stage
from shortfactory.schemas.stage_payloads import validate_payload

logger = logging.getLogger(__name__)


def _touch(project: Project, **changes: Any) -> Project:
    changes["updated_at"] = utcnow()
    return project.model_copy(update=changes)


def advance(project: Project, supplied_data: Optional[Any] = None) -> Project:
    """Move a project to its next stage, storing that stage's payload.

    The supplied data must fit the payload model of the stage *after* the
    current one. Passing None advances without content; the new stage then
    derives as pending until data arrives. Data for the next stage is only
    accepted once the current stage holds content, so populated stages stay
    a prefix of the stage order.

    Args:
        project: Project to advance
        supplied_data: Payload model, mapping of payload fields, or None

    Returns:
        Updated copy at the next stage with flag and error cleared

    Raises:
        TerminalStage: If the project is already at the last stage
        MissingStageData: If data is supplied while the current stage is empty
        StageMismatch: If the data does not fit the next stage
    """
    target = next_stage(project.current_stage)
    if target is None:
        raise TerminalStage(
            f"Project {project.id} is already at the last stage ({project.current_stage.value})"
        )
    if supplied_data is not None and not stage_has_content(project, project.current_stage):
        raise MissingStageData(
            f"Project {project.id} has no {project.current_stage.value} data; "
            f"fill it before supplying {target.value}"
        )

    stage_data = dict(project.stage_data)
    if supplied_data is not None:
        stage_data[target] = validate_payload(target, supplied_data)

    logger.info(
        f"Project {project.id}: {project.current_stage.value} -> {target.value}"
        f"{'' if supplied_data is not None else ' (no data)'}"
    )
    return _touch(
        project,
        current_stage=target,
        stage_data=stage_data,
        flag=None,
        error_message=None,
    )


def complete_stage(project: Project, supplied_data: Any) -> Project:
    """Fill the current stage's payload without moving the project.

    Used when a project sits on a stage that has no content yet, e.g. after
    advancing without data or after a manual move.

    Raises:
        StageMismatch: If the data does not fit the current stage
    """
    payload = validate_payload(project.current_stage, supplied_data)
    stage_data = dict(project.stage_data)
    stage_data[project.current_stage] = payload
    return _touch(project, stage_data=stage_data, flag=None, error_message=None)


def reset_stage(project: Project) -> Project:
    """Clear the error so status re-derives; stage and data are untouched."""
    return _touch(project, flag=None, error_message=None)


def move_stage(project: Project, target: Stage) -> Project:
    """Reassign the stage unconditionally (explicit user reorder).

    Skips every data prerequisite. Payloads for stages after the target are
    kept, so the populated-prefix invariant may not hold afterwards.
    """
    if target == project.current_stage:
        return project
    direction = "back" if stage_index(target) < stage_index(project.current_stage) else "forward"
    logger.warning(
        f"Project {project.id}: manual stage override {project.current_stage.value} -> "
        f"{target.value} ({direction}), prerequisites not checked"
    )
    return _touch(project, current_stage=target, flag=None, error_message=None)


def mark_processing(project: Project) -> Project:
    return _touch(project, flag=ProjectFlag.PROCESSING, error_message=None)


def mark_review(project: Project) -> Project:
    return _touch(project, flag=ProjectFlag.REVIEW, error_message=None)


def mark_error(project: Project, message: str) -> Project:
    return _touch(project, flag=ProjectFlag.ERROR, error_message=message)


__all__ = [
    "MissingStageData",
    "StageMismatch",
    "TerminalStage",
    "advance",
    "complete_stage",
    "mark_error",
    "mark_processing",
    "mark_review",
    "move_stage",
    "reset_stage",
]
