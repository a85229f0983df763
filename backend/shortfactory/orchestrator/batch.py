"""Batch operations over a selection of projects.

Every batch processes projects one at a time. A failure in one project is
recorded on that project (automatic path) or in the result (manual path)
and never stops its siblings.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from shortfactory.errors import ProjectNotFound, ShortFactoryError, TerminalStage
from shortfactory.orchestrator.executor import StageExecutor
from shortfactory.orchestrator.projects import ProjectService
from shortfactory.orchestrator.stages import advance, mark_error, mark_processing, mark_review
from shortfactory.orchestrator.state import next_stage, stage_has_content
from shortfactory.schemas.project import Project, ProjectFlag
from shortfactory.schemas.stage import Stage
from shortfactory.schemas.stage_payloads import ManualInput, ReferencePayload, build_manual_payload

logger = logging.getLogger(__name__)


@dataclass
class Selection:
    """Projects picked for a batch. All share one stage."""

    project_ids: list[str] = field(default_factory=list)
    stage: Optional[Stage] = None

    def clear(self) -> None:
        self.project_ids = []
        self.stage = None


@dataclass
class BatchOutcome:
    project_id: str
    ok: bool
    stage: Optional[Stage] = None
    error: Optional[str] = None


@dataclass
class BatchResult:
    outcomes: list[BatchOutcome] = field(default_factory=list)
    review_ids: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> list[str]:
        return [o.project_id for o in self.outcomes if o.ok]

    @property
    def failed(self) -> list[BatchOutcome]:
        return [o for o in self.outcomes if not o.ok]


class BatchOrchestrator:
    """Drives selections of projects through the automatic or manual path.

    Args:
        projects: Project collection
        executor: Stage executor used on the automatic path
    """

    def __init__(self, projects: ProjectService, executor: StageExecutor) -> None:
        self._projects = projects
        self._executor = executor
        self.selection = Selection()

    def toggle(self, project_id: str) -> Selection:
        """Add or remove a project from the selection.

        Picking a project at a different stage than the current selection
        starts a new selection with just that project.
        """
        project = self._projects.get(project_id)
        selection = self.selection
        if project_id in selection.project_ids:
            selection.project_ids.remove(project_id)
            if not selection.project_ids:
                selection.stage = None
        elif selection.stage is not None and selection.stage != project.current_stage:
            selection.project_ids = [project_id]
            selection.stage = project.current_stage
        else:
            selection.project_ids.append(project_id)
            selection.stage = project.current_stage
        return selection

    def _targets(self, project_ids: Optional[list[str]]) -> list[str]:
        return list(project_ids if project_ids is not None else self.selection.project_ids)

    def _first_stage(self, project_ids: list[str]) -> Optional[Stage]:
        """Stage of the first project that still exists."""
        for project_id in project_ids:
            try:
                return self._projects.get(project_id).current_stage
            except ProjectNotFound:
                continue
        return None

    async def batch_auto_advance(self, project_ids: Optional[list[str]] = None) -> BatchResult:
        """Advance each project by one automatic generation.

        Reference projects without a transcript get one scraped and then wait
        for review; those that already have one go straight to review.
        Failures mark the project ``error``; nothing is raised.
        """
        result = BatchResult()
        for project_id in self._targets(project_ids):
            try:
                project = self._projects.get(project_id)
            except ShortFactoryError as e:
                result.outcomes.append(BatchOutcome(project_id, ok=False, error=str(e)))
                continue

            stage = project.current_stage
            if stage == Stage.REFERENCE and stage_has_content(project, Stage.REFERENCE):
                await self._projects.save(mark_review(project))
                result.review_ids.append(project_id)
                result.outcomes.append(BatchOutcome(project_id, ok=True, stage=stage))
                continue

            project = await self._projects.save(mark_processing(project))
            try:
                if stage == Stage.REFERENCE:
                    updated = await self._executor.acquire_transcript(project)
                    result.review_ids.append(project_id)
                else:
                    updated = await self._executor.auto_advance(project)
            except Exception as e:
                message = f"Error at stage {stage.value}: {e}"
                logger.error(f"Project {project_id}: {message}")
                await self._projects.save(mark_error(project, message))
                result.outcomes.append(BatchOutcome(project_id, ok=False, stage=stage, error=str(e)))
                continue

            await self._projects.save(updated)
            result.outcomes.append(BatchOutcome(project_id, ok=True, stage=updated.current_stage))

        self.selection.clear()
        logger.info(
            f"Batch auto finished: {len(result.succeeded)} ok, {len(result.failed)} failed, "
            f"{len(result.review_ids)} awaiting review"
        )
        return result

    def pending_reviews(self) -> list[Project]:
        return [
            p for p in self._projects.list_projects()
            if p.current_stage == Stage.REFERENCE and p.flag == ProjectFlag.REVIEW
        ]

    async def approve_reviews(
        self,
        project_ids: Optional[list[str]] = None,
        transcripts: Optional[dict[str, str]] = None,
    ) -> BatchResult:
        """Approve reviewed transcripts and move the projects to Script.

        Args:
            project_ids: Projects to approve; defaults to every project in review
            transcripts: Edited transcripts by project id, replacing the scraped text

        Returns:
            Result with one outcome per approved project
        """
        transcripts = transcripts or {}
        ids = project_ids if project_ids is not None else [p.id for p in self.pending_reviews()]
        result = BatchResult()
        for project_id in ids:
            try:
                project = self._projects.get(project_id)
                if project.current_stage != Stage.REFERENCE or project.flag != ProjectFlag.REVIEW:
                    raise ShortFactoryError(f"Project {project_id} is not awaiting transcript review")
                edited = transcripts.get(project_id)
                if edited is not None:
                    reference = project.stage_data.get(Stage.REFERENCE)
                    if not isinstance(reference, ReferencePayload):
                        raise ShortFactoryError(f"Project {project_id} has no reference payload")
                    stage_data = dict(project.stage_data)
                    stage_data[Stage.REFERENCE] = reference.model_copy(
                        update={"transcript": edited, "mode": "manual"}
                    )
                    project = project.model_copy(update={"stage_data": stage_data})
                updated = await self._projects.save(advance(project, None))
            except ShortFactoryError as e:
                logger.error(f"Review approval failed for {project_id}: {e}")
                result.outcomes.append(BatchOutcome(project_id, ok=False, error=str(e)))
                continue
            result.outcomes.append(BatchOutcome(project_id, ok=True, stage=updated.current_stage))
        return result

    async def batch_manual_advance(
        self,
        manual: ManualInput,
        project_ids: Optional[list[str]] = None,
    ) -> BatchResult:
        """Advance every selected project with the same manually supplied payload.

        The target is the stage after the selection's shared stage, taken from
        the first project that exists. Unknown projects and projects
        sitting at another stage are reported as failed and left untouched.

        Raises:
            TerminalStage: If the shared stage is the last one
            StageMismatch: If the input does not fit the target stage
        """
        ids = self._targets(project_ids)
        result = BatchResult()
        if not ids:
            return result

        shared = self.selection.stage if project_ids is None and self.selection.stage else None
        if shared is None:
            shared = self._first_stage(ids)
        if shared is None:
            for project_id in ids:
                result.outcomes.append(
                    BatchOutcome(project_id, ok=False, error=f"Project {project_id} not found")
                )
            logger.error(f"Batch manual advance: none of {len(ids)} projects exist")
            self.selection.clear()
            return result
        target = next_stage(shared)
        if target is None:
            raise TerminalStage(f"Stage {shared.value} is the last stage")
        payload = build_manual_payload(target, manual)

        for project_id in ids:
            try:
                project = self._projects.get(project_id)
                if project.current_stage != shared:
                    raise ShortFactoryError(
                        f"Project {project_id} is at {project.current_stage.value}, not {shared.value}"
                    )
                updated = await self._projects.save(advance(project, payload.model_copy(deep=True)))
            except ShortFactoryError as e:
                logger.error(f"Manual advance failed for {project_id}: {e}")
                result.outcomes.append(BatchOutcome(project_id, ok=False, stage=shared, error=str(e)))
                continue
            result.outcomes.append(BatchOutcome(project_id, ok=True, stage=updated.current_stage))

        self.selection.clear()
        logger.info(
            f"Batch manual {shared.value} -> {target.value}: "
            f"{len(result.succeeded)} ok, {len(result.failed)} failed"
        )
        return result

    async def batch_delete(self, project_ids: Optional[list[str]] = None) -> BatchResult:
        result = BatchResult()
        for project_id in self._targets(project_ids):
            try:
                await self._projects.delete(project_id)
            except ShortFactoryError as e:
                result.outcomes.append(BatchOutcome(project_id, ok=False, error=str(e)))
                continue
            result.outcomes.append(BatchOutcome(project_id, ok=True))
        self.selection.clear()
        return result
