"""In-memory project collection with optional write-through persistence."""

import logging
from typing import Awaitable, Callable, Iterable, Optional

from shortfactory.errors import ProjectNotFound
from shortfactory.orchestrator.stages import move_stage, reset_stage
from shortfactory.schemas.project import Project
from shortfactory.schemas.stage import Stage
from shortfactory.schemas.stage_payloads import ReferencePayload

logger = logging.getLogger(__name__)

ProjectPersist = Callable[[Project], Awaitable[None]]
ProjectRemove = Callable[[str], Awaitable[None]]


class ProjectService:
    """Owns the project collection.

    Stage functions return updated copies; ``save`` swaps the copy into the
    collection and writes it through to the store. Store failures are logged
    and never raised to the caller.
    """

    def __init__(
        self,
        persist: Optional[ProjectPersist] = None,
        remove: Optional[ProjectRemove] = None,
    ) -> None:
        self._persist = persist
        self._remove = remove
        self.projects: dict[str, Project] = {}

    def load(self, projects: Iterable[Project]) -> None:
        for project in projects:
            self.projects[project.id] = project
        logger.info(f"Loaded {len(self.projects)} projects")

    def get(self, project_id: str) -> Project:
        try:
            return self.projects[project_id]
        except KeyError:
            raise ProjectNotFound(f"Project {project_id} not found") from None

    def list_projects(self, channel_id: Optional[str] = None) -> list[Project]:
        projects = [
            p for p in self.projects.values()
            if channel_id is None or p.channel_id == channel_id
        ]
        return sorted(projects, key=lambda p: p.created_at)

    async def create_project(
        self,
        channel_id: str,
        title: str,
        *,
        video_id: Optional[str] = None,
        url: Optional[str] = None,
        transcript: Optional[str] = None,
    ) -> Project:
        """Create a project at Reference.

        Args:
            channel_id: Owning channel profile id
            title: Working title
            video_id: Reference video to scrape; enables automatic transcript acquisition
            url: Reference video URL
            transcript: Transcript pasted by hand; the project then needs only review

        Returns:
            The stored project
        """
        stage_data = {}
        if video_id or transcript:
            stage_data[Stage.REFERENCE] = ReferencePayload(
                mode="manual" if transcript else "auto",
                video_id=video_id,
                url=url,
                title=title,
                transcript=transcript,
            )
        project = Project(channel_id=channel_id, title=title, stage_data=stage_data)
        await self.save(project)
        logger.info(f"Created project {project.id} for channel {channel_id}: {title}")
        return project

    async def save(self, project: Project) -> Project:
        self.projects[project.id] = project
        if self._persist is not None:
            try:
                await self._persist(project)
            except Exception as e:
                logger.error(f"Failed to persist project {project.id}: {e}")
        return project

    async def delete(self, project_id: str) -> None:
        self.get(project_id)
        del self.projects[project_id]
        if self._remove is not None:
            try:
                await self._remove(project_id)
            except Exception as e:
                logger.error(f"Failed to delete project {project_id} from store: {e}")
        logger.info(f"Deleted project {project_id}")

    async def reset(self, project_id: str) -> Project:
        return await self.save(reset_stage(self.get(project_id)))

    async def move(self, project_id: str, target: Stage) -> Project:
        return await self.save(move_stage(self.get(project_id), target))
