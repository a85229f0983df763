"""Wiring of settings, providers, stores and orchestration services.

The CLI and the API both work through one ``Runtime``.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from shortfactory.config import Settings, settings
from shortfactory.db import init_database, make_session_factory
from shortfactory.db.store import JobStore, ProfileStore, ProjectStore
from shortfactory.orchestrator.batch import BatchOrchestrator
from shortfactory.orchestrator.executor import StageExecutor
from shortfactory.orchestrator.jobs import JobEngine, JobUpdateCallback
from shortfactory.orchestrator.projects import ProjectService
from shortfactory.schemas.profile import ChannelProfile
from shortfactory.services.file_manager import FileManager
from shortfactory.services.providers import Providers, build_providers

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    config: Settings
    files: FileManager
    providers: Providers
    projects: ProjectService
    jobs: JobEngine
    executor: StageExecutor
    batch: BatchOrchestrator
    profiles: dict[str, ChannelProfile] = field(default_factory=dict)
    profile_store: Optional[ProfileStore] = None
    project_store: Optional[ProjectStore] = None
    job_store: Optional[JobStore] = None

    def get_profile(self, channel_id: str) -> Optional[ChannelProfile]:
        return self.profiles.get(channel_id)

    async def add_profile(self, profile: ChannelProfile) -> ChannelProfile:
        self.profiles[profile.id] = profile
        if self.profile_store is not None:
            try:
                await self.profile_store.save(profile)
            except Exception as e:
                logger.error(f"Failed to persist profile {profile.id}: {e}")
        return profile

    async def load(self) -> None:
        """Populate profiles, projects and jobs from the stores."""
        if self.profile_store is not None:
            for profile in await self.profile_store.load_all():
                self.profiles[profile.id] = profile
        if self.project_store is not None:
            self.projects.load(await self.project_store.load_all())
        if self.job_store is not None:
            self.jobs.load(await self.job_store.load_all())


def create_runtime(
    config: Optional[Settings] = None,
    *,
    providers: Optional[Providers] = None,
    file_manager: Optional[FileManager] = None,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    persist: bool = True,
    on_job_update: Optional[JobUpdateCallback] = None,
) -> Runtime:
    """Assemble a runtime without touching the database.

    Args:
        config: Settings to use (defaults to the module singleton)
        providers: Provider bundle; built from config when omitted
        file_manager: Artifact storage; rooted at ``storage.tmp_dir`` when omitted
        session_factory: Session factory for the stores (defaults to the module engine)
        persist: Set False to keep everything in memory
        on_job_update: Observer receiving job snapshots
    """
    config = config or settings
    files = file_manager or FileManager(config.storage.tmp_dir)
    providers = providers or build_providers(config, files)

    project_store = job_store = profile_store = None
    if persist:
        project_store = ProjectStore(session_factory)
        job_store = JobStore(session_factory)
        profile_store = ProfileStore(session_factory)

    profiles: dict[str, ChannelProfile] = {}
    get_profile = profiles.get

    def get_config() -> Settings:
        return config

    projects = ProjectService(
        persist=project_store.save if project_store else None,
        remove=project_store.delete if project_store else None,
    )
    executor = StageExecutor(providers, get_profile, get_config, files)
    jobs = JobEngine(
        providers,
        get_profile,
        get_config,
        on_job_update=on_job_update,
        file_manager=files,
        persist=job_store.save if job_store else None,
    )
    return Runtime(
        config=config,
        files=files,
        providers=providers,
        projects=projects,
        jobs=jobs,
        executor=executor,
        batch=BatchOrchestrator(projects, executor),
        profiles=profiles,
        profile_store=profile_store,
        project_store=project_store,
        job_store=job_store,
    )


async def build_runtime(
    config: Optional[Settings] = None,
    *,
    bind: Optional[AsyncEngine] = None,
    **kwargs,
) -> Runtime:
    """Create the runtime, initialise the schema and load persisted state."""
    if bind is not None and "session_factory" not in kwargs:
        kwargs["session_factory"] = make_session_factory(bind)
    runtime = create_runtime(config, **kwargs)
    if runtime.project_store is not None:
        await init_database(bind)
        await runtime.load()
    return runtime
