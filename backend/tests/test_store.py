"""SQLite persistence of projects, jobs and profiles, and restart recovery."""

import pytest
import pytest_asyncio

from shortfactory.db import init_database, make_engine, make_session_factory
from shortfactory.db.models import ProjectRecord
from shortfactory.db.store import JobStore, ProfileStore, ProjectStore
from shortfactory.orchestrator.stages import advance, mark_error
from shortfactory.runtime import build_runtime
from shortfactory.schemas.job import Job, JobStatus, JobStep
from shortfactory.schemas.project import Project, ProjectStatus
from shortfactory.schemas.stage import Stage
from shortfactory.schemas.stage_payloads import AudioPayload, ReferencePayload


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_database(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return make_session_factory(db_engine)


def _project() -> Project:
    project = Project(
        channel_id="chan-1",
        title="Stored",
        stage_data={Stage.REFERENCE: ReferencePayload(video_id="abc", transcript="Transcript.")},
    )
    project = advance(project, {"text": "A script."})
    return advance(project, {"file_url": "/a.wav", "duration": 3.5})


@pytest.mark.asyncio
async def test_project_round_trip_keeps_typed_payloads(session_factory):
    store = ProjectStore(session_factory)
    project = _project()

    await store.save(project)
    loaded = await store.get(project.id)

    assert loaded.current_stage == Stage.AUDIO
    assert isinstance(loaded.stage_data[Stage.AUDIO], AudioPayload)
    assert loaded.stage_data[Stage.AUDIO].duration == 3.5
    assert loaded.status == ProjectStatus.READY


@pytest.mark.asyncio
async def test_project_save_overwrites_and_delete_removes(session_factory):
    store = ProjectStore(session_factory)
    project = _project()
    await store.save(project)
    await store.save(mark_error(project, "Error at stage audio: quota"))

    projects = await store.load_all()
    assert len(projects) == 1
    assert projects[0].error_message == "Error at stage audio: quota"

    await store.delete(project.id)
    assert await store.get(project.id) is None
    assert await store.load_all() == []


@pytest.mark.asyncio
async def test_unreadable_rows_are_skipped(session_factory):
    store = ProjectStore(session_factory)
    await store.save(_project())
    async with session_factory() as session:
        session.add(ProjectRecord(
            id="broken", channel_id="chan-1", current_stage="script", data={"title": 42},
        ))
        await session.commit()

    projects = await store.load_all()
    assert len(projects) == 1
    assert projects[0].id != "broken"


@pytest.mark.asyncio
async def test_profiles_round_trip(session_factory, profile):
    store = ProfileStore(session_factory)
    await store.save(profile)
    loaded = await store.load_all()
    assert loaded == [profile]


# ---------------------------------------------------------------------------
# Restart recovery
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_runtime_reloads_state_and_fails_interrupted_jobs(
    db_engine, session_factory, config, providers, file_manager, profile,
):
    await ProfileStore(session_factory).save(profile)
    await ProjectStore(session_factory).save(_project())
    jobs = JobStore(session_factory)
    interrupted = Job(
        theme="cats", channel_id=profile.id, status=JobStatus.PROCESSING, current_step=JobStep.IMAGE_GENERATION,
    )
    finished = Job(theme="dogs", channel_id=profile.id, status=JobStatus.REVIEW_PENDING)
    await jobs.save(interrupted)
    await jobs.save(finished)

    runtime = await build_runtime(config, bind=db_engine, providers=providers, file_manager=file_manager)

    assert runtime.get_profile(profile.id) == profile
    assert len(runtime.projects.list_projects()) == 1

    restored = runtime.jobs.jobs[interrupted.id]
    assert restored.status == JobStatus.FAILED
    assert restored.logs[-1].level == "ERROR"
    assert restored.logs[-1].message == "Interrupted at image_generation by restart"
    assert runtime.jobs.jobs[finished.id].status == JobStatus.REVIEW_PENDING


@pytest.mark.asyncio
async def test_project_changes_write_through(db_engine, session_factory, config, providers, file_manager):
    runtime = await build_runtime(config, bind=db_engine, providers=providers, file_manager=file_manager)

    project = await runtime.projects.create_project("chan-1", "Fresh", video_id="vid-9")
    await runtime.projects.move(project.id, Stage.IMAGES)

    stored = await ProjectStore(session_factory).get(project.id)
    assert stored.current_stage == Stage.IMAGES

    await runtime.projects.delete(project.id)
    assert await ProjectStore(session_factory).get(project.id) is None
