"""API route handlers and Pydantic request/response schemas."""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from shortfactory.errors import (
    JobStateError,
    ProjectNotFound,
    StageMismatch,
    TerminalStage,
)
from shortfactory.orchestrator.batch import BatchResult, Selection
from shortfactory.runtime import Runtime
from shortfactory.schemas.job import Job, JobStatus
from shortfactory.schemas.profile import ChannelProfile
from shortfactory.schemas.project import Project
from shortfactory.schemas.stage import Stage
from shortfactory.schemas.stage_payloads import ManualInput

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime


# ---------------------------------------------------------------------------
# Request / response schemas
# ---------------------------------------------------------------------------


class CreateProjectRequest(BaseModel):
    channel_id: str
    title: str = Field(min_length=1)
    video_id: Optional[str] = None
    url: Optional[str] = None
    transcript: Optional[str] = None


class MoveRequest(BaseModel):
    stage: Stage


class BatchRequest(BaseModel):
    # omitted -> the current selection
    project_ids: Optional[Annotated[list[str], Field(min_length=1)]] = None


class SelectionResponse(BaseModel):
    project_ids: list[str]
    stage: Optional[Stage] = None


class ManualBatchRequest(BatchRequest):
    text: Optional[str] = None
    file_url: Optional[str] = None


class ApproveRequest(BaseModel):
    project_ids: Optional[list[str]] = None
    transcripts: dict[str, str] = Field(default_factory=dict)


class BatchOutcomeResponse(BaseModel):
    project_id: str
    ok: bool
    stage: Optional[Stage] = None
    error: Optional[str] = None


class BatchResponse(BaseModel):
    succeeded: list[str]
    failed: list[BatchOutcomeResponse]
    review_ids: list[str]


class CreateJobRequest(BaseModel):
    theme: str = Field(min_length=1)
    channel_id: str
    model_channel: Optional[str] = None
    reference_script: Optional[str] = None
    reference_metadata: Optional[dict] = None
    applied_prompt_id: Optional[str] = None
    auto_start: bool = True


class QueueStatusResponse(BaseModel):
    queue_length: int
    is_processing: bool


def _batch_response(result: BatchResult) -> BatchResponse:
    return BatchResponse(
        succeeded=result.succeeded,
        failed=[
            BatchOutcomeResponse(project_id=o.project_id, ok=o.ok, stage=o.stage, error=o.error)
            for o in result.failed
        ],
        review_ids=result.review_ids,
    )


def _selection_response(selection: Selection) -> SelectionResponse:
    return SelectionResponse(project_ids=list(selection.project_ids), stage=selection.stage)


def _get_project(runtime: Runtime, project_id: str) -> Project:
    try:
        return runtime.projects.get(project_id)
    except ProjectNotFound:
        raise HTTPException(status_code=404, detail="Project not found")


def _get_job(runtime: Runtime, job_id: str) -> Job:
    job = runtime.jobs.jobs.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


@router.get("/profiles", response_model=list[ChannelProfile])
async def list_profiles(runtime: Runtime = Depends(get_runtime)):
    return list(runtime.profiles.values())


@router.post("/profiles", status_code=201, response_model=ChannelProfile)
async def create_profile(profile: ChannelProfile, runtime: Runtime = Depends(get_runtime)):
    if profile.id in runtime.profiles:
        raise HTTPException(status_code=409, detail=f"Profile {profile.id} already exists")
    return await runtime.add_profile(profile)


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


@router.get("/projects", response_model=list[Project])
async def list_projects(channel_id: Optional[str] = None, runtime: Runtime = Depends(get_runtime)):
    return runtime.projects.list_projects(channel_id)


@router.post("/projects", status_code=201, response_model=Project)
async def create_project(request: CreateProjectRequest, runtime: Runtime = Depends(get_runtime)):
    if runtime.get_profile(request.channel_id) is None:
        raise HTTPException(status_code=404, detail=f"Profile {request.channel_id} not found")
    return await runtime.projects.create_project(
        request.channel_id,
        request.title,
        video_id=request.video_id,
        url=request.url,
        transcript=request.transcript,
    )


@router.get("/projects/selection", response_model=SelectionResponse)
async def get_selection(runtime: Runtime = Depends(get_runtime)):
    return _selection_response(runtime.batch.selection)


@router.post("/projects/selection/{project_id}/toggle", response_model=SelectionResponse)
async def toggle_selection(project_id: str, runtime: Runtime = Depends(get_runtime)):
    _get_project(runtime, project_id)
    return _selection_response(runtime.batch.toggle(project_id))


@router.delete("/projects/selection", status_code=204)
async def clear_selection(runtime: Runtime = Depends(get_runtime)):
    runtime.batch.selection.clear()


@router.get("/projects/{project_id}", response_model=Project)
async def get_project(project_id: str, runtime: Runtime = Depends(get_runtime)):
    return _get_project(runtime, project_id)


@router.delete("/projects/{project_id}", status_code=204)
async def delete_project(project_id: str, runtime: Runtime = Depends(get_runtime)):
    _get_project(runtime, project_id)
    await runtime.projects.delete(project_id)


@router.post("/projects/{project_id}/reset", response_model=Project)
async def reset_project(project_id: str, runtime: Runtime = Depends(get_runtime)):
    _get_project(runtime, project_id)
    return await runtime.projects.reset(project_id)


@router.post("/projects/{project_id}/move", response_model=Project)
async def move_project(project_id: str, request: MoveRequest, runtime: Runtime = Depends(get_runtime)):
    _get_project(runtime, project_id)
    return await runtime.projects.move(project_id, request.stage)


@router.post("/projects/batch/auto", response_model=BatchResponse)
async def batch_auto(request: BatchRequest, runtime: Runtime = Depends(get_runtime)):
    result = await runtime.batch.batch_auto_advance(request.project_ids)
    return _batch_response(result)


@router.post("/projects/batch/manual", response_model=BatchResponse)
async def batch_manual(request: ManualBatchRequest, runtime: Runtime = Depends(get_runtime)):
    manual = ManualInput(text=request.text, file_url=request.file_url)
    try:
        result = await runtime.batch.batch_manual_advance(manual, request.project_ids)
    except StageMismatch as e:
        raise HTTPException(status_code=422, detail=str(e))
    except TerminalStage as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _batch_response(result)


@router.post("/projects/batch/approve", response_model=BatchResponse)
async def batch_approve(request: ApproveRequest, runtime: Runtime = Depends(get_runtime)):
    result = await runtime.batch.approve_reviews(request.project_ids, request.transcripts)
    return _batch_response(result)


@router.post("/projects/batch/delete", response_model=BatchResponse)
async def batch_delete(request: BatchRequest, runtime: Runtime = Depends(get_runtime)):
    return _batch_response(await runtime.batch.batch_delete(request.project_ids))


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------


@router.post("/jobs", status_code=202, response_model=Job)
async def create_job(request: CreateJobRequest, runtime: Runtime = Depends(get_runtime)):
    if runtime.get_profile(request.channel_id) is None:
        raise HTTPException(status_code=404, detail=f"Profile {request.channel_id} not found")
    job = runtime.jobs.create_job(
        request.theme,
        request.channel_id,
        model_channel=request.model_channel,
        reference_script=request.reference_script,
        reference_metadata=request.reference_metadata,
        applied_prompt_id=request.applied_prompt_id,
        auto_start=request.auto_start,
    )
    if not request.auto_start:
        await runtime.jobs.save(job)
    return job.model_copy(deep=True)


@router.get("/jobs", response_model=list[Job])
async def list_jobs(runtime: Runtime = Depends(get_runtime)):
    return sorted(runtime.jobs.jobs.values(), key=lambda j: j.created_at, reverse=True)


@router.get("/jobs/queue", response_model=QueueStatusResponse)
async def queue_status(runtime: Runtime = Depends(get_runtime)):
    return runtime.jobs.queue_status()


@router.get("/jobs/{job_id}", response_model=Job)
async def get_job(job_id: str, runtime: Runtime = Depends(get_runtime)):
    return _get_job(runtime, job_id)


@router.post("/jobs/{job_id}/start", status_code=202, response_model=Job)
async def start_job(job_id: str, runtime: Runtime = Depends(get_runtime)):
    job = _get_job(runtime, job_id)
    try:
        runtime.jobs.start_pending(job)
    except JobStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return job


@router.post("/jobs/{job_id}/render", status_code=202, response_model=Job)
async def render_job(job_id: str, background_tasks: BackgroundTasks, runtime: Runtime = Depends(get_runtime)):
    job = _get_job(runtime, job_id)
    if job.status != JobStatus.REVIEW_PENDING:
        raise HTTPException(
            status_code=409,
            detail=f"Job is {job.status.value}, only review_pending jobs can be rendered",
        )
    background_tasks.add_task(runtime.jobs.render_job, job)
    return job


@router.get("/health")
async def health():
    return {"status": "ok"}

