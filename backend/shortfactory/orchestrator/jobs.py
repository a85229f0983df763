"""Job execution engine for the single-shot automated generation flow.

Owns an in-memory FIFO and runs at most one job at a time. A job goes
through ordered sub-steps and stops at review; rendering is a separate,
human-triggered call:

    queued -> processing -> review_pending -> {completed | failed}

``pending`` is the alternate initial state for jobs saved without
auto-starting.

Failure tiers:
- Scripting is critical: failure ends the job ``failed`` with no result.
- Image generation is per segment: a failed image leaves that segment
  without an asset and records a warning.
- Voice synthesis and metadata are best-effort: failure records a warning
  and the job continues without that asset.

Every mutation emits a deep snapshot through ``on_job_update``.
"""

import asyncio
import logging
import math
import re
from collections import deque
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from shortfactory.config import Settings
from shortfactory.errors import JobStateError, ProfileNotFound, RenderUnavailable
from shortfactory.schemas.job import (
    Job,
    JobResult,
    JobStatus,
    JobStep,
    LogEntry,
    LogLevel,
    StoryboardSegment,
)
from shortfactory.schemas.profile import ChannelProfile
from shortfactory.services.file_manager import FileManager
from shortfactory.services.providers import Providers
from shortfactory.services.renderer import FFMPEG_INSTALL_HINT, RenderRequest
from shortfactory.services.scripting import generate_script_and_prompts, generate_video_metadata

logger = logging.getLogger(__name__)

JobUpdateCallback = Callable[[Job], None]
ProfileLookup = Callable[[str], Optional[ChannelProfile]]
ConfigLookup = Callable[[], Settings]
JobPersist = Callable[[Job], Awaitable[None]]

_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]+")

# Progress milestones
PROGRESS_SCRIPTING = 5
PROGRESS_SCRIPTED = 20
PROGRESS_IMAGES_START = 25
PROGRESS_IMAGES_SPAN = 25
PROGRESS_VOICE = 55
PROGRESS_VOICED = 70
PROGRESS_METADATA = 75
PROGRESS_METADATA_DONE = 85
PROGRESS_REVIEW = 90
PROGRESS_RENDERING = 92
PROGRESS_DONE = 100


def split_script(script: str, total_segments: int, index: int) -> str:
    """Return the sentences of ``script`` that belong to segment ``index``.

    Sentences are runs ending in terminal punctuation; a script with none
    counts as one sentence. They are spread across segments by ceiling
    division, preserving order.
    """
    sentences = _SENTENCE_RE.findall(script) or [script]
    per_segment = math.ceil(len(sentences) / max(total_segments, 1))
    start = index * per_segment
    return " ".join(s.strip() for s in sentences[start:start + per_segment]).strip()


def build_storyboard(script: str, visual_prompts: list[str], segment_seconds: int = 5) -> list[StoryboardSegment]:
    total = len(visual_prompts)
    return [
        StoryboardSegment(
            id=i,
            time_range=f"{i * segment_seconds}s - {(i + 1) * segment_seconds}s",
            script_text=split_script(script, total, i),
            visual_prompt=prompt,
            duration=segment_seconds,
        )
        for i, prompt in enumerate(visual_prompts)
    ]


class JobEngine:
    """Sequential job runner.

    Args:
        providers: Text, image, voice and render providers
        get_profile: Channel profile lookup by id
        get_config: Current settings lookup
        on_job_update: Observer receiving a snapshot after every mutation
        file_manager: Artifact storage (defaults to settings.storage.tmp_dir)
        persist: Optional async persistence hook; failures are logged only
    """

    def __init__(
        self,
        providers: Providers,
        get_profile: ProfileLookup,
        get_config: ConfigLookup,
        on_job_update: Optional[JobUpdateCallback] = None,
        file_manager: Optional[FileManager] = None,
        persist: Optional[JobPersist] = None,
    ) -> None:
        self._providers = providers
        self._get_profile = get_profile
        self._get_config = get_config
        self._on_job_update = on_job_update
        self._files = file_manager or FileManager()
        self._persist = persist
        self._queue: deque[Job] = deque()
        self._processing = False
        self._runner: Optional[asyncio.Task] = None
        self.jobs: dict[str, Job] = {}

    # --- queue -----------------------------------------------------------

    def create_job(
        self,
        theme: str,
        channel_id: str,
        *,
        model_channel: Optional[str] = None,
        reference_script: Optional[str] = None,
        reference_metadata: Optional[dict[str, Any]] = None,
        applied_prompt_id: Optional[str] = None,
        auto_start: bool = True,
    ) -> Job:
        """Create a job and enqueue it, or save it as pending."""
        job = Job(
            theme=theme,
            channel_id=channel_id,
            model_channel=model_channel,
            reference_script=reference_script,
            reference_metadata=reference_metadata,
            applied_prompt_id=applied_prompt_id,
            status=JobStatus.QUEUED if auto_start else JobStatus.PENDING,
        )
        job.logs.append(self._log("INFO", f"Job created for theme: {theme}"))
        self.jobs[job.id] = job
        if auto_start:
            self.enqueue(job)
        else:
            self._emit(job)
        return job

    def enqueue(self, job: Job) -> None:
        """Append a job to the FIFO; start the runner if idle.

        Must be called from inside a running event loop.
        """
        self.jobs[job.id] = job
        self._queue.append(job)
        logger.info(f"Job {job.id} queued. Queue length: {len(self._queue)}")
        self._emit(job)
        if not self._processing:
            self._processing = True
            self._runner = asyncio.get_running_loop().create_task(self._run_queue())

    def start_pending(self, job: Job) -> None:
        if job.status != JobStatus.PENDING:
            raise JobStateError(f"Job {job.id} is {job.status.value}, not pending")
        job.status = JobStatus.QUEUED
        self.enqueue(job)

    def load(self, jobs: list[Job]) -> None:
        """Restore persisted jobs. Jobs cut off mid-run by a restart are failed."""
        for job in jobs:
            if job.status in (JobStatus.QUEUED, JobStatus.PROCESSING):
                job.status = JobStatus.FAILED
                job.logs.append(self._log("ERROR", f"Interrupted at {job.current_step.value} by restart"))
            self.jobs[job.id] = job
        logger.info(f"Loaded {len(jobs)} jobs")

    def queue_status(self) -> dict[str, Any]:
        return {"queue_length": len(self._queue), "is_processing": self._processing}

    async def drain(self) -> None:
        """Wait until the queue is empty and no job is running."""
        while self._runner is not None and not self._runner.done():
            await self._runner

    async def _run_queue(self) -> None:
        try:
            while self._queue:
                job = self._queue.popleft()
                await self.process_job(job)
        finally:
            self._processing = False

    # --- processing ------------------------------------------------------

    async def process_job(self, job: Job) -> Job:
        """Run the generation sub-steps and stop at review.

        Never raises: a critical failure is recorded on the job.
        """
        try:
            await self._run_steps(job)
        except Exception as e:
            logger.error(f"Job {job.id} failed at {job.current_step.value}: {e}", exc_info=True)
            self._update(
                job,
                log=("ERROR", f"Pipeline failed at {job.current_step.value}: {e}"),
                status=JobStatus.FAILED,
                result=None,
            )
        await self.save(job)
        return job

    async def _run_steps(self, job: Job) -> None:
        profile = self._get_profile(job.channel_id)
        if profile is None:
            raise ProfileNotFound(f"Profile {job.channel_id} not found")
        config = self._get_config()

        # Scripting (critical)
        self._update(
            job,
            log=("INFO", "Generating script..."),
            status=JobStatus.PROCESSING,
            current_step=JobStep.SCRIPTING,
            progress=PROGRESS_SCRIPTING,
        )
        generated = await generate_script_and_prompts(
            self._providers.text,
            profile,
            job.theme,
            model_channel=job.model_channel,
            reference_script=job.reference_script,
            language=config.pipeline.language,
        )
        script = generated.script
        storyboard = build_storyboard(script, generated.visual_prompts, config.pipeline.segment_seconds)
        self._update(
            job,
            log=("SUCCESS", f"Script generated: {len(script)} chars, {len(storyboard)} scenes"),
            progress=PROGRESS_SCRIPTED,
            result=JobResult(script=script, storyboard=storyboard, raw_prompts=list(generated.visual_prompts)),
        )

        # Image generation, one call per segment
        self._update(
            job,
            log=("INFO", f"Generating {len(storyboard)} images..."),
            current_step=JobStep.IMAGE_GENERATION,
            progress=PROGRESS_IMAGES_START,
        )
        width, height = profile.dimensions
        total = len(storyboard)
        for i, segment in enumerate(storyboard):
            prompt = ", ".join(p for p in (segment.visual_prompt, profile.visual_style) if p)
            try:
                paths = await self._providers.images.generate(prompt, width, height, 1, owner_id=job.id)
                if paths:
                    segment.assets.image_url = paths[0]
                entry = ("INFO", f"Image {i + 1}/{total} generated")
            except Exception as e:
                logger.warning(f"Job {job.id}: image {i + 1}/{total} failed: {e}")
                entry = ("WARN", f"Image {i + 1}/{total} failed: {e}")
            self._update(
                job,
                log=entry,
                progress=PROGRESS_IMAGES_START + math.floor((i + 1) / total * PROGRESS_IMAGES_SPAN),
            )

        # Voice synthesis (best-effort)
        self._update(
            job,
            log=("INFO", "Synthesizing narration..."),
            current_step=JobStep.VOICE_SYNTHESIS,
            progress=PROGRESS_VOICE,
        )
        voice_id = profile.voice_profile or config.pipeline.default_voice
        try:
            wav = await self._providers.voice.synthesize(script, voice_id)
            audio_path = self._files.save_audio(job.id, wav)
            job.result.master_audio_url = str(audio_path)
            self._update(job, log=("SUCCESS", "Narration generated"))
        except Exception as e:
            logger.warning(f"Job {job.id}: TTS failed: {e}")
            self._update(job, log=("WARN", f"TTS failed: {e}. Continuing without audio."))
        self._update(job, progress=PROGRESS_VOICED)

        # Metadata generation (best-effort)
        self._update(
            job,
            log=("INFO", "Generating metadata..."),
            current_step=JobStep.METADATA_GENERATION,
            progress=PROGRESS_METADATA,
        )
        try:
            metadata = await generate_video_metadata(
                self._providers.metadata, profile, script, language=config.pipeline.language,
            )
            title = metadata.titles[0] if metadata.titles else "OK"
            self._update(job, log=("SUCCESS", f"Metadata: {title}"), metadata=metadata)
        except Exception as e:
            logger.warning(f"Job {job.id}: metadata failed: {e}")
            self._update(job, log=("WARN", f"Metadata generation failed: {e}"))
        self._update(job, progress=PROGRESS_METADATA_DONE)

        # Stop for human review; rendering is triggered separately
        self._update(
            job,
            log=("INFO", "Waiting for human review before rendering"),
            current_step=JobStep.REVIEW,
            status=JobStatus.REVIEW_PENDING,
            progress=PROGRESS_REVIEW,
        )

    async def render_job(self, job: Job) -> Job:
        """Render a reviewed job into a video.

        Raises:
            JobStateError: If the job is not waiting for review
        """
        if job.status != JobStatus.REVIEW_PENDING:
            raise JobStateError(f"Job {job.id} is {job.status.value}, not review_pending")

        renderer = self._providers.renderer
        if not await asyncio.to_thread(renderer.is_available):
            logger.error(f"Job {job.id}: {RenderUnavailable.__name__}: {FFMPEG_INSTALL_HINT}")
            self._update(job, log=("ERROR", FFMPEG_INSTALL_HINT), status=JobStatus.FAILED)
            await self.save(job)
            return job

        self._update(
            job,
            log=("INFO", "Rendering with ffmpeg..."),
            status=JobStatus.PROCESSING,
            current_step=JobStep.RENDERING,
            progress=PROGRESS_RENDERING,
        )
        try:
            request = self._render_request(job)
            output = await renderer.render(request)
            self._update(
                job,
                log=("SUCCESS", f"Render complete: {output}"),
                status=JobStatus.COMPLETED,
                current_step=JobStep.DONE,
                progress=PROGRESS_DONE,
                output_path=str(output),
            )
        except Exception as e:
            logger.error(f"Job {job.id}: render failed: {e}")
            self._update(job, log=("ERROR", f"Render failed: {e}"), status=JobStatus.FAILED)
        await self.save(job)
        return job

    def _render_request(self, job: Job) -> RenderRequest:
        if job.result is None:
            raise ValueError("Job has no generated result to render")
        profile = self._get_profile(job.channel_id)
        width, height = profile.dimensions if profile else (1080, 1920)
        images = [Path(s.assets.image_url) for s in job.result.storyboard if s.assets.image_url]
        audio = Path(job.result.master_audio_url) if job.result.master_audio_url else None
        seconds = job.result.storyboard[0].duration if job.result.storyboard else 5
        return RenderRequest(
            image_paths=images,
            audio_path=audio,
            output_path=self._files.get_output_path(job.id),
            segment_seconds=seconds,
            width=width,
            height=height,
        )

    # --- helpers ---------------------------------------------------------

    @staticmethod
    def _log(level: LogLevel, message: str) -> LogEntry:
        return LogEntry(level=level, message=message)

    def _update(self, job: Job, log: Optional[tuple[LogLevel, str]] = None, **changes: Any) -> None:
        for name, value in changes.items():
            setattr(job, name, value)
        if log is not None:
            job.logs.append(self._log(*log))
        self._emit(job)

    def _emit(self, job: Job) -> None:
        if self._on_job_update is not None:
            self._on_job_update(job.model_copy(deep=True))

    async def save(self, job: Job) -> None:
        if self._persist is None:
            return
        try:
            await self._persist(job)
        except Exception as e:
            logger.error(f"Failed to persist job {job.id}: {e}")
