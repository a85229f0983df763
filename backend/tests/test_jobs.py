"""Job engine: sub-step failure tiers, review stop and rendering."""

import pytest

from shortfactory.errors import JobStateError
from shortfactory.orchestrator.jobs import build_storyboard, split_script
from shortfactory.schemas.generation import ScriptAndPrompts
from shortfactory.schemas.job import JobStatus, JobStep, VideoMetadata
from shortfactory.runtime import create_runtime
from shortfactory.services.renderer import FFMPEG_INSTALL_HINT

from conftest import CATS_SCRIPT


# ---------------------------------------------------------------------------
# Storyboard helpers
# ---------------------------------------------------------------------------


def test_split_script_spreads_sentences_across_segments():
    script = "One. Two! Three? Four."
    assert split_script(script, 2, 0) == "One. Two!"
    assert split_script(script, 2, 1) == "Three? Four."
    assert split_script(script, 3, 2) == ""


def test_split_script_without_punctuation_is_one_sentence():
    assert split_script("no punctuation here", 3, 0) == "no punctuation here"
    assert split_script("no punctuation here", 3, 1) == ""


def test_build_storyboard_time_ranges():
    storyboard = build_storyboard(CATS_SCRIPT, ["a", "b", "c"], segment_seconds=5)
    assert [s.time_range for s in storyboard] == ["0s - 5s", "5s - 10s", "10s - 15s"]
    assert storyboard[1].script_text == "They sleep most of the day."


# ---------------------------------------------------------------------------
# Processing
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_cats_job_stops_at_review_without_audio(config, providers, file_manager, profile):
    """TTS fails, everything else succeeds: the job still reaches review."""
    providers.voice.error = RuntimeError("TTS quota exhausted")
    snapshots = []
    runtime = create_runtime(
        config, providers=providers, file_manager=file_manager, persist=False, on_job_update=snapshots.append,
    )
    runtime.profiles[profile.id] = profile

    job = runtime.jobs.create_job("cats", profile.id)
    await runtime.jobs.drain()

    assert job.status == JobStatus.REVIEW_PENDING
    assert job.current_step == JobStep.REVIEW
    assert job.progress == 90
    assert len(job.result.storyboard) == 3
    assert job.result.master_audio_url is None
    assert all(s.assets.image_url for s in job.result.storyboard)

    warnings = job.warnings()
    assert len(warnings) == 1
    assert "TTS" in warnings[0].message
    assert job.metadata.titles == ["Cats Rule"]

    # snapshots are detached copies with non-decreasing progress
    progress = [s.progress for s in snapshots]
    assert progress == sorted(progress)
    assert snapshots[0] is not job


@pytest.mark.asyncio
async def test_image_failure_is_recorded_per_segment(runtime, providers, profile):
    providers.images.fail_calls = {1}

    job = runtime.jobs.create_job("cats", profile.id)
    await runtime.jobs.drain()

    assert job.status == JobStatus.REVIEW_PENDING
    storyboard = job.result.storyboard
    assert storyboard[0].assets.image_url
    assert storyboard[1].assets.image_url is None
    assert storyboard[2].assets.image_url
    assert [w.message for w in job.warnings()] == ["Image 2/3 failed: image backend overloaded"]
    assert job.result.master_audio_url.endswith("narration.wav")


@pytest.mark.asyncio
async def test_scripting_failure_fails_the_job(runtime, providers, profile):
    providers.text.failures[ScriptAndPrompts] = RuntimeError("400 INVALID_ARGUMENT")

    job = runtime.jobs.create_job("cats", profile.id)
    await runtime.jobs.drain()

    assert job.status == JobStatus.FAILED
    assert job.result is None
    assert job.logs[-1].level == "ERROR"
    assert "scripting" in job.logs[-1].message
    assert providers.images.calls == []


@pytest.mark.asyncio
async def test_metadata_failure_is_best_effort(runtime, providers, profile):
    providers.metadata.failures[VideoMetadata] = RuntimeError("metadata model down")

    job = runtime.jobs.create_job("cats", profile.id)
    await runtime.jobs.drain()

    assert job.status == JobStatus.REVIEW_PENDING
    assert job.metadata is None
    assert any("Metadata generation failed" in w.message for w in job.warnings())


@pytest.mark.asyncio
async def test_unknown_profile_fails_the_job(runtime):
    job = runtime.jobs.create_job("cats", "no-such-channel")
    await runtime.jobs.drain()
    assert job.status == JobStatus.FAILED


@pytest.mark.asyncio
async def test_jobs_run_one_at_a_time_in_order(runtime, providers, profile):
    seen = []
    original = providers.text.generate_text

    async def tracking(prompt, schema, **kwargs):
        if schema is ScriptAndPrompts and '"second"' in prompt:
            seen.append(first.status)
        return await original(prompt, schema, **kwargs)

    providers.text.generate_text = tracking
    first = runtime.jobs.create_job("first", profile.id)
    second = runtime.jobs.create_job("second", profile.id)
    assert runtime.jobs.queue_status()["is_processing"] is True

    await runtime.jobs.drain()

    assert first.status == JobStatus.REVIEW_PENDING
    assert second.status == JobStatus.REVIEW_PENDING
    # the second job only started scripting after the first reached review
    assert seen == [JobStatus.REVIEW_PENDING]
    assert runtime.jobs.queue_status() == {"queue_length": 0, "is_processing": False}


@pytest.mark.asyncio
async def test_pending_job_waits_for_start(runtime, profile):
    job = runtime.jobs.create_job("later", profile.id, auto_start=False)
    assert job.status == JobStatus.PENDING

    runtime.jobs.start_pending(job)
    await runtime.jobs.drain()
    assert job.status == JobStatus.REVIEW_PENDING

    with pytest.raises(JobStateError):
        runtime.jobs.start_pending(job)


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_render_requires_review_pending(runtime, profile):
    job = runtime.jobs.create_job("cats", profile.id, auto_start=False)
    with pytest.raises(JobStateError):
        await runtime.jobs.render_job(job)


@pytest.mark.asyncio
async def test_render_without_ffmpeg_fails_with_install_hint(runtime, providers, profile):
    job = runtime.jobs.create_job("cats", profile.id)
    await runtime.jobs.drain()
    providers.renderer.available = False

    await runtime.jobs.render_job(job)

    assert job.status == JobStatus.FAILED
    assert job.logs[-1].level == "ERROR"
    assert job.logs[-1].message == FFMPEG_INSTALL_HINT
    assert providers.renderer.render_requests == []


@pytest.mark.asyncio
async def test_render_completes_job(runtime, providers, profile):
    job = runtime.jobs.create_job("cats", profile.id)
    await runtime.jobs.drain()

    await runtime.jobs.render_job(job)

    assert job.status == JobStatus.COMPLETED
    assert job.current_step == JobStep.DONE
    assert job.progress == 100
    assert job.output_path.endswith("final.mp4")
    request = providers.renderer.render_requests[0]
    assert len(request.image_paths) == 3
    assert (request.width, request.height) == (1080, 1920)
    assert request.audio_path is not None


@pytest.mark.asyncio
async def test_render_error_fails_job(runtime, providers, profile):
    job = runtime.jobs.create_job("cats", profile.id)
    await runtime.jobs.drain()
    providers.renderer.render_error = RuntimeError("ffmpeg exited with 1")

    await runtime.jobs.render_job(job)

    assert job.status == JobStatus.FAILED
    assert job.logs[-1].message == "Render failed: ffmpeg exited with 1"
