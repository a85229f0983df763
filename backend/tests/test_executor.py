"""Automatic stage generation for single projects."""

from pathlib import Path

import pytest

from shortfactory.errors import MissingStageData, NoAutoGenerator, NoCredentials, TerminalStage
from shortfactory.orchestrator.stages import advance, complete_stage, move_stage
from shortfactory.schemas.project import Project, ProjectFlag, ProjectStatus
from shortfactory.schemas.stage import Stage
from shortfactory.schemas.stage_payloads import (
    AudioPayload,
    ImagesPayload,
    ReferencePayload,
    ScriptPayload,
    SubtitlesPayload,
)


def _reference(transcript=None) -> Project:
    return Project(
        channel_id="chan-1",
        title="Reference video",
        stage_data={Stage.REFERENCE: ReferencePayload(video_id="vid-1", title="Reference video", transcript=transcript)},
    )


def _at_script(text="First sentence here. Second sentence here.") -> Project:
    return advance(_reference("A transcript."), {"text": text})


@pytest.mark.asyncio
async def test_acquire_transcript_enriches_reference_and_flags_review(runtime, providers):
    project = await runtime.executor.acquire_transcript(_reference())

    reference = project.stage_data[Stage.REFERENCE]
    assert reference.transcript == "Transcript of vid-1."
    assert reference.view_count == 1234
    assert reference.channel_name == "Origin"
    assert reference.mode == "auto"
    assert project.flag == ProjectFlag.REVIEW
    assert project.current_stage == Stage.REFERENCE
    assert providers.transcripts.calls == ["vid-1"]


@pytest.mark.asyncio
async def test_acquire_transcript_without_provider(runtime, providers):
    providers.transcripts = None
    with pytest.raises(NoCredentials):
        await runtime.executor.acquire_transcript(_reference())


@pytest.mark.asyncio
async def test_acquire_transcript_needs_video_id(runtime):
    project = Project(channel_id="chan-1", title="No reference")
    with pytest.raises(MissingStageData):
        await runtime.executor.acquire_transcript(project)


@pytest.mark.asyncio
async def test_script_generation_fills_empty_script_stage_in_place(runtime, providers):
    project = advance(_reference("Original transcript."), None)
    assert project.status == ProjectStatus.PENDING

    updated = await runtime.executor.auto_advance(project)

    assert updated.current_stage == Stage.SCRIPT
    script = updated.stage_data[Stage.SCRIPT]
    assert isinstance(script, ScriptPayload)
    assert script.mode == "auto"
    assert script.title == "The Story"
    assert script.generation_snapshot.model_id == "fake-model"
    assert script.generation_snapshot.rewrite_prompt
    assert updated.status == ProjectStatus.READY
    # the transcript is what gets rewritten
    assert "Original transcript." in providers.text.calls[0][1]


@pytest.mark.asyncio
async def test_audio_generation_advances_and_records_duration(runtime, providers, profile):
    updated = await runtime.executor.auto_advance(_at_script())

    assert updated.current_stage == Stage.AUDIO
    audio = updated.stage_data[Stage.AUDIO]
    assert isinstance(audio, AudioPayload)
    assert audio.duration == 2.0
    assert audio.provider == "fake-tts"
    assert Path(audio.file_url).exists()
    assert providers.voice.calls[0][1] == profile.voice_profile


@pytest.mark.asyncio
async def test_pipeline_runs_through_compression_subtitles_images_and_video(runtime, providers):
    project = _at_script()
    for _ in range(5):
        project = await runtime.executor.auto_advance(project)

    assert project.current_stage == Stage.VIDEO
    assert project.stage_data[Stage.AUDIO_COMPRESS].file_url.endswith("narration.mp3")

    subtitles = project.stage_data[Stage.SUBTITLES]
    assert isinstance(subtitles, SubtitlesPayload)
    assert subtitles.cues[-1].end == pytest.approx(2.0)
    assert subtitles.srt_content.startswith("1\n00:00:00,000 --> ")

    images = project.stage_data[Stage.IMAGES]
    assert isinstance(images, ImagesPayload)
    assert len(images.image_urls) == 1
    assert images.prompts == ["scene one"]

    request = providers.renderer.render_requests[0]
    assert request.audio_path.name == "narration.mp3"
    assert request.segment_seconds == pytest.approx(2.0 / len(images.image_urls))


@pytest.mark.asyncio
async def test_thumbnail_uses_script_thumb_text(runtime, providers):
    project = move_stage(
        advance(_reference("t"), {"text": "Script.", "thumb_text": "BIG NEWS"}),
        Stage.PUBLISH_VIDEO,
    )
    project = complete_stage(project, {"url": "https://youtu.be/x"})

    updated = await runtime.executor.auto_advance(project)

    assert updated.current_stage == Stage.THUMBNAIL
    assert updated.stage_data[Stage.THUMBNAIL].text == "BIG NEWS"
    assert "BIG NEWS" in providers.images.calls[-1]


@pytest.mark.asyncio
async def test_publish_stage_has_no_generator(runtime):
    project = complete_stage(move_stage(_at_script(), Stage.VIDEO), {"file_url": "/out/final.mp4"})
    with pytest.raises(NoAutoGenerator):
        await runtime.executor.auto_advance(project)


@pytest.mark.asyncio
async def test_missing_prerequisite_raises(runtime):
    project = complete_stage(move_stage(_reference("t"), Stage.AUDIO), {"file_url": "/a.wav"})
    # subtitles need the script, which was skipped by the move
    project = advance(project, {"file_url": "/a.mp3"})
    with pytest.raises(MissingStageData):
        await runtime.executor.auto_advance(project)


@pytest.mark.asyncio
async def test_auto_advance_at_last_stage(runtime):
    project = Project(
        channel_id="chan-1",
        title="Done",
        current_stage=Stage.PUBLISH_THUMBNAIL,
        stage_data={Stage.PUBLISH_THUMBNAIL: {"confirmed": True}},
    )
    with pytest.raises(TerminalStage):
        await runtime.executor.auto_advance(project)
