"""Automatic stage generation for a single project.

``auto_advance`` makes one generation call per project per invocation:

- if the current stage has no content yet (e.g. right after a transcript
  approval), the generator for the current stage fills it in place;
- otherwise the generator for the next stage runs and the project advances.

Reference acquisition (transcript scraping) is its own entry point because
it ends in a human review hand-off rather than an advance.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, Callable, Optional

from shortfactory.config import Settings
from shortfactory.errors import (
    MissingStageData,
    NoAutoGenerator,
    NoCredentials,
    ProfileNotFound,
    TerminalStage,
)
from shortfactory.orchestrator.jobs import ConfigLookup, ProfileLookup
from shortfactory.orchestrator.stages import advance, complete_stage, mark_review
from shortfactory.orchestrator.state import next_stage, stage_has_content
from shortfactory.schemas.profile import ChannelProfile
from shortfactory.schemas.project import Project
from shortfactory.schemas.stage import Stage
from shortfactory.schemas.stage_payloads import (
    AudioCompressPayload,
    AudioPayload,
    ImagesPayload,
    ReferencePayload,
    ScriptGenerationSnapshot,
    ScriptPayload,
    StagePayload,
    SubtitlesPayload,
    ThumbnailPayload,
    VideoPayload,
)
from shortfactory.services.audio import wav_duration
from shortfactory.services.file_manager import FileManager
from shortfactory.services.providers import Providers
from shortfactory.services.renderer import RenderRequest
from shortfactory.services.scripting import (
    generate_scene_prompts,
    rewrite_transcript,
    structure_script,
)
from shortfactory.services.subtitles import build_cues, format_srt, smart_chunk_script

logger = logging.getLogger(__name__)

Generator = Callable[[Project, ChannelProfile, Settings], Awaitable[StagePayload]]

MAX_SCENES = 12


def _require(project: Project, stage: Stage, model: type[StagePayload]):
    payload = project.stage_data.get(stage)
    if not isinstance(payload, model) or not payload.has_content():
        raise MissingStageData(f"Project {project.id} has no {stage.value} data")
    return payload


class StageExecutor:
    """Runs the generator registered for a stage and applies the transition."""

    def __init__(
        self,
        providers: Providers,
        get_profile: ProfileLookup,
        get_config: ConfigLookup,
        file_manager: Optional[FileManager] = None,
    ) -> None:
        self._providers = providers
        self._get_profile = get_profile
        self._get_config = get_config
        self._files = file_manager or FileManager()
        self.generators: dict[Stage, Generator] = {
            Stage.SCRIPT: self._generate_script,
            Stage.AUDIO: self._generate_audio,
            Stage.AUDIO_COMPRESS: self._compress_audio,
            Stage.SUBTITLES: self._generate_subtitles,
            Stage.IMAGES: self._generate_images,
            Stage.VIDEO: self._render_video,
            Stage.THUMBNAIL: self._generate_thumbnail,
        }

    def _profile_for(self, project: Project) -> ChannelProfile:
        profile = self._get_profile(project.channel_id)
        if profile is None:
            raise ProfileNotFound(f"Profile not found for channel {project.channel_id}")
        return profile

    async def auto_advance(self, project: Project) -> Project:
        """Generate one stage payload for the project and apply it.

        Raises:
            TerminalStage: If the project is complete
            NoAutoGenerator: If the target stage must be supplied manually
            MissingStageData: If an earlier payload the generator needs is absent
        """
        if project.current_stage == Stage.REFERENCE and not stage_has_content(project, Stage.REFERENCE):
            return await self.acquire_transcript(project)

        profile = self._profile_for(project)
        config = self._get_config()

        if not stage_has_content(project, project.current_stage):
            target = project.current_stage
            payload = await self._generate(target, project, profile, config)
            logger.info(f"Project {project.id}: filled {target.value} in place")
            return complete_stage(project, payload)

        target = next_stage(project.current_stage)
        if target is None:
            raise TerminalStage(f"Project {project.id} is already at the last stage")
        payload = await self._generate(target, project, profile, config)
        return advance(project, payload)

    async def _generate(
        self, stage: Stage, project: Project, profile: ChannelProfile, config: Settings,
    ) -> StagePayload:
        generator = self.generators.get(stage)
        if generator is None:
            raise NoAutoGenerator(
                f"No automatic generator for stage {stage.value}; supply the data manually"
            )
        logger.info(f"Project {project.id}: generating {stage.value}")
        return await generator(project, profile, config)

    async def acquire_transcript(self, project: Project) -> Project:
        """Scrape the reference transcript and hand the project to review.

        Raises:
            MissingStageData: If the project has no reference video id
            NoCredentials: If no transcript provider is configured
        """
        reference = project.stage_data.get(Stage.REFERENCE)
        if not isinstance(reference, ReferencePayload) or not reference.video_id:
            raise MissingStageData(f"Project {project.id} has no reference video")
        if self._providers.transcripts is None:
            raise NoCredentials("Transcript provider not configured (missing Apify token)")

        fetched = await self._providers.transcripts.fetch(reference.video_id)
        meta = fetched.metadata
        enriched = reference.model_copy(update={
            "mode": "auto",
            "transcript": fetched.transcript,
            "description": meta.description or reference.description,
            "view_count": meta.view_count if meta.view_count is not None else reference.view_count,
            "published_at": meta.published_at or reference.published_at,
            "duration": meta.duration or reference.duration,
            "channel_name": meta.channel_name or reference.channel_name,
            "title": meta.title or reference.title,
        })
        logger.info(
            f"Project {project.id}: transcript acquired ({len(fetched.transcript)} chars), awaiting review"
        )
        return mark_review(complete_stage(project, enriched))

    # --- generators ------------------------------------------------------

    async def _generate_script(self, project: Project, profile: ChannelProfile, config: Settings) -> ScriptPayload:
        reference = _require(project, Stage.REFERENCE, ReferencePayload)
        language = config.pipeline.language
        rewritten, rewrite_prompt = await rewrite_transcript(
            self._providers.text, profile, reference.transcript, language=language,
        )
        structure, structure_prompt = await structure_script(
            self._providers.text, profile, rewritten.text, language=language,
        )
        return ScriptPayload(
            mode="auto",
            text=rewritten.text,
            prompt_used=rewrite_prompt,
            title=structure.title,
            description=structure.description,
            thumb_text=structure.thumb_text,
            tags=structure.tags,
            generation_snapshot=ScriptGenerationSnapshot(
                model_id=self._providers.text.model_id,
                provider=config.providers.scripting,
                rewrite_prompt=rewrite_prompt,
                structure_prompt=structure_prompt,
                prompt_version_id=profile.active_prompt_id,
                generated_at=datetime.now(timezone.utc).isoformat(),
            ),
        )

    async def _generate_audio(self, project: Project, profile: ChannelProfile, config: Settings) -> AudioPayload:
        script = _require(project, Stage.SCRIPT, ScriptPayload)
        voice = self._providers.voice
        wav = await voice.synthesize(script.text, profile.voice_profile or config.pipeline.default_voice)
        path = self._files.save_audio(project.id, wav)
        return AudioPayload(
            mode="auto",
            file_url=str(path),
            duration=round(wav_duration(wav), 2),
            provider=voice.name,
        )

    async def _compress_audio(self, project: Project, profile: ChannelProfile, config: Settings) -> AudioCompressPayload:
        audio = _require(project, Stage.AUDIO, AudioPayload)
        destination = self._files.get_audio_path(project.id, "narration.mp3")
        result = await self._providers.renderer.compress_audio(
            Path(audio.file_url), destination, config.pipeline.compress_bitrate,
        )
        return AudioCompressPayload(
            mode="auto",
            file_url=str(result.output_path),
            original_size=result.original_size,
            compressed_size=result.compressed_size,
            compression_ratio=result.compression_ratio,
            format="mp3",
            bitrate=result.bitrate,
        )

    async def _generate_subtitles(self, project: Project, profile: ChannelProfile, config: Settings) -> SubtitlesPayload:
        script = _require(project, Stage.SCRIPT, ScriptPayload)
        audio = project.stage_data.get(Stage.AUDIO)
        duration = audio.duration if isinstance(audio, AudioPayload) else None
        cues = build_cues(script.text, duration)
        srt = format_srt(cues)
        self._files.save_text(project.id, "subtitles.srt", srt)
        return SubtitlesPayload(mode="auto", srt_content=srt, cues=cues)

    async def _generate_images(self, project: Project, profile: ChannelProfile, config: Settings) -> ImagesPayload:
        script = _require(project, Stage.SCRIPT, ScriptPayload)
        scene_count = min(max(len(smart_chunk_script(script.text)), 1), MAX_SCENES)
        prompts = await generate_scene_prompts(self._providers.text, profile, script.text, scene_count)
        prompts = prompts[:scene_count]

        width, height = profile.dimensions
        urls: list[str] = []
        for i, prompt in enumerate(prompts):
            full_prompt = ", ".join(p for p in (prompt, profile.visual_style) if p)
            try:
                paths = await self._providers.images.generate(full_prompt, width, height, 1, owner_id=project.id)
                urls.extend(paths[:1])
            except Exception as e:
                logger.warning(f"Project {project.id}: image {i + 1}/{len(prompts)} failed: {e}")
        if not urls:
            raise MissingStageData(f"All {len(prompts)} image generations failed")
        return ImagesPayload(mode="auto", image_urls=urls, prompts=prompts)

    async def _render_video(self, project: Project, profile: ChannelProfile, config: Settings) -> VideoPayload:
        images = _require(project, Stage.IMAGES, ImagesPayload)
        if not images.image_urls:
            raise MissingStageData(f"Project {project.id} has pasted image notes but no image files")

        compressed = project.stage_data.get(Stage.AUDIO_COMPRESS)
        audio = project.stage_data.get(Stage.AUDIO)
        audio_url = compressed.file_url if isinstance(compressed, AudioCompressPayload) else (
            audio.file_url if isinstance(audio, AudioPayload) else None
        )
        duration = audio.duration if isinstance(audio, AudioPayload) and audio.duration else None
        seconds = duration / len(images.image_urls) if duration else float(config.pipeline.segment_seconds)

        width, height = profile.dimensions
        output = await self._providers.renderer.render(
            RenderRequest(
                image_paths=[Path(u) for u in images.image_urls],
                audio_path=Path(audio_url) if audio_url else None,
                output_path=self._files.get_output_path(project.id),
                segment_seconds=round(seconds, 3),
                width=width,
                height=height,
            )
        )
        total = duration or seconds * len(images.image_urls)
        return VideoPayload(
            mode="auto",
            file_url=str(output),
            duration=round(total, 2),
            resolution=f"{width}x{height}",
        )

    async def _generate_thumbnail(self, project: Project, profile: ChannelProfile, config: Settings) -> ThumbnailPayload:
        script = _require(project, Stage.SCRIPT, ScriptPayload)
        text = script.thumb_text or script.title or project.title
        prompt = (
            f"Eye-catching video thumbnail with bold large text \"{text}\", "
            f"subject: {script.title or project.title}, style: {profile.visual_style}"
        )
        width, height = profile.dimensions
        paths = await self._providers.images.generate(prompt, width, height, 1, owner_id=project.id)
        if not paths:
            raise MissingStageData("Thumbnail generation returned no image")
        return ThumbnailPayload(mode="auto", image_url=paths[0], prompt=prompt, text=text)
