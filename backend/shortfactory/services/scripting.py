"""Prompt construction and structured text calls for scripts and metadata.

Three flows share the text adapters:

- job scripting: theme (+ optional model channel / reference transcript)
  to a spoken script plus one visual prompt per scene;
- project scripting: one call rewrites a reference transcript, a second packages the
  rewrite (title, description, thumbnail text, tags);
- metadata: titles, SEO description, tags and a thumbnail prompt.
"""

import logging
from typing import Optional

from shortfactory.schemas.generation import (
    RewrittenScript,
    ScenePrompts,
    ScriptAndPrompts,
    ScriptStructure,
)
from shortfactory.schemas.job import VideoMetadata
from shortfactory.schemas.profile import ChannelProfile, VideoFormat
from shortfactory.services.llm.base import LLMAdapter

logger = logging.getLogger(__name__)

DEFAULT_REWRITE_PROMPT = (
    "You are the lead writer of the channel \"{channel}\".\n"
    "PERSONA: {persona}\n"
    "Rewrite the reference transcript below into an original narration script "
    "for a {duration} video. Keep the hook, pacing and structure of the reference, "
    "change the wording completely, and write in {language}.\n"
    "Return JSON with `text` (the narration only) and `characters` (its length)."
)

DEFAULT_STRUCTURE_PROMPT = (
    "You package videos for the channel \"{channel}\".\n"
    "From the narration script below, write a viral title, an SEO description, "
    "a short punchy thumbnail text (max 5 words) and 10-15 tags, in {language}."
)


def _duration_hint(profile: ChannelProfile) -> str:
    return "under 60 seconds" if profile.format == VideoFormat.SHORTS else "about 5 minutes"


class _KeepMissing(dict):
    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def _render(template: str, profile: ChannelProfile, language: str) -> str:
    """Fill the known placeholders of a (possibly user-written) prompt."""
    values = _KeepMissing(
        channel=profile.name,
        persona=profile.llm_persona or "engaging storyteller",
        duration=_duration_hint(profile),
        language=language,
        visual_style=profile.visual_style,
    )
    try:
        return template.format_map(values)
    except (ValueError, IndexError):
        # Stray braces in a custom prompt: use it verbatim
        return template


async def generate_script_and_prompts(
    adapter: LLMAdapter,
    profile: ChannelProfile,
    theme: str,
    *,
    model_channel: Optional[str] = None,
    reference_script: Optional[str] = None,
    language: str = "pt-BR",
) -> ScriptAndPrompts:
    """Write a script about ``theme`` plus English visual prompts per scene."""
    if reference_script:
        model_instruction = (
            f"REFERENCE STRUCTURE (mandatory): below is the transcript of a viral video "
            f"from the channel '{model_channel or 'reference'}'. Write a NEW script about "
            f"\"{theme}\" that follows exactly the same narrative structure and cadence.\n"
            f"[[ REFERENCE START ]]\n{reference_script}\n[[ REFERENCE END ]]"
        )
    elif model_channel:
        model_instruction = (
            f"Use the narrative structure, pacing and tone of the channel '{model_channel}' "
            f"as the main inspiration."
        )
    else:
        model_instruction = ""

    system_prompt = (
        f"You are the creative engine of the channel \"{profile.name}\".\n"
        f"PERSONA: {profile.llm_persona}\n"
        f"VISUAL STYLE: {profile.visual_style}\n"
        f"{model_instruction}\n"
        f"Spoken language: {language}. Visual prompts must be in English."
    )
    prompt = (
        f"Write a video script about \"{theme}\" ({_duration_hint(profile)}). "
        f"Return `script` (full spoken text) and `visual_prompts` (one image prompt per scene)."
    )
    logger.info(f"Scripting theme={theme!r} model={adapter.model_id}")
    return await adapter.generate_text(prompt, ScriptAndPrompts, system_prompt=system_prompt)


async def rewrite_transcript(
    adapter: LLMAdapter,
    profile: ChannelProfile,
    transcript: str,
    *,
    language: str = "pt-BR",
) -> tuple[RewrittenScript, str]:
    """Rewrite a reference transcript. Returns the result and the prompt used."""
    system_prompt = _render(profile.rewrite_prompt or DEFAULT_REWRITE_PROMPT, profile, language)
    result = await adapter.generate_text(
        f"REFERENCE TRANSCRIPT:\n{transcript}",
        RewrittenScript,
        system_prompt=system_prompt,
    )
    return result, system_prompt


async def structure_script(
    adapter: LLMAdapter,
    profile: ChannelProfile,
    script: str,
    *,
    language: str = "pt-BR",
) -> tuple[ScriptStructure, str]:
    """Title, description, thumbnail text and tags for a script."""
    system_prompt = _render(profile.structure_prompt or DEFAULT_STRUCTURE_PROMPT, profile, language)
    result = await adapter.generate_text(
        f"SCRIPT:\n{script}",
        ScriptStructure,
        system_prompt=system_prompt,
        temperature=0.5,
    )
    return result, system_prompt


async def generate_scene_prompts(
    adapter: LLMAdapter,
    profile: ChannelProfile,
    script: str,
    scene_count: int,
) -> list[str]:
    """English image prompts for ``scene_count`` scenes of an existing script."""
    result = await adapter.generate_text(
        f"Split this script into {scene_count} scenes and write one English image "
        f"prompt per scene in the style: {profile.visual_style}.\n\nSCRIPT:\n{script}",
        ScenePrompts,
        temperature=0.5,
    )
    return result.visual_prompts


async def generate_video_metadata(
    adapter: LLMAdapter,
    profile: ChannelProfile,
    script: str,
    *,
    language: str = "pt-BR",
) -> VideoMetadata:
    """Titles, SEO description, tags and a thumbnail prompt for a script."""
    prompt = (
        f"Analyze this script and produce YouTube metadata in {language}.\n"
        f"SCRIPT: \"{script[:5000]}\"\n\n"
        f"REQUIREMENTS:\n- 3 viral titles\n- SEO description\n- 15 tags\n"
        f"- 1 thumbnail prompt (English, style: {profile.visual_style})"
    )
    return await adapter.generate_text(prompt, VideoMetadata, temperature=0.5)
