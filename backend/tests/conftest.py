"""Shared fixtures: offline fake providers and an in-memory runtime."""

from pathlib import Path
from typing import Optional

import pytest

from shortfactory.config import Settings
from shortfactory.runtime import Runtime, create_runtime
from shortfactory.schemas.generation import (
    RewrittenScript,
    ScenePrompts,
    ScriptAndPrompts,
    ScriptStructure,
)
from shortfactory.schemas.job import VideoMetadata
from shortfactory.schemas.profile import ChannelProfile
from shortfactory.schemas.stage_payloads import TranscriptMetadata
from shortfactory.services.audio import pcm_to_wav
from shortfactory.services.file_manager import FileManager
from shortfactory.services.llm.base import LLMAdapter
from shortfactory.services.providers import Providers
from shortfactory.services.renderer import CompressionResult, RenderRequest
from shortfactory.services.transcripts import TranscriptResult

CATS_SCRIPT = "Cats are curious animals. They sleep most of the day. And they always land on their feet."


# ---------------------------------------------------------------------------
# Fake providers
# ---------------------------------------------------------------------------


class FakeLLM(LLMAdapter):
    """Answers by schema class; failures can be registered per schema."""

    def __init__(self, model_id: str = "fake-model"):
        self.model_id = model_id
        self.responses = {
            ScriptAndPrompts: ScriptAndPrompts(
                script=CATS_SCRIPT,
                visual_prompts=["a curious cat", "a sleeping cat", "a cat landing on its feet"],
            ),
            RewrittenScript: RewrittenScript(text="Rewritten story. It keeps the best parts.", characters=42),
            ScriptStructure: ScriptStructure(
                title="The Story", description="A retold story", thumb_text="WOW", tags=["story"]
            ),
            ScenePrompts: ScenePrompts(visual_prompts=["scene one", "scene two"]),
            VideoMetadata: VideoMetadata(
                titles=["Cats Rule"], description="All about cats", tags=["cats"], thumbnail_prompt="a cat"
            ),
        }
        self.failures: dict[type, Exception] = {}
        self.calls: list[tuple[type, str]] = []

    async def generate_text(self, prompt, schema, *, system_prompt=None, temperature=0.7):
        self.calls.append((schema, prompt))
        if schema in self.failures:
            raise self.failures[schema]
        return self.responses[schema]


class FakeImages:
    def __init__(self):
        self.calls: list[str] = []
        self.fail_calls: set[int] = set()

    async def generate(self, prompt, width, height, count=1, *, owner_id="library"):
        index = len(self.calls)
        self.calls.append(prompt)
        if index in self.fail_calls:
            raise RuntimeError("image backend overloaded")
        return [f"/artifacts/{owner_id}/images/img_{index:03d}.png"]


class FakeVoice:
    name = "fake-tts"

    def __init__(self, error: Optional[Exception] = None, seconds: float = 2.0):
        self.error = error
        self.seconds = seconds
        self.calls: list[tuple[str, str]] = []

    async def synthesize(self, text, voice_id):
        self.calls.append((text, voice_id))
        if self.error is not None:
            raise self.error
        frames = int(24000 * self.seconds)
        return pcm_to_wav(b"\x00\x00" * frames)


class FakeRenderer:
    def __init__(self, available: bool = True):
        self.available = available
        self.render_requests: list[RenderRequest] = []
        self.render_error: Optional[Exception] = None

    def is_available(self) -> bool:
        return self.available

    async def render(self, request: RenderRequest) -> Path:
        self.render_requests.append(request)
        if self.render_error is not None:
            raise self.render_error
        return request.output_path

    async def compress_audio(self, source: Path, destination: Path, bitrate_kbps: int = 128):
        return CompressionResult(
            output_path=destination,
            original_size=1000,
            compressed_size=250,
            compression_ratio=0.25,
            bitrate=f"{bitrate_kbps}k",
        )


class FakeTranscripts:
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.calls: list[str] = []

    async def fetch(self, video_id):
        self.calls.append(video_id)
        if self.error is not None:
            raise self.error
        return TranscriptResult(
            transcript=f"Transcript of {video_id}.",
            metadata=TranscriptMetadata(title="Original title", view_count=1234, channel_name="Origin"),
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def profile() -> ChannelProfile:
    return ChannelProfile(id="chan-1", name="Cats Daily", visual_style="watercolor", voice_profile="Kore")


@pytest.fixture
def config() -> Settings:
    return Settings()


@pytest.fixture
def file_manager(tmp_path) -> FileManager:
    return FileManager(tmp_path / "artifacts")


@pytest.fixture
def providers() -> Providers:
    return Providers(
        text=FakeLLM(),
        metadata=FakeLLM(),
        images=FakeImages(),
        voice=FakeVoice(),
        renderer=FakeRenderer(),
        transcripts=FakeTranscripts(),
    )


@pytest.fixture
def runtime(config, providers, file_manager, profile) -> Runtime:
    rt = create_runtime(config, providers=providers, file_manager=file_manager, persist=False)
    rt.profiles[profile.id] = profile
    return rt
