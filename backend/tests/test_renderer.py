"""ffmpeg render backend availability handling."""

import threading
from pathlib import Path

import pytest

from shortfactory.errors import RenderUnavailable
from shortfactory.services.renderer import FfmpegRenderer, RenderRequest


def test_missing_binary_is_unavailable():
    assert FfmpegRenderer(binary="shortfactory-no-such-ffmpeg").is_available() is False


@pytest.mark.asyncio
async def test_render_without_ffmpeg_raises(tmp_path):
    renderer = FfmpegRenderer(binary="shortfactory-no-such-ffmpeg")
    request = RenderRequest(image_paths=[tmp_path / "a.png"], output_path=tmp_path / "out.mp4")

    with pytest.raises(RenderUnavailable):
        await renderer.render(request)
    with pytest.raises(RenderUnavailable):
        await renderer.compress_audio(tmp_path / "a.wav", tmp_path / "a.mp3")


@pytest.mark.asyncio
async def test_availability_check_runs_off_the_event_loop(tmp_path, monkeypatch):
    renderer = FfmpegRenderer()
    loop_thread = threading.get_ident()
    checked_on: list[int] = []

    def is_available() -> bool:
        checked_on.append(threading.get_ident())
        return False

    monkeypatch.setattr(renderer, "is_available", is_available)

    with pytest.raises(RenderUnavailable):
        await renderer.render(RenderRequest(image_paths=[Path("a.png")], output_path=tmp_path / "out.mp4"))
    with pytest.raises(RenderUnavailable):
        await renderer.compress_audio(tmp_path / "a.wav", tmp_path / "a.mp3")

    assert len(checked_on) == 2
    assert loop_thread not in checked_on
