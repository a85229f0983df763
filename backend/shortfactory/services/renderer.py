"""Render backend built on the ffmpeg CLI.

Assembles storyboard images and narration into a video using the concat
demuxer, and compresses narration WAV to MP3 for upload. ffmpeg runs in a
worker thread so the event loop stays free.
"""

import asyncio
import logging
import shutil
import subprocess
from pathlib import Path
from typing import Optional

from pydantic import BaseModel

from shortfactory.errors import RenderUnavailable

logger = logging.getLogger(__name__)

FFMPEG_INSTALL_HINT = "ffmpeg not found on PATH. Install it from https://ffmpeg.org/download.html"


class RenderRequest(BaseModel):
    """Assembled inputs for one render."""

    image_paths: list[Path]
    audio_path: Optional[Path] = None
    output_path: Path
    segment_seconds: float = 5.0
    width: int = 1080
    height: int = 1920


class CompressionResult(BaseModel):
    output_path: Path
    original_size: int
    compressed_size: int
    compression_ratio: float
    bitrate: str


class FfmpegRenderer:
    """ffmpeg-backed render backend."""

    def __init__(self, binary: str = "ffmpeg") -> None:
        self.binary = binary

    def is_available(self) -> bool:
        if shutil.which(self.binary) is None:
            return False
        try:
            subprocess.run([self.binary, "-version"], capture_output=True, check=True)
        except (subprocess.CalledProcessError, OSError):
            return False
        return True

    async def render(self, request: RenderRequest) -> Path:
        """Render images (and narration, if any) into an MP4.

        Raises:
            RenderUnavailable: If ffmpeg is missing
            ValueError: If no images are supplied or a file is missing
            subprocess.CalledProcessError: If ffmpeg exits non-zero
        """
        if not await asyncio.to_thread(self.is_available):
            raise RenderUnavailable(FFMPEG_INSTALL_HINT)
        if not request.image_paths:
            raise ValueError("No images available for rendering")
        missing = [p for p in request.image_paths if not Path(p).exists()]
        if request.audio_path is not None and not request.audio_path.exists():
            missing.append(request.audio_path)
        if missing:
            raise ValueError(f"Missing render inputs: {[str(p) for p in missing]}")

        request.output_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info(
            f"Rendering {len(request.image_paths)} images -> {request.output_path} "
            f"({request.width}x{request.height})"
        )
        await asyncio.to_thread(self._render_concat, request)
        return request.output_path

    def _render_concat(self, request: RenderRequest) -> None:
        list_file = request.output_path.parent / "concat_list.txt"
        try:
            with open(list_file, "w") as f:
                for image in request.image_paths:
                    f.write(f"file '{Path(image).resolve()}'\n")
                    f.write(f"duration {request.segment_seconds}\n")
                # concat demuxer ignores the last duration unless the file repeats
                f.write(f"file '{Path(request.image_paths[-1]).resolve()}'\n")

            w, h = request.width, request.height
            args = [self.binary, "-y", "-f", "concat", "-safe", "0", "-i", str(list_file)]
            if request.audio_path is not None:
                args += ["-i", str(request.audio_path)]
            args += [
                "-vf",
                f"scale={w}:{h}:force_original_aspect_ratio=decrease,"
                f"pad={w}:{h}:(ow-iw)/2:(oh-ih)/2,format=yuv420p",
                "-r", "30",
                "-c:v", "libx264",
            ]
            if request.audio_path is not None:
                args += ["-c:a", "aac", "-shortest"]
            args.append(str(request.output_path))

            subprocess.run(args, check=True, capture_output=True)
            logger.info(f"Render complete: {request.output_path}")
        finally:
            if list_file.exists():
                list_file.unlink()

    async def compress_audio(self, source: Path, destination: Path, bitrate_kbps: int = 128) -> CompressionResult:
        """Compress narration to mono 44.1 kHz MP3.

        Raises:
            RenderUnavailable: If ffmpeg is missing
            FileNotFoundError: If the source file does not exist
        """
        if not await asyncio.to_thread(self.is_available):
            raise RenderUnavailable(FFMPEG_INSTALL_HINT)
        if not source.exists():
            raise FileNotFoundError(source)

        bitrate = f"{bitrate_kbps}k"
        destination.parent.mkdir(parents=True, exist_ok=True)
        args = [
            self.binary, "-y", "-i", str(source),
            "-codec:a", "libmp3lame", "-b:a", bitrate, "-ar", "44100", "-ac", "1",
            str(destination),
        ]
        await asyncio.to_thread(subprocess.run, args, check=True, capture_output=True)

        original = source.stat().st_size
        compressed = destination.stat().st_size
        ratio = round(original / compressed, 2) if compressed else 0.0
        logger.info(f"Compressed {source.name}: {original} -> {compressed} bytes ({ratio}x)")
        return CompressionResult(
            output_path=destination,
            original_size=original,
            compressed_size=compressed,
            compression_ratio=ratio,
            bitrate=bitrate,
        )
