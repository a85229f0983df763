"""
File management service for shortfactory.

Handles structured filesystem artifact storage with path traversal protection.
Creates per-owner directories (one per project or job) with subdirectories for
audio, images and rendered output.
"""
from pathlib import Path
from typing import Optional

from shortfactory.config import settings

_SUBDIRS = ("audio", "images", "output")


class FileManager:
    """
    Manage filesystem artifacts for projects and jobs.

    Creates structured directories:
    - {base_dir}/{owner_id}/audio/ - Narration WAV and compressed MP3
    - {base_dir}/{owner_id}/images/ - Storyboard and thumbnail images
    - {base_dir}/{owner_id}/output/ - Final assembled video and subtitles

    Implements path traversal protection to prevent directory escape attacks.
    """

    def __init__(self, base_dir: str | Path | None = None):
        """
        Initialize FileManager with base directory.

        Args:
            base_dir: Root directory for all artifacts.
                     If None, uses settings.storage.tmp_dir
        """
        if base_dir is None:
            base_dir = settings.storage.tmp_dir

        self.base_dir = Path(base_dir).resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def get_owner_dir(self, owner_id: str) -> Path:
        """
        Get or create the artifact directory for a project or job.

        Raises:
            ValueError: If owner_id creates path outside base_dir (traversal attack)
        """
        owner_dir = (self.base_dir / str(owner_id)).resolve()

        if not owner_dir.is_relative_to(self.base_dir) or owner_dir == self.base_dir:
            raise ValueError("Invalid artifact path")

        owner_dir.mkdir(exist_ok=True)
        for sub in _SUBDIRS:
            (owner_dir / sub).mkdir(exist_ok=True)

        return owner_dir

    def save_audio(self, owner_id: str, data: bytes, filename: str = "narration.wav") -> Path:
        filepath = self.get_owner_dir(owner_id) / "audio" / filename
        filepath.write_bytes(data)
        return filepath

    def save_image(self, owner_id: str, index: int, data: bytes, suffix: str = ".png",
                   prefix: str = "segment") -> Path:
        filepath = self.get_owner_dir(owner_id) / "images" / f"{prefix}_{index}{suffix}"
        filepath.write_bytes(data)
        return filepath

    def save_text(self, owner_id: str, filename: str, content: str) -> Path:
        filepath = self.get_owner_dir(owner_id) / "output" / filename
        filepath.write_text(content, encoding="utf-8")
        return filepath

    def get_output_path(self, owner_id: str, filename: str = "final.mp4") -> Path:
        return self.get_owner_dir(owner_id) / "output" / filename

    def get_audio_path(self, owner_id: str, filename: str) -> Path:
        return self.get_owner_dir(owner_id) / "audio" / filename

    def list_images(self, owner_id: str, prefix: Optional[str] = None) -> list[Path]:
        images_dir = self.get_owner_dir(owner_id) / "images"
        paths = sorted(p for p in images_dir.iterdir() if p.is_file())
        if prefix:
            paths = [p for p in paths if p.name.startswith(prefix)]
        return paths
