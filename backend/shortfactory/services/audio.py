"""PCM/WAV helpers for synthesized narration."""

import io
import wave
from pathlib import Path

# Gemini and ElevenLabs PCM output: 24 kHz, mono, 16-bit little endian
PCM_SAMPLE_RATE = 24000
PCM_CHANNELS = 1
PCM_SAMPLE_WIDTH = 2


def pcm_to_wav(pcm: bytes, sample_rate: int = PCM_SAMPLE_RATE) -> bytes:
    """Wrap raw PCM samples in a WAV container."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wav:
        wav.setnchannels(PCM_CHANNELS)
        wav.setsampwidth(PCM_SAMPLE_WIDTH)
        wav.setframerate(sample_rate)
        wav.writeframes(pcm)
    return buf.getvalue()


def wav_duration(data: bytes | Path) -> float:
    """Duration in seconds of a WAV file or WAV bytes."""
    source = str(data) if isinstance(data, Path) else io.BytesIO(data)
    with wave.open(source, "rb") as wav:
        frames = wav.getnframes()
        rate = wav.getframerate()
    return frames / float(rate) if rate else 0.0
